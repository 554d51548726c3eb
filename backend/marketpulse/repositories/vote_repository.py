"""Vote persistence and per-market aggregation."""

from __future__ import annotations

from sqlalchemy import case, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from marketpulse.domain import VoteAggregate
from marketpulse.errors import ConfigurationError
from marketpulse.models import Vote, utcnow

_CONFLICT_COLUMNS = ("deployment_id", "voter_token", "market_slug", "provider")


class VoteRepository:
    """Votes scoped to one deployment and provider."""

    def __init__(self, session: Session, *, deployment_id: str, provider: str) -> None:
        self._session = session
        self.deployment_id = deployment_id
        self.provider = provider

    # ------------------------------------------------------------------
    # Mutations

    def upsert_vote(self, *, voter_token: str, market_slug: str, vote: str, price_at_vote: float) -> int:
        """Insert a vote, or update the voter's existing one; returns the row id.

        Uniqueness is enforced by the database constraint, so concurrent
        submissions for the same key resolve to a single row.
        """

        values = {
            "deployment_id": self.deployment_id,
            "voter_token": voter_token,
            "market_slug": market_slug,
            "provider": self.provider,
            "vote": vote,
            "price_at_vote": price_at_vote,
            "created_at": utcnow(),
            "updated_at": utcnow(),
        }
        dialect = self._session.get_bind().dialect.name
        if dialect == "postgresql":
            statement = postgresql.insert(Vote).values(**values)
        elif dialect == "sqlite":
            statement = sqlite.insert(Vote).values(**values)
        else:
            raise ConfigurationError(f"Vote store does not support the {dialect} dialect")

        statement = statement.on_conflict_do_update(
            index_elements=list(_CONFLICT_COLUMNS),
            set_={
                "vote": statement.excluded.vote,
                "price_at_vote": statement.excluded.price_at_vote,
                "updated_at": statement.excluded.updated_at,
            },
        ).returning(Vote.id)
        return int(self._session.execute(statement).scalar_one())

    # ------------------------------------------------------------------
    # Queries

    def _aggregate_query(self):
        yes = func.sum(case((Vote.vote == "yes", 1), else_=0))
        no = func.sum(case((Vote.vote == "no", 1), else_=0))
        return (
            select(Vote.market_slug, yes, no)
            .where(Vote.deployment_id == self.deployment_id, Vote.provider == self.provider)
            .group_by(Vote.market_slug)
        )

    def aggregate_for(self, market_slug: str) -> VoteAggregate:
        row = self._session.execute(
            self._aggregate_query().where(Vote.market_slug == market_slug)
        ).first()
        if row is None:
            return VoteAggregate()
        return VoteAggregate.from_counts(int(row[1] or 0), int(row[2] or 0))

    def aggregates(self) -> dict[str, VoteAggregate]:
        rows = self._session.execute(self._aggregate_query()).all()
        return {
            slug: VoteAggregate.from_counts(int(yes or 0), int(no or 0))
            for slug, yes, no in rows
        }

    def votes_for_voter(self, voter_token: str) -> dict[str, str]:
        rows = self._session.execute(
            select(Vote.market_slug, Vote.vote).where(
                Vote.deployment_id == self.deployment_id,
                Vote.provider == self.provider,
                Vote.voter_token == voter_token,
            )
        ).all()
        return {slug: vote for slug, vote in rows}
