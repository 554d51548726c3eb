"""Vote submission and aggregate reads over the vote store."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from marketpulse.db import session_scope
from marketpulse.domain import VoteAggregate
from marketpulse.errors import StoreUnavailableError, ValidationError
from marketpulse.models import VoteChoice
from marketpulse.repositories import VoteRepository

VOTE_UNAVAILABLE_MESSAGE = "Voting temporarily unavailable. Please try again."


@dataclass(slots=True, frozen=True)
class VoteReceipt:
    success: bool
    vote_id: int | None = None
    results: VoteAggregate | None = None


@dataclass(slots=True)
class ResultsSummary:
    results: dict[str, VoteAggregate] = field(default_factory=dict)
    total_votes: int = 0
    markets_with_votes: int = 0


def validate_vote(voter_token: Any, market_slug: Any, vote: Any, price_at_vote: Any) -> tuple[str, str, str, float]:
    if not isinstance(voter_token, str) or not voter_token.strip():
        raise ValidationError("Voter token is required")
    if not isinstance(market_slug, str) or not market_slug.strip():
        raise ValidationError("Market slug is required")
    choices = {choice.value for choice in VoteChoice}
    if not isinstance(vote, str) or vote.strip().lower() not in choices:
        raise ValidationError('Vote must be "yes" or "no"')
    if (
        isinstance(price_at_vote, bool)
        or not isinstance(price_at_vote, (int, float))
        or math.isnan(price_at_vote)
        or not 0 <= price_at_vote <= 1
    ):
        raise ValidationError("Valid price at vote is required (0-1)")
    return voter_token.strip(), market_slug.strip(), vote.strip().lower(), float(price_at_vote)


class VoteService:
    """Write path raises ``StoreUnavailableError``; read paths degrade to empty results."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None,
        *,
        deployment_id: str,
        provider: str,
    ) -> None:
        self._session_factory = session_factory
        self.deployment_id = deployment_id
        self.provider = provider

    @property
    def configured(self) -> bool:
        return self._session_factory is not None

    def _repository(self, session: Session) -> VoteRepository:
        return VoteRepository(session, deployment_id=self.deployment_id, provider=self.provider)

    def submit_vote(
        self,
        *,
        voter_token: Any,
        market_slug: Any,
        vote: Any,
        price_at_vote: Any,
    ) -> VoteReceipt:
        voter_token, market_slug, vote, price_at_vote = validate_vote(
            voter_token, market_slug, vote, price_at_vote
        )
        if self._session_factory is None:
            raise StoreUnavailableError(VOTE_UNAVAILABLE_MESSAGE)

        try:
            with session_scope(self._session_factory) as session:
                repository = self._repository(session)
                vote_id = repository.upsert_vote(
                    voter_token=voter_token,
                    market_slug=market_slug,
                    vote=vote,
                    price_at_vote=price_at_vote,
                )
                results = repository.aggregate_for(market_slug)
        except SQLAlchemyError as exc:
            logger.exception("Vote submission failed for {}: {}", market_slug, exc)
            raise StoreUnavailableError(VOTE_UNAVAILABLE_MESSAGE) from exc

        logger.info("Recorded {} vote on {} (id={})", vote, market_slug, vote_id)
        return VoteReceipt(success=True, vote_id=vote_id, results=results)

    def results_for(self, market_slug: str) -> VoteAggregate:
        if self._session_factory is None:
            return VoteAggregate()
        try:
            with session_scope(self._session_factory) as session:
                return self._repository(session).aggregate_for(market_slug)
        except SQLAlchemyError as exc:
            logger.warning("Failed to read vote results for {}: {}", market_slug, exc)
            return VoteAggregate()

    def all_results(self) -> ResultsSummary:
        if self._session_factory is None:
            return ResultsSummary()
        try:
            with session_scope(self._session_factory) as session:
                results = self._repository(session).aggregates()
        except SQLAlchemyError as exc:
            logger.warning("Failed to read vote results: {}", exc)
            return ResultsSummary()
        return ResultsSummary(
            results=results,
            total_votes=sum(aggregate.total for aggregate in results.values()),
            markets_with_votes=sum(1 for aggregate in results.values() if aggregate.total > 0),
        )

    def votes_for_voter(self, voter_token: str) -> dict[str, str]:
        if self._session_factory is None or not voter_token:
            return {}
        try:
            with session_scope(self._session_factory) as session:
                return self._repository(session).votes_for_voter(voter_token)
        except SQLAlchemyError as exc:
            logger.warning("Failed to read votes for voter: {}", exc)
            return {}


__all__ = ["VOTE_UNAVAILABLE_MESSAGE", "ResultsSummary", "VoteReceipt", "VoteService", "validate_vote"]
