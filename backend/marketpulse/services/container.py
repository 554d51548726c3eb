"""Builds and owns the long-lived objects behind one running API process."""

from __future__ import annotations

import random

import httpx
from loguru import logger
from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ingestion.base import MarketProvider
from ingestion.registry import get_provider
from marketpulse.broadcast import BroadcastSync, LocalChannel, RemoteStateStore, Role, default_state
from marketpulse.core.config import Settings
from marketpulse.db import create_db_engine, create_session_factory, init_db
from marketpulse.domain import FilterConfig
from marketpulse.editorial import EditorialPolicy
from marketpulse.errors import ConfigurationError

from .market_service import MarketService
from .scheduler import RefreshScheduler
from .vote_service import VoteService


def filters_from_settings(settings: Settings) -> FilterConfig:
    return FilterConfig(
        category=settings.category,
        event_filters=tuple(settings.event_filters),
        blacklist=tuple(settings.blacklist),
        active_only=settings.active_only,
    )


def _database(settings: Settings) -> tuple[Engine | None, sessionmaker[Session] | None]:
    try:
        url = settings.resolved_database_url
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc
    if url is None:
        logger.warning("No database configured; voting and remote broadcast state are disabled")
        return None, None

    engine = create_db_engine(url, echo=settings.debug)
    try:
        init_db(engine)
    except SQLAlchemyError as exc:
        # Requests still degrade per call until the store comes back.
        logger.warning("Could not initialise the vote store schema: {}", exc)
    return engine, create_session_factory(engine)


class ServiceContainer:
    def __init__(
        self,
        settings: Settings,
        *,
        provider: MarketProvider,
        engine: Engine | None,
        session_factory: sessionmaker[Session] | None,
    ) -> None:
        self.settings = settings
        self.provider = provider
        self.engine = engine
        self.session_factory = session_factory
        self.filters = filters_from_settings(settings)
        self.votes = VoteService(
            session_factory,
            deployment_id=settings.deployment_id,
            provider=provider.id,
        )
        self.markets = MarketService(
            provider,
            self.filters,
            self.votes,
            policy=EditorialPolicy.from_settings(settings),
            rng=random.Random(settings.editorial_seed),
        )
        self.channel = LocalChannel()
        self.remote = (
            RemoteStateStore(session_factory, poll_interval=settings.broadcast_poll_interval)
            if session_factory is not None
            else None
        )
        self.broadcast = BroadcastSync(
            Role.CONTROLLER,
            self.channel,
            self.remote,
            initial=default_state(settings.default_theme),
        )
        self.scheduler = RefreshScheduler.for_markets(settings, self.markets)

    @classmethod
    def build(
        cls,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "ServiceContainer":
        provider = get_provider(settings, transport=transport)
        engine, session_factory = _database(settings)
        logger.info(
            "Service container ready (provider={}, votes={})", provider.id, session_factory is not None
        )
        return cls(settings, provider=provider, engine=engine, session_factory=session_factory)

    async def start(self) -> None:
        await self.broadcast.start()
        if self.settings.enable_background_refresh:
            self.scheduler.start()

    async def aclose(self) -> None:
        self.scheduler.stop()
        await self.broadcast.stop()
        await self.provider.aclose()
        if self.engine is not None:
            self.engine.dispose()


__all__ = ["ServiceContainer", "filters_from_settings"]
