"""Interval cache warm-up jobs on an APScheduler ``AsyncIOScheduler``."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

from marketpulse.core.config import Settings
from marketpulse.errors import UpstreamError

from .market_service import MarketService


@dataclass(slots=True, frozen=True)
class RefreshJob:
    name: str
    seconds: float
    handler: Callable[[], Awaitable[int]]


class RefreshScheduler:
    """Keeps the market caches warm so request handlers rarely wait on upstream."""

    def __init__(self, jobs: list[RefreshJob]) -> None:
        self.scheduler = AsyncIOScheduler()
        self.jobs = jobs
        self._running = False

    @classmethod
    def for_markets(cls, settings: Settings, markets: MarketService) -> "RefreshScheduler":
        return cls(
            [
                RefreshJob("markets", float(settings.data_refresh_interval), markets.warm_markets),
                RefreshJob("all_markets", settings.all_markets_cache_ttl_seconds, markets.warm_all_markets),
            ]
        )

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            logger.warning("Refresh scheduler already running")
            return
        for job in self.jobs:
            self.scheduler.add_job(
                self._run,
                trigger=IntervalTrigger(seconds=job.seconds),
                args=[job],
                id=job.name,
                name=f"refresh {job.name}",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            logger.info("Registered refresh job {} every {}s", job.name, job.seconds)
        self.scheduler.start()
        self._running = True

    def stop(self) -> None:
        if not self._running:
            return
        self.scheduler.shutdown(wait=False)
        self._running = False
        logger.info("Refresh scheduler stopped")

    @staticmethod
    async def _run(job: RefreshJob) -> None:
        try:
            count = await job.handler()
        except UpstreamError as exc:
            logger.warning("Refresh job {} failed: {}", job.name, exc)
            return
        except Exception:
            logger.exception("Refresh job {} crashed", job.name)
            return
        logger.info("Refresh job {} completed ({} markets)", job.name, count)


__all__ = ["RefreshJob", "RefreshScheduler"]
