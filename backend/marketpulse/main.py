from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Annotated, Any

import httpx
import pydantic
from fastapi import Body, Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from . import schemas
from .broadcast import BroadcastState, BroadcastSync, ZoneOverrides, is_mutation, parse_command
from .core.config import Settings, get_settings
from .editorial import EDITORIAL_ROTATION
from .errors import MarketPulseError, StoreUnavailableError, ValidationError
from .services.container import ServiceContainer
from .services.market_service import MarketService
from .services.vote_service import VoteService

ALL_EVENTS_CACHE_CONTROL = "public, max-age=3600, s-maxage=14400"
NO_CACHE_CONTROL = "no-cache, no-store, must-revalidate"


def _container(request: Request) -> ServiceContainer:
    return request.app.state.container


def _settings(request: Request) -> Settings:
    return _container(request).settings


def _market_service(request: Request) -> MarketService:
    """Provide the market service owned by the running container."""

    return _container(request).markets


def _vote_service(request: Request) -> VoteService:
    return _container(request).votes


def _broadcast(request: Request) -> BroadcastSync:
    return _container(request).broadcast


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _error_body(code: str, message: str) -> dict[str, str]:
    return schemas.ErrorBody(error=code, message=message).model_dump(by_alias=True)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(MarketPulseError)
    async def _handle_app_error(request: Request, exc: MarketPulseError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.warning("{} {} failed: {}", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.code, exc.message))

    @app.exception_handler(RequestValidationError)
    async def _handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content=_error_body("validation_error", str(exc)))

    @app.exception_handler(Exception)
    async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on {} {}", request.method, request.url.path)
        return JSONResponse(status_code=500, content=_error_body("internal_error", "Internal server error"))


def create_app(
    settings: Settings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    container = ServiceContainer.build(settings, transport=transport)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await container.start()
        try:
            yield
        finally:
            await container.aclose()

    app = FastAPI(title="Market Pulse API", version="0.1.0", debug=settings.debug, lifespan=lifespan)
    app.state.container = container
    register_exception_handlers(app)
    register_routes(app)
    return app


def register_routes(app: FastAPI) -> None:
    @app.get("/healthz", response_model=schemas.Health, tags=["system"])
    def healthcheck(container: ServiceContainer = Depends(_container)):
        """Readiness probe with a summary of the provider caches."""

        return schemas.Health(
            status="ok",
            provider=container.provider.id,
            caches=[schemas.CacheStats.model_validate(stats) for stats in container.provider.cache_stats()],
        )

    @app.get("/config", response_model=schemas.PublicConfig, tags=["system"])
    def public_config(settings: Settings = Depends(_settings)):
        """Public deployment configuration; never includes connection strings."""

        return schemas.PublicConfig(
            provider=settings.provider,
            category=settings.category,
            event_filters=list(settings.event_filters),
            blacklist=list(settings.blacklist),
            site_name=settings.site_name,
            deployment_id=settings.deployment_id,
            countdown=settings.countdown,
            affiliate_url=settings.affiliate_url,
            refresh_intervals=settings.refresh_intervals,
            default_theme=settings.default_theme,
            votes_enabled=settings.votes_configured,
        )

    @app.get("/markets", response_model=schemas.MarketList, tags=["markets"])
    async def list_markets(
        *,
        sparklines: Annotated[bool, Query(description="Attach one week of price history")] = False,
        service: MarketService = Depends(_market_service),
    ):
        """Filtered markets for this deployment, highest volume first."""

        result = await service.list_markets(sparklines=sparklines)
        filters = service.filters
        return schemas.MarketList(
            markets=[schemas.Market.model_validate(market) for market in result.markets],
            meta=schemas.MarketsMeta(
                provider=service.provider.id,
                category=filters.category,
                filters=list(filters.event_filters),
                blacklist=list(filters.blacklist),
                count=len(result.markets),
                last_updated=result.last_updated,
            ),
        )

    @app.get("/events", response_model=schemas.EventList, tags=["events"])
    async def list_events(
        *,
        response: Response,
        all_markets: Annotated[bool, Query(alias="all", description="Skip deployment filters")] = False,
        service: MarketService = Depends(_market_service),
    ):
        """Markets grouped by parent event, highest total volume first."""

        result = await service.list_events(all_markets=all_markets)
        if all_markets:
            response.headers["Cache-Control"] = ALL_EVENTS_CACHE_CONTROL
        else:
            response.headers["Cache-Control"] = NO_CACHE_CONTROL
            response.headers["Pragma"] = "no-cache"
            response.headers["Expires"] = "0"
        return schemas.EventList(
            events=[schemas.Event.model_validate(event) for event in result.events],
            meta=schemas.EventsMeta(
                provider=service.provider.id,
                category="all" if all_markets else service.filters.category,
                filtered=not all_markets,
                count=len(result.events),
                last_updated=result.last_updated,
            ),
        )

    @app.get("/editorial", response_model=schemas.EditorialResponse, tags=["editorial"])
    async def editorial(service: MarketService = Depends(_market_service)):
        """Themed market picks with narrative copy and the rotation schedule."""

        result = await service.editorial()
        return schemas.EditorialResponse(
            themes={
                theme: [schemas.EditorialMarket.from_entry(entry) for entry in entries]
                for theme, entries in result.themes.items()
            },
            rotation=[schemas.RotationSlot.model_validate(slot) for slot in EDITORIAL_ROTATION],
            meta=schemas.EditorialMeta(last_updated=result.last_updated, votes_included=result.votes_included),
        )

    @app.get("/prices", response_model=schemas.PriceHistory, tags=["markets"])
    async def price_history(
        *,
        token_id: Annotated[str | None, Query(alias="tokenId")] = None,
        interval: Annotated[str, Query(description="1d, 1w or 1m")] = "1w",
        series_ticker: Annotated[str | None, Query(alias="seriesTicker")] = None,
        service: MarketService = Depends(_market_service),
    ):
        history = await service.price_history(token_id, interval, series_ticker=series_ticker)
        return schemas.PriceHistory(
            history=[schemas.PricePoint.model_validate(point) for point in history],
            token_id=token_id,
            interval=interval,
        )

    @app.get(
        "/markets/{slug}/resolution", response_model=schemas.ResolutionResponse, tags=["markets"]
    )
    async def market_resolution(slug: str, service: MarketService = Depends(_market_service)):
        """Resolution state of one market; unknown slugs are 404."""

        status = await service.resolution(slug)
        return schemas.ResolutionResponse(
            slug=slug, resolved=status.resolved, outcome=status.outcome, resolved_at=status.resolved_at
        )

    @app.get(
        "/results",
        response_model=schemas.ResultsResponse | schemas.MarketResults,
        tags=["votes"],
    )
    def vote_results(
        *,
        market_slug: Annotated[str | None, Query(alias="marketSlug")] = None,
        votes: VoteService = Depends(_vote_service),
    ):
        """Aggregated crowd votes, for one market or the whole deployment."""

        if market_slug:
            return schemas.MarketResults(
                market_slug=market_slug,
                results=schemas.VoteAggregate.model_validate(votes.results_for(market_slug)),
                last_updated=_now(),
            )
        summary = votes.all_results()
        return schemas.ResultsResponse(
            results={
                slug: schemas.VoteAggregate.model_validate(aggregate)
                for slug, aggregate in summary.results.items()
            },
            total_votes=summary.total_votes,
            markets_with_votes=summary.markets_with_votes,
            last_updated=_now(),
        )

    @app.get("/votes", response_model=schemas.VoterVotes, tags=["votes"])
    def voter_votes(
        *,
        voter_token: Annotated[str, Query(alias="voterToken", min_length=1)],
        votes: VoteService = Depends(_vote_service),
    ):
        """Choices a voter token has already made, keyed by market slug."""

        return schemas.VoterVotes(votes=votes.votes_for_voter(voter_token))

    @app.post("/vote", response_model=schemas.VoteResponse, tags=["votes"])
    def submit_vote(
        payload: schemas.VoteRequest,
        votes: VoteService = Depends(_vote_service),
    ):
        """Record or replace a voter's choice for a market."""

        try:
            receipt = votes.submit_vote(
                voter_token=payload.voter_token,
                market_slug=payload.market_slug,
                vote=payload.vote,
                price_at_vote=payload.price_at_vote,
            )
        except (ValidationError, StoreUnavailableError) as exc:
            body = schemas.VoteResponse(success=False, error=exc.message)
            return JSONResponse(
                status_code=exc.status_code,
                content=body.model_dump(by_alias=True, exclude_none=True),
            )
        return schemas.VoteResponse(
            success=receipt.success,
            vote_id=receipt.vote_id,
            results=schemas.VoteAggregate.model_validate(receipt.results) if receipt.results else None,
        )

    @app.get("/broadcast/state", response_model=BroadcastState, tags=["broadcast"])
    def broadcast_state(
        *,
        show: Annotated[str | None, Query(description="Comma-separated zones to force visible")] = None,
        hide: Annotated[str | None, Query(description="Comma-separated zones to force hidden")] = None,
        sync: BroadcastSync = Depends(_broadcast),
    ):
        """Current broadcast document as a viewer with these overrides would see it."""

        return ZoneOverrides.parse(show, hide).apply(sync.raw_state)

    @app.post("/broadcast/commands", response_model=BroadcastState, tags=["broadcast"])
    async def broadcast_command(
        payload: Annotated[dict[str, Any], Body()],
        sync: BroadcastSync = Depends(_broadcast),
    ):
        """Apply one controller mutation and fan it out to viewers."""

        try:
            command = parse_command(payload)
        except pydantic.ValidationError as exc:
            raise ValidationError(f"Invalid broadcast command: {exc.error_count()} error(s)") from exc
        if not is_mutation(command):
            raise ValidationError(f"{command.type} is not a controller command")
        return await sync.submit(command)


app = create_app()
