"""Error taxonomy shared by the ingestion layer, services and HTTP handlers.

Every error carries the HTTP status it maps to and a short machine-readable
code. Handlers in ``marketpulse.main`` render them as ``{error, message}``.

  UpstreamError          provider unreachable or returned an error (503)
  UpstreamTimeoutError   provider exceeded the request deadline (503)
  NormalizationError     a single raw market could not be normalized
  ValidationError        malformed client request (400)
  StoreUnavailableError  vote/broadcast store missing or unreachable (503)
  ConfigurationError     invalid deployment configuration (500)
  NotFoundError          unknown market slug (404)
"""

from __future__ import annotations


class MarketPulseError(Exception):
    """Base application error."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class UpstreamError(MarketPulseError):
    status_code = 503
    code = "upstream_unavailable"

    def __init__(self, message: str, *, provider: str | None = None, url: str | None = None) -> None:
        self.provider = provider
        self.url = url
        super().__init__(message)


class UpstreamTimeoutError(UpstreamError):
    code = "upstream_timeout"


class NormalizationError(MarketPulseError):
    code = "normalization_failed"

    def __init__(self, message: str, *, market_ref: str | None = None) -> None:
        self.market_ref = market_ref
        super().__init__(message)


class ValidationError(MarketPulseError):
    status_code = 400
    code = "validation_error"


class StoreUnavailableError(MarketPulseError):
    status_code = 503
    code = "store_unavailable"


class ConfigurationError(MarketPulseError):
    code = "configuration_error"


class NotFoundError(MarketPulseError):
    status_code = 404
    code = "not_found"


__all__ = [
    "ConfigurationError",
    "MarketPulseError",
    "NormalizationError",
    "NotFoundError",
    "StoreUnavailableError",
    "UpstreamError",
    "UpstreamTimeoutError",
    "ValidationError",
]
