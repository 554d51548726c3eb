from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

import httpx
from loguru import logger

from marketpulse.errors import UpstreamError, UpstreamTimeoutError


class ProviderHttpClient:
    """Thin async wrapper around a provider's public JSON endpoints."""

    def __init__(
        self,
        *,
        provider: str,
        base_url: str,
        timeout: float = 30.0,
        headers: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.provider = provider
        self.base_url = base_url
        self.timeout = timeout
        self.client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Accept": "application/json", **(headers or {})},
            transport=transport,
        )

    @staticmethod
    def _serialize_param(value: Any) -> str | None:
        if value is None:
            return None
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return str(value)
        if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
            parts: list[str] = []
            for item in value:
                serialized = ProviderHttpClient._serialize_param(item)
                if serialized is not None:
                    parts.append(serialized)
            return ",".join(parts) if parts else None
        return str(value)

    def _build_params(self, params: Mapping[str, Any] | None) -> dict[str, str]:
        built: dict[str, str] = {}
        for key, value in (params or {}).items():
            serialized = self._serialize_param(value)
            if serialized is not None:
                built[key] = serialized
        return built

    async def get_json(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        *,
        expect: type | tuple[type, ...] | None = None,
    ) -> Any:
        """GET ``path`` and decode the JSON body.

        ``expect`` names the body type(s) the endpoint must return; any other
        shape (an error object in a 200 reply, for instance) raises
        ``UpstreamError`` so callers fall back to cached data.
        """
        query = self._build_params(params)
        logger.info("{} GET {} params={}", self.provider, path, query)
        try:
            response = await self.client.get(path, params=query)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise UpstreamTimeoutError(
                f"{self.provider} request timed out after {self.timeout}s: {path}",
                provider=self.provider,
                url=path,
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise UpstreamError(
                f"{self.provider} returned HTTP {exc.response.status_code} for {path}",
                provider=self.provider,
                url=path,
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(
                f"{self.provider} request failed for {path}: {exc}",
                provider=self.provider,
                url=path,
            ) from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamError(
                f"{self.provider} returned a non-JSON body for {path}",
                provider=self.provider,
                url=path,
            ) from exc

        if expect is not None and not isinstance(payload, expect):
            raise UpstreamError(
                f"{self.provider} returned an unexpected {type(payload).__name__} body for {path}",
                provider=self.provider,
                url=path,
            )
        return payload

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "ProviderHttpClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
