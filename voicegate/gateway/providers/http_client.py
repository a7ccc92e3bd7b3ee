"""Shared HTTP plumbing for remote providers."""

from __future__ import annotations

from typing import Any

import httpx

from voicegate.common.structured_logging import get_logger

from .errors import ProviderRequestError, ProviderTimeoutError

logger = get_logger(__name__)

_ERROR_BODY_LIMIT = 300


class ProviderHttpClient:
    """Lazily created ``httpx.AsyncClient`` with provider error mapping.

    An injected client is used as-is and never closed here.
    """

    def __init__(
        self,
        provider_name: str,
        *,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._provider_name = provider_name
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout, connect=5.0),
                limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
            )
        return self._client

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        """POST and return a successful response.

        Raises:
            ProviderTimeoutError: the transport timed out.
            ProviderRequestError: transport failure or non-2xx status.
        """
        client = self._get_client()
        try:
            response = await client.post(url, **kwargs)
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError(
                f"{self._provider_name} request timed out: {type(exc).__name__}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderRequestError(
                f"{self._provider_name} request failed: {exc}"
            ) from exc

        if response.is_error:
            body = response.text[:_ERROR_BODY_LIMIT]
            logger.warning(
                "provider.http_error",
                provider=self._provider_name,
                status_code=response.status_code,
                body=body,
            )
            raise ProviderRequestError(
                f"{self._provider_name} returned HTTP {response.status_code}: {body}",
                status_code=response.status_code,
            )
        return response

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
        self._client = None


__all__ = ["ProviderHttpClient"]
