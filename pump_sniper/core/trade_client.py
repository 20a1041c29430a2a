"""Trade API client with bounded retries and exponential backoff."""
from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable

import httpx

if TYPE_CHECKING:
    from pump_sniper.config import Settings

from pump_sniper.exceptions import RequestFailure
from pump_sniper.utils.retry import retry_async

RETRYABLE_ERRORS = (httpx.HTTPError, ValueError)


class TradeApiClient:
    """POSTs trade requests, retrying failures with exponential backoff.

    A 429 response is retried after the server's Retry-After delay when one
    is given, otherwise after the current backoff delay.
    """

    def __init__(
        self,
        settings: "Settings",
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.logger = logging.getLogger("pump_sniper.trade_client")
        self._client = client
        self._sleep = sleep

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=30.0)
        return self._client

    async def request(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Send `payload` to `endpoint` and return the decoded JSON body.

        Raises:
            RequestFailure: every attempt failed
        """
        execution = self.settings.strategy.execution
        client = await self._ensure_client()

        async def post() -> dict[str, Any]:
            response = await client.post(endpoint, json=payload)
            if response.status_code >= 400:
                self.logger.warning("API Error: %s - %s", response.status_code, response.text[:200])
            response.raise_for_status()
            return response.json()

        try:
            return await retry_async(
                post,
                max_attempts=execution.api_retry_limit,
                delay=execution.base_api_delay_sec,
                exceptions=RETRYABLE_ERRORS,
                delay_hint=self._retry_after,
                sleep=self._sleep,
            )
        except RETRYABLE_ERRORS as e:
            status = e.response.status_code if isinstance(e, httpx.HTTPStatusError) else None
            raise RequestFailure(
                f"Request to {endpoint} failed: {e}",
                attempts=execution.api_retry_limit,
                status=status,
            ) from e

    @staticmethod
    def _retry_after(error: BaseException) -> float | None:
        if not isinstance(error, httpx.HTTPStatusError) or error.response.status_code != 429:
            return None
        header = error.response.headers.get("retry-after")
        if not header:
            return None
        try:
            return float(header)
        except ValueError:
            return None

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
