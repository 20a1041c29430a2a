"""PumpPortal WebSocket client: per-token quotes and the new-listing stream."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from pump_sniper.constants import NEW_PAIRS_CHANNEL
from pump_sniper.core.models import FeedMessage, NewListingEvent, Quote, parse_feed_message
from pump_sniper.exceptions import FeedConnectionError

if TYPE_CHECKING:
    from pump_sniper.config import Settings

MAX_RECONNECT_DELAY = 30.0


class PumpPortalClient:
    """WebSocket client for PumpPortal real-time data.

    `await_quote` opens a fresh connection for every call so a tick can never
    read a stale subscription left over from a previous one.
    `stream_new_listings` keeps one long-lived connection and reconnects
    with exponential backoff.
    """

    def __init__(self, settings: "Settings", connect: Callable[..., Any] = websockets.connect) -> None:
        self.settings = settings
        self.logger = logging.getLogger("pump_sniper.pumpportal")
        self._connect = connect
        self._running = False
        self._ws = None
        self._reconnect_delay = 1.0

    def _headers(self) -> dict[str, str] | None:
        if self.settings.SESSION_ID:
            return {"Authorization": f"Bearer {self.settings.SESSION_ID}"}
        return None

    def _decode(self, raw: str | bytes) -> FeedMessage | None:
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            self.logger.debug("Dropping non-JSON feed frame")
            return None
        return parse_feed_message(data)

    async def await_quote(self, mint: str, timeout: float | None = None) -> Quote | None:
        """Resolve the first quote for `mint`, or None on any feed failure.

        Waits at most `quote_timeout_sec`, or `timeout` when that is shorter.
        """
        limit = self.settings.strategy.timing.quote_timeout_sec
        if timeout is not None:
            timeout = min(limit, timeout)
        else:
            timeout = limit
        try:
            return await asyncio.wait_for(self._fetch_quote(mint), timeout=timeout)
        except asyncio.TimeoutError:
            self.logger.warning("No quote for %s within %.0fs", mint[:12], timeout)
        except FeedConnectionError as e:
            self.logger.warning("WebSocket error: %s", e)
        return None

    async def _fetch_quote(self, mint: str) -> Quote:
        try:
            async with self._connect(self.settings.FEED_WS_URL, additional_headers=self._headers()) as ws:
                self.logger.debug("WebSocket connection opened for %s", mint[:12])
                await ws.send(json.dumps({"action": "subscribe", "mint": mint}))
                async for raw in ws:
                    message = self._decode(raw)
                    if isinstance(message, Quote) and message.mint == mint:
                        return message
        except (OSError, WebSocketException) as e:
            raise FeedConnectionError("Quote subscription failed", mint=mint, error=str(e)) from e
        raise FeedConnectionError("Feed closed before a quote arrived", mint=mint)

    async def stream_new_listings(self) -> AsyncIterator[NewListingEvent]:
        """Yield new-listing events until `stop()` is called."""
        self._running = True
        self.logger.info("PumpPortal WebSocket starting...")

        while self._running:
            try:
                async with self._connect(self.settings.FEED_WS_URL, additional_headers=self._headers()) as ws:
                    self._ws = ws
                    self._reconnect_delay = 1.0  # Reset on successful connect
                    await ws.send(json.dumps({"action": "subscribe", "channel": NEW_PAIRS_CHANNEL}))
                    self.logger.info("PumpPortal: Subscribed to %s stream", NEW_PAIRS_CHANNEL)

                    async for raw in ws:
                        message = self._decode(raw)
                        if isinstance(message, NewListingEvent):
                            yield message
            except ConnectionClosed as e:
                self.logger.warning("PumpPortal WebSocket closed: %s", e)
            except (OSError, WebSocketException) as e:
                self.logger.error("PumpPortal error: %s", e)
            finally:
                self._ws = None

            if self._running:
                self.logger.info("PumpPortal reconnecting in %.1fs...", self._reconnect_delay)
                await asyncio.sleep(self._reconnect_delay)
                self._reconnect_delay = min(self._reconnect_delay * 2, MAX_RECONNECT_DELAY)

    async def stop(self) -> None:
        """Stop the listing stream."""
        self._running = False
        if self._ws:
            await self._ws.close()
            self._ws = None
        self.logger.info("PumpPortal WebSocket stopped")
