"""
Tick stream client - websocket feed from the trade bridge.

The bridge broadcasts one JSON message per trade:

    {"type": "trade", "data": {"timestamp": ..., "price": ..., "volume": ...,
                               "side": "ASK" | "BID", "symbol": ...}}

Messages are forwarded as raw mappings; normalization happens in the
analyzers.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional

import aiohttp

from ..utils.retry import ExponentialBackoff

logger = logging.getLogger(__name__)

DEFAULT_URL = "ws://localhost:8080"

TickCallback = Callable[[Mapping[str, Any]], Any]


class StreamState(Enum):
    """State of the websocket connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


@dataclass
class StreamStats:
    """Counters for the websocket feed."""

    messages_received: int = 0
    bytes_received: int = 0
    ticks_forwarded: int = 0
    ignored_messages: int = 0
    last_message_time: Optional[int] = None
    reconnect_count: int = 0
    error_count: int = 0


class TradeFlowStream:
    """
    Websocket client for the trade bridge, with reconnect backoff.

    Example:
        engine = TradeFlowEngine()
        stream = TradeFlowStream("ws://10.0.0.5:8080", on_tick=engine.ingest)
        await stream.start()
        ...
        await stream.stop()
    """

    def __init__(
        self,
        url: str = DEFAULT_URL,
        on_tick: Optional[TickCallback] = None,
        backoff: Optional[ExponentialBackoff] = None,
        heartbeat: float = 30.0,
        receive_timeout: Optional[float] = 60.0,
    ):
        self.url = url
        self._backoff = backoff or ExponentialBackoff(base=1.0, multiplier=2.0, max_delay=30.0)
        self._heartbeat = heartbeat
        self._receive_timeout = receive_timeout

        self._state = StreamState.DISCONNECTED
        self._stats = StreamStats()
        self._callbacks: List[TickCallback] = []
        self._running = False

        self._session: Optional[aiohttp.ClientSession] = None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._task: Optional[asyncio.Task] = None

        if on_tick:
            self.add_callback(on_tick)

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def stats(self) -> StreamStats:
        return self._stats

    @property
    def is_running(self) -> bool:
        return self._running

    def add_callback(self, callback: TickCallback) -> None:
        """Add a consumer for raw tick mappings (sync or async)."""
        self._callbacks.append(callback)

    def remove_callback(self, callback: TickCallback) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    async def _notify_callbacks(self, tick: Mapping[str, Any]) -> None:
        for callback in self._callbacks:
            try:
                result = callback(tick)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Tick callback error: {e}")

    # === Lifecycle ===

    async def start(self) -> None:
        """Connect and start receiving ticks (idempotent)."""
        if self._running:
            return

        self._running = True
        self._state = StreamState.CONNECTING
        self._session = aiohttp.ClientSession()
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Close the connection and release the session (idempotent)."""
        self._running = False

        if self._ws:
            await self._ws.close()
            self._ws = None

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._session:
            await self._session.close()
            self._session = None

        self._state = StreamState.DISCONNECTED

    async def _run(self) -> None:
        """Receive loop with reconnection."""
        while self._running:
            try:
                logger.info(f"Connecting to {self.url}")

                async with self._session.ws_connect(
                    self.url,
                    heartbeat=self._heartbeat,
                    receive_timeout=self._receive_timeout,
                ) as ws:
                    self._ws = ws
                    self._state = StreamState.CONNECTED
                    self._backoff.reset()
                    logger.info(f"Connected to {self.url}")

                    async for msg in ws:
                        if not self._running:
                            break

                        if msg.type == aiohttp.WSMsgType.TEXT:
                            await self._handle_message(msg.data)
                        elif msg.type == aiohttp.WSMsgType.ERROR:
                            logger.error(f"WebSocket error: {ws.exception()}")
                            break

                self._ws = None
                if self._running:
                    logger.info(f"Disconnected from {self.url}")

            except asyncio.CancelledError:
                break
            except Exception as e:
                self._stats.error_count += 1
                logger.error(f"Stream error: {e}")

            if self._running:
                self._state = StreamState.RECONNECTING
                self._stats.reconnect_count += 1
                delay = self._backoff.next_delay()
                logger.info(f"Reconnecting in {delay:.1f}s")
                try:
                    await asyncio.sleep(delay)
                except asyncio.CancelledError:
                    break

        self._state = StreamState.DISCONNECTED

    # === Message handling ===

    async def _handle_message(self, raw: str) -> Optional[Mapping[str, Any]]:
        """
        Parse one websocket text frame and forward its tick.

        Accepts the bridge envelope or a bare tick object. Non-trade
        envelopes are ignored; unparseable frames count as errors.

        Returns:
            The forwarded tick mapping, or None
        """
        self._stats.messages_received += 1
        self._stats.bytes_received += len(raw)
        self._stats.last_message_time = int(time.time() * 1000)

        try:
            message = json.loads(raw)
        except ValueError as e:
            self._stats.error_count += 1
            logger.debug(f"Unparseable message: {e}")
            return None

        if not isinstance(message, dict):
            self._stats.error_count += 1
            return None

        if "type" in message:
            if message["type"] != "trade":
                self._stats.ignored_messages += 1
                return None
            tick = message.get("data")
            if not isinstance(tick, dict):
                self._stats.error_count += 1
                return None
        else:
            tick = message

        self._stats.ticks_forwarded += 1
        await self._notify_callbacks(tick)
        return tick
