"""
storefront/client.py

Reconnecting client for the order-updates WebSocket channel.

:class:`ReconnectingChannel` keeps one logical subscription alive over a
transport that may drop at any time. An unintended close schedules a new
connect attempt after a fixed delay, up to ``reconnect_attempts`` times in a
row; a successful open resets the budget. ``disconnect()`` is final until
``connect()`` is called again.

Everything runs on one asyncio event loop. Handlers run to completion before
the next transport event is processed, so the agent keeps no locks.
"""

import asyncio
import enum
import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

import aiohttp
from django.conf import settings

from . import frames
from .realtime import ABNORMAL_CLOSURE, NORMAL_CLOSURE

logger = logging.getLogger(__name__)

DEFAULT_RECONNECT_ATTEMPTS = 5
DEFAULT_RECONNECT_INTERVAL = 3.0


class ChannelStatus(str, enum.Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


@dataclass
class ChannelState:
    status: ChannelStatus = ChannelStatus.DISCONNECTED
    last_message: Optional[frames.Frame] = None
    reconnect_count: int = 0
    reconnect_attempts: int = DEFAULT_RECONNECT_ATTEMPTS
    reconnect_interval: float = DEFAULT_RECONNECT_INTERVAL

    @property
    def is_connected(self) -> bool:
        return self.status is ChannelStatus.CONNECTED

    @property
    def retry_budget_exhausted(self) -> bool:
        return self.reconnect_count >= self.reconnect_attempts


class AiohttpTransport:
    """Owns the ClientSession behind one ``ws_connect`` so both close together."""

    def __init__(self, session, ws):
        self.session = session
        self.ws = ws

    @classmethod
    async def open(cls, url, **ws_kwargs):
        session = aiohttp.ClientSession()
        try:
            ws = await session.ws_connect(url, **ws_kwargs)
        except BaseException:
            await session.close()
            raise
        return cls(session, ws)

    @property
    def close_code(self):
        return self.ws.close_code

    @property
    def closed(self):
        return self.ws.closed

    async def receive(self):
        return await self.ws.receive()

    async def send_str(self, data):
        await self.ws.send_str(data)

    async def close(self, code=NORMAL_CLOSURE, message=b""):
        try:
            await self.ws.close(code=code, message=message)
        finally:
            await self.session.close()


async def aiohttp_connector(url):
    return await AiohttpTransport.open(url, heartbeat=30.0)


class ReconnectingChannel:
    """
    Single "always try to be connected" channel.

    ``connector`` is an async callable ``connector(url) -> transport``; the
    transport must provide ``receive()`` returning :class:`aiohttp.WSMessage`,
    ``send_str()``, ``close(code=..., message=...)``, ``close_code`` and
    ``closed``. It defaults to an aiohttp ``ws_connect``.
    """

    def __init__(
        self,
        url,
        reconnect_attempts=DEFAULT_RECONNECT_ATTEMPTS,
        reconnect_interval=DEFAULT_RECONNECT_INTERVAL,
        on_message=None,
        on_connect=None,
        on_disconnect=None,
        on_error=None,
        connector=None,
    ):
        self.url = url
        self.state = ChannelState(
            reconnect_attempts=reconnect_attempts,
            reconnect_interval=reconnect_interval,
        )
        self.on_message = on_message
        self.on_connect = on_connect
        self.on_disconnect = on_disconnect
        self.on_error = on_error
        self._connector = connector or aiohttp_connector
        self._transport = None
        self._task = None
        self._reconnect_timer = None
        self._closing = False

    @classmethod
    def from_settings(cls, url, **kwargs):
        """Build a channel with the WEBSOCKET_RECONNECT_* values from Django settings."""
        kwargs.setdefault("reconnect_attempts", settings.WEBSOCKET_RECONNECT_ATTEMPTS)
        kwargs.setdefault("reconnect_interval", settings.WEBSOCKET_RECONNECT_INTERVAL)
        return cls(url, **kwargs)

    # --------------------------------------------------------------------------
    # Public surface
    # --------------------------------------------------------------------------
    @property
    def status(self) -> ChannelStatus:
        return self.state.status

    @property
    def is_connected(self) -> bool:
        return self.state.is_connected

    @property
    def last_message(self):
        return self.state.last_message

    @property
    def reconnect_count(self) -> int:
        return self.state.reconnect_count

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_timer is not None

    def connect(self):
        """
        Start a connect attempt and return its reader task. No-op (returns
        the current task) while connected or while an attempt is in flight.
        """
        if self.state.is_connected or (self._task is not None and not self._task.done()):
            return self._task

        self._closing = False
        self._cancel_reconnect()
        self.state.status = ChannelStatus.CONNECTING
        self._task = asyncio.ensure_future(self._run())
        return self._task

    async def send_message(self, payload: Any) -> bool:
        """Send ``payload`` as JSON when connected. Nothing is queued."""
        if not self.state.is_connected or self._transport is None:
            logger.warning("Tried to send a message without an open connection")
            return False
        try:
            await self._transport.send_str(json.dumps(payload, default=str))
        except Exception as exc:
            logger.error(f"Failed to send message: {exc}")
            return False
        return True

    async def disconnect(self):
        """Close with 1000 and stop reconnecting until connect() is called again."""
        self._closing = True
        self._cancel_reconnect()

        transport, self._transport = self._transport, None
        if transport is not None:
            try:
                await transport.close(code=NORMAL_CLOSURE, message=b"Intentional disconnect")
            except Exception as exc:
                logger.warning(f"Error while closing connection: {exc}")

        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        # The reader may already have reported the close itself.
        if self.state.status is not ChannelStatus.DISCONNECTED:
            self._handle_close(NORMAL_CLOSURE, "Intentional disconnect")

    # --------------------------------------------------------------------------
    # Transport event loop
    # --------------------------------------------------------------------------
    async def _run(self):
        try:
            transport = await self._connector(self.url)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            # A failed handshake surfaces as an error followed by an abnormal close.
            self._handle_error(exc)
            self._handle_close(ABNORMAL_CLOSURE, str(exc))
            return

        if self._closing:
            await transport.close(code=NORMAL_CLOSURE, message=b"Intentional disconnect")
            return

        self._transport = transport
        self._handle_open()

        while True:
            msg = await transport.receive()
            if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                self._handle_message(msg.data)
            elif msg.type == aiohttp.WSMsgType.ERROR:
                self._handle_error(msg.data)
            elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
                break

        code = _close_code(msg, transport)
        reason = msg.extra if msg.type == aiohttp.WSMsgType.CLOSE else ""
        if self._transport is transport:
            self._transport = None
        await transport.close()
        self._handle_close(code, reason or "")

    # --------------------------------------------------------------------------
    # Event handlers
    # --------------------------------------------------------------------------
    def _handle_open(self):
        logger.info(f"Connected to {self.url}")
        self.state.status = ChannelStatus.CONNECTED
        self.state.reconnect_count = 0
        if self.on_connect:
            self.on_connect()

    def _handle_message(self, raw):
        try:
            frame = frames.decode_frame(raw)
        except frames.FrameDecodeError as exc:
            logger.error(f"Dropping undecodable message: {exc}")
            return None

        # Keepalive probes carry nothing for the caller.
        if isinstance(frame, frames.Ping):
            return frame

        self.state.last_message = frame
        if self.on_message:
            self.on_message(frame)
        return frame

    def _handle_close(self, code, reason=""):
        logger.info(f"Connection closed - code: {code}, reason: {reason}")
        self.state.status = ChannelStatus.DISCONNECTED
        if self.on_disconnect:
            self.on_disconnect()

        if self._closing or code == NORMAL_CLOSURE:
            return
        if self.state.retry_budget_exhausted:
            logger.warning(f"Giving up on {self.url} after {self.state.reconnect_count} reconnect attempt(s)")
            return

        self.state.reconnect_count += 1
        logger.info(
            f"Reconnect attempt {self.state.reconnect_count}/{self.state.reconnect_attempts} "
            f"in {self.state.reconnect_interval}s"
        )
        loop = asyncio.get_running_loop()
        self._reconnect_timer = loop.call_later(self.state.reconnect_interval, self.connect)

    def _handle_error(self, exc):
        logger.error(f"Connection error: {exc}")
        self.state.status = ChannelStatus.ERROR
        if self.on_error:
            self.on_error(exc)

    def _cancel_reconnect(self):
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None


def _close_code(msg, transport):
    if msg.type == aiohttp.WSMsgType.CLOSE and msg.data:
        return int(msg.data)
    return transport.close_code or ABNORMAL_CLOSURE
