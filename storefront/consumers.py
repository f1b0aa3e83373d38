import json
import logging

from channels.generic.websocket import AsyncWebsocketConsumer

from . import frames
from .realtime import ConnectionState

logger = logging.getLogger(__name__)


# ==============================================================================
# Base Helper
# ==============================================================================
class SafeConsumer(AsyncWebsocketConsumer):
    """Base consumer whose sends never raise into the caller."""

    async def safe_send(self, frame) -> bool:
        try:
            await self.send(text_data=frames.encode_frame(frame))
        except Exception as exc:
            logger.error(f"{self.__class__.__name__} failed to send data: {exc}")
            await self.on_send_error(exc)
            return False
        return True

    async def on_send_error(self, exc):
        pass


# ==============================================================================
# Order Updates Consumer
# ==============================================================================
class OrderUpdatesConsumer(SafeConsumer):
    """
    One live session on the order-updates endpoint.

    The consumer registers itself with the :class:`ConnectionRegistry` it was
    built with, so that order signals can broadcast to every storefront and
    admin tab that is currently connected.
    """

    welcome_message = "Connected to the order updates channel"

    def __init__(self, *args, registry=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.registry = registry
        self.state = ConnectionState.CONNECTING

    @property
    def remote(self):
        client = self.scope.get("client") if getattr(self, "scope", None) else None
        return f"{client[0]}:{client[1]}" if client else "unknown"

    # --------------------------------------------------------------------------
    # Connection lifecycle
    # --------------------------------------------------------------------------
    async def connect(self):
        if self.registry is None or not self.registry.accepting:
            logger.warning(f"❌ Order updates connect refused from {self.remote} (server shutting down)")
            self.state = ConnectionState.CLOSED
            await self.close()
            return

        await self.accept()
        self.state = ConnectionState.OPEN
        self.registry.add(self)
        logger.info(f"✅ Order updates client connected from {self.remote}")

        await self.safe_send(frames.Connection(message=self.welcome_message))

    async def disconnect(self, code):
        self.state = ConnectionState.CLOSED
        if self.registry is not None:
            self.registry.discard(self, reason=f"closed with code {code}")
        logger.info(f"👋 Order updates client disconnected ({self.remote}, code={code})")

    async def close(self, code=None, reason=None):
        if self.state is ConnectionState.OPEN:
            self.state = ConnectionState.CLOSING
        await super().close(code=code)

    async def on_send_error(self, exc):
        self.state = ConnectionState.CLOSED
        if self.registry is not None:
            self.registry.discard(self, reason=f"error: {exc}")

    # --------------------------------------------------------------------------
    # Message reception
    # --------------------------------------------------------------------------
    async def receive(self, text_data=None, bytes_data=None):
        """Echo well-formed JSON back to the sender; answer garbage with an error frame."""
        raw = text_data if text_data is not None else bytes_data

        try:
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            data = json.loads(raw)
        except (TypeError, ValueError) as exc:
            logger.error(f"❌ Invalid payload from {self.remote}: {exc}")
            await self.safe_send(frames.Error(message="Invalid message format"))
            return

        logger.debug(f"💬 Message from {self.remote}: {data}")
        await self.safe_send(frames.Echo(data=data))
