"""
storefront/realtime.py
=====================================================================================
In-process registry of live WebSocket sessions on the order-updates endpoint.

The registry is created once by ``StorefrontConfig.ready()`` and handed to the
consumer routes and to the order signal handlers. All mutation happens on the
server's single event loop, so no locking is involved.
=====================================================================================
"""

import asyncio
import enum
import logging

from . import frames

logger = logging.getLogger(__name__)

NORMAL_CLOSURE = 1000
GOING_AWAY = 1001
ABNORMAL_CLOSURE = 1006


class ConnectionState(enum.Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class ConnectionRegistry:
    """
    Tracks open sessions and fans events out to them.

    A session is anything exposing ``state`` (a :class:`ConnectionState`),
    ``async send(text_data=...)`` and ``async close(code=...)``; in production
    that is :class:`storefront.consumers.OrderUpdatesConsumer`.
    """

    def __init__(self, keepalive_interval=30.0):
        self.keepalive_interval = keepalive_interval
        self.accepting = True
        self._sessions = set()
        self._keepalives = {}

    def __len__(self):
        return len(self._sessions)

    def __contains__(self, session):
        return session in self._sessions

    @property
    def sessions(self):
        return frozenset(self._sessions)

    # --------------------------------------------------------------------------
    # Membership
    # --------------------------------------------------------------------------
    def add(self, session) -> bool:
        """Register a handshaken session. Returns False after shutdown."""
        if not self.accepting:
            logger.warning("Registry is shut down; refusing new session.")
            return False

        self._sessions.add(session)
        if self.keepalive_interval and self.keepalive_interval > 0:
            self._keepalives[session] = asyncio.ensure_future(self._keepalive(session))
        logger.info(f"🔌 Session registered ({len(self._sessions)} connected)")
        return True

    def discard(self, session, reason=None):
        """Remove a session (close, error or failed send). Unknown sessions are ignored."""
        if session not in self._sessions:
            return
        self._sessions.discard(session)

        task = self._keepalives.pop(session, None)
        if task is not None and task is not _current_task():
            task.cancel()

        if reason:
            logger.info(f"Session removed: {reason} ({len(self._sessions)} connected)")
        else:
            logger.info(f"Session removed ({len(self._sessions)} connected)")

    # --------------------------------------------------------------------------
    # Fan-out
    # --------------------------------------------------------------------------
    async def broadcast(self, event) -> int:
        """
        Send ``event`` to every open session and return how many received it.

        Sessions that are no longer open, or whose send fails, are dropped
        from the registry; delivery to the others carries on regardless.
        """
        data = frames.encode_frame(event)
        sent = 0

        for session in list(self._sessions):
            if session.state is not ConnectionState.OPEN:
                self.discard(session, reason=f"state {session.state.value}")
                continue
            try:
                await session.send(text_data=data)
            except Exception as exc:
                logger.error(f"Broadcast to session failed: {exc}")
                self.discard(session, reason="send failure")
                continue
            sent += 1

        logger.info(f"📣 Broadcast '{_frame_type(event)}' delivered to {sent} session(s)")
        return sent

    async def _keepalive(self, session):
        """Probe one session at a fixed interval until it leaves the registry."""
        while True:
            await asyncio.sleep(self.keepalive_interval)
            if session not in self._sessions or session.state is not ConnectionState.OPEN:
                return
            try:
                await session.send(text_data=frames.encode_frame(frames.Ping()))
            except Exception as exc:
                logger.warning(f"Keepalive probe failed: {exc}")
                self.discard(session, reason="keepalive failure")
                return

    # --------------------------------------------------------------------------
    # Lifecycle
    # --------------------------------------------------------------------------
    async def shutdown(self):
        """Stop accepting sessions and close every tracked one with 1000."""
        self.accepting = False
        sessions = list(self._sessions)
        for session in sessions:
            if session.state is ConnectionState.OPEN:
                try:
                    await session.close(code=NORMAL_CLOSURE)
                except Exception as exc:
                    logger.error(f"Failed to close session during shutdown: {exc}")
            self.discard(session, reason="server shutdown")
        logger.info(f"Registry shut down; closed {len(sessions)} session(s).")

    def stats(self):
        return {
            "connected_clients": len(self._sessions),
            "accepting": self.accepting,
        }


class RegistryLifespan:
    """
    ASGI ``lifespan`` handler: on server shutdown, close every session held by
    ``registry`` before acknowledging. Servers without lifespan support never
    call it.
    """

    def __init__(self, registry):
        self.registry = registry

    async def __call__(self, scope, receive, send):
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                try:
                    await self.registry.shutdown()
                except Exception as exc:
                    logger.error(f"Registry shutdown failed: {exc}", exc_info=True)
                    await send({"type": "lifespan.shutdown.failed", "message": str(exc)})
                else:
                    await send({"type": "lifespan.shutdown.complete"})
                return


def _current_task():
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


def _frame_type(event):
    if isinstance(event, frames.Frame):
        return event.type
    return event.get("type", "?")
