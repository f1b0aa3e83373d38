import asyncio
import json

from django.test import SimpleTestCase

from storefront import frames
from storefront.realtime import ConnectionRegistry, ConnectionState, RegistryLifespan


class FakeSession:
    """Stands in for a consumer: records frames and close codes."""

    def __init__(self, fail=False):
        self.state = ConnectionState.OPEN
        self.fail = fail
        self.sent = []
        self.close_code = None

    async def send(self, text_data=None):
        if self.fail:
            raise ConnectionResetError("peer went away")
        self.sent.append(json.loads(text_data))

    async def close(self, code=None):
        self.close_code = code
        self.state = ConnectionState.CLOSED


class RegistryMembershipTests(SimpleTestCase):
    def setUp(self):
        self.registry = ConnectionRegistry(keepalive_interval=0)

    def test_add_and_discard(self):
        session = FakeSession()
        self.assertTrue(self.registry.add(session))
        self.assertIn(session, self.registry)
        self.assertEqual(len(self.registry), 1)

        self.registry.discard(session, reason="closed")
        self.assertNotIn(session, self.registry)
        self.assertEqual(len(self.registry), 0)

    def test_discard_unknown_session_is_ignored(self):
        self.registry.discard(FakeSession())
        self.assertEqual(len(self.registry), 0)

    def test_stats(self):
        self.registry.add(FakeSession())
        self.assertEqual(self.registry.stats(), {"connected_clients": 1, "accepting": True})


class BroadcastTests(SimpleTestCase):
    def setUp(self):
        self.registry = ConnectionRegistry(keepalive_interval=0)

    async def test_broadcast_with_one_failing_session(self):
        ok_a, broken, ok_b = FakeSession(), FakeSession(fail=True), FakeSession()
        for session in (ok_a, broken, ok_b):
            self.registry.add(session)

        sent = await self.registry.broadcast(frames.OrderStatusChanged(orderId="42", status="READY"))

        self.assertEqual(sent, 2)
        self.assertNotIn(broken, self.registry)
        self.assertEqual(len(self.registry), 2)
        for session in (ok_a, ok_b):
            self.assertEqual(len(session.sent), 1)
            self.assertEqual(session.sent[0]["type"], "ORDER_STATUS_UPDATE")
            self.assertEqual(session.sent[0]["orderId"], "42")
            self.assertIn("timestamp", session.sent[0])

    async def test_sessions_not_open_are_skipped_and_dropped(self):
        open_session, closing = FakeSession(), FakeSession()
        closing.state = ConnectionState.CLOSING
        self.registry.add(open_session)
        self.registry.add(closing)

        sent = await self.registry.broadcast({"type": "ORDER_UPDATED", "data": {}})

        self.assertEqual(sent, 1)
        self.assertEqual(closing.sent, [])
        self.assertNotIn(closing, self.registry)

    async def test_broadcast_to_nobody(self):
        self.assertEqual(await self.registry.broadcast(frames.Ping()), 0)

    async def test_every_session_gets_the_same_timestamp(self):
        a, b = FakeSession(), FakeSession()
        self.registry.add(a)
        self.registry.add(b)
        await self.registry.broadcast(frames.OrderCreated(order={"id": "1"}))
        self.assertEqual(a.sent[0], b.sent[0])


class KeepaliveTests(SimpleTestCase):
    async def test_open_sessions_receive_ping_frames(self):
        registry = ConnectionRegistry(keepalive_interval=0.01)
        session = FakeSession()
        registry.add(session)

        await asyncio.sleep(0.05)
        registry.discard(session)

        self.assertTrue(session.sent)
        self.assertTrue(all(frame["type"] == "ping" for frame in session.sent))

    async def test_discard_stops_keepalive(self):
        registry = ConnectionRegistry(keepalive_interval=0.01)
        session = FakeSession()
        registry.add(session)
        registry.discard(session)

        await asyncio.sleep(0.05)

        self.assertEqual(session.sent, [])
        self.assertEqual(registry._keepalives, {})

    async def test_failed_ping_drops_session(self):
        registry = ConnectionRegistry(keepalive_interval=0.01)
        session = FakeSession(fail=True)
        registry.add(session)

        await asyncio.sleep(0.05)

        self.assertNotIn(session, registry)


class ShutdownTests(SimpleTestCase):
    async def test_shutdown_closes_open_sessions_with_normal_closure(self):
        registry = ConnectionRegistry(keepalive_interval=0)
        sessions = [FakeSession(), FakeSession()]
        for session in sessions:
            registry.add(session)

        await registry.shutdown()

        self.assertEqual([s.close_code for s in sessions], [1000, 1000])
        self.assertEqual(len(registry), 0)
        self.assertFalse(registry.accepting)

    async def test_no_sessions_accepted_after_shutdown(self):
        registry = ConnectionRegistry(keepalive_interval=0)
        await registry.shutdown()
        self.assertFalse(registry.add(FakeSession()))
        self.assertEqual(len(registry), 0)

    async def test_lifespan_shutdown_closes_registry(self):
        registry = ConnectionRegistry(keepalive_interval=0)
        session = FakeSession()
        registry.add(session)

        incoming = [{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}]
        outgoing = []

        async def receive():
            return incoming.pop(0)

        async def send(message):
            outgoing.append(message)

        await RegistryLifespan(registry)({"type": "lifespan"}, receive, send)

        self.assertEqual(
            [m["type"] for m in outgoing],
            ["lifespan.startup.complete", "lifespan.shutdown.complete"],
        )
        self.assertEqual(session.close_code, 1000)
        self.assertFalse(registry.accepting)
