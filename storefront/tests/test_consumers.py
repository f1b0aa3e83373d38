from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.test import SimpleTestCase

from storefront import frames
from storefront.realtime import ConnectionRegistry
from storefront.routing import build_websocket_urlpatterns


class OrderUpdatesConsumerTests(SimpleTestCase):
    # channels closes stale DB connections on every dispatch
    databases = {"default"}

    def setUp(self):
        self.registry = ConnectionRegistry(keepalive_interval=0)
        self.application = URLRouter(build_websocket_urlpatterns(self.registry))

    async def open(self, path="/api/ws/"):
        communicator = WebsocketCommunicator(self.application, path)
        connected, _ = await communicator.connect()
        self.assertTrue(connected)
        welcome = await communicator.receive_json_from()
        self.assertEqual(welcome["type"], "connection")
        return communicator

    async def test_connect_registers_and_greets(self):
        communicator = WebsocketCommunicator(self.application, "/api/ws/")
        connected, _ = await communicator.connect()
        self.assertTrue(connected)

        welcome = await communicator.receive_json_from()
        self.assertEqual(welcome["type"], "connection")
        self.assertEqual(welcome["message"], "Connected to the order updates channel")
        self.assertIn("timestamp", welcome)
        self.assertEqual(len(self.registry), 1)

        await communicator.disconnect()
        self.assertEqual(len(self.registry), 0)

    async def test_path_without_trailing_slash(self):
        communicator = await self.open("/api/ws")
        await communicator.disconnect()

    async def test_json_messages_are_echoed(self):
        communicator = await self.open()

        await communicator.send_json_to({"hello": "kitchen"})
        reply = await communicator.receive_json_from()

        self.assertEqual(reply["type"], "echo")
        self.assertEqual(reply["data"], {"hello": "kitchen"})
        await communicator.disconnect()

    async def test_invalid_json_gets_error_and_session_stays_open(self):
        communicator = await self.open()

        await communicator.send_to(text_data="{not json")
        reply = await communicator.receive_json_from()
        self.assertEqual(reply["type"], "error")
        self.assertEqual(reply["message"], "Invalid message format")
        self.assertEqual(len(self.registry), 1)

        await communicator.send_json_to([1, 2])
        reply = await communicator.receive_json_from()
        self.assertEqual(reply, {"type": "echo", "data": [1, 2], "timestamp": reply["timestamp"]})
        await communicator.disconnect()

    async def test_pong_frames_are_echoed(self):
        communicator = await self.open()
        await communicator.send_json_to({"type": "pong"})
        reply = await communicator.receive_json_from()
        self.assertEqual(reply, {"type": "echo", "data": {"type": "pong"}, "timestamp": reply["timestamp"]})
        await communicator.disconnect()

    async def test_broadcast_reaches_every_connected_client(self):
        first = await self.open()
        second = await self.open()

        sent = await self.registry.broadcast(frames.OrderStatusChanged(orderId="abc", status="PREPARING"))

        self.assertEqual(sent, 2)
        for communicator in (first, second):
            event = await communicator.receive_json_from()
            self.assertEqual(event["type"], "ORDER_STATUS_UPDATE")
            self.assertEqual(event["orderId"], "abc")
            self.assertEqual(event["status"], "PREPARING")
            await communicator.disconnect()

    async def test_shutdown_closes_clients_and_refuses_new_ones(self):
        communicator = await self.open()

        await self.registry.shutdown()

        closed = await communicator.receive_output()
        self.assertEqual(closed["type"], "websocket.close")
        self.assertEqual(closed["code"], 1000)
        self.assertEqual(len(self.registry), 0)
        await communicator.disconnect()

        late = WebsocketCommunicator(self.application, "/api/ws/")
        connected, _ = await late.connect()
        self.assertFalse(connected)
        await late.disconnect()

    async def test_stats_counts_live_sessions(self):
        first = await self.open()
        second = await self.open()
        self.assertEqual(self.registry.stats()["connected_clients"], 2)
        await first.disconnect()
        self.assertEqual(self.registry.stats()["connected_clients"], 1)
        await second.disconnect()
