from decimal import Decimal
from io import StringIO

from django.apps import apps
from django.core.management import call_command
from django.db.models.signals import post_save
from django.test import TestCase

from storefront import frames
from storefront.models import Category, Coupon, Customer, Order, OrderItem, Product
from storefront.realtime import ConnectionRegistry
from storefront.signals import OrderBroadcaster


class RecordingRegistry:
    def __init__(self, fail=False):
        self.events = []
        self.fail = fail

    async def broadcast(self, event):
        if self.fail:
            raise RuntimeError("registry unavailable")
        self.events.append(event)
        return 1


class OrderBroadcastTests(TestCase):
    def setUp(self):
        self.registry = RecordingRegistry()
        post_save.connect(OrderBroadcaster(self.registry), sender=Order, weak=False, dispatch_uid="test_broadcast")
        self.addCleanup(post_save.disconnect, sender=Order, dispatch_uid="test_broadcast")

        category = Category.objects.create(name="Burgers")
        self.product = Product.objects.create(category=category, name="Classic", price=Decimal("12.50"))
        self.customer = Customer.objects.create(name="Ana", phone="5511999990000", address="Rua 1")

    def create_order(self):
        order = Order.objects.create(
            customer=self.customer, subtotal=Decimal("12.50"),
            delivery_fee=Decimal("5.00"), total=Decimal("17.50"),
        )
        OrderItem.objects.create(
            order=order, product=self.product, product_name="Classic",
            unit_price=Decimal("12.50"), quantity=1,
        )
        return order

    def test_new_order_is_announced_with_items_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            order = self.create_order()
            self.assertEqual(self.registry.events, [])

        self.assertEqual(len(self.registry.events), 1)
        event = self.registry.events[0]
        self.assertIsInstance(event, frames.OrderCreated)
        self.assertEqual(event.order["id"], str(order.id))
        self.assertEqual(event.order["total"], "17.50")
        self.assertEqual(len(event.order["items"]), 1)

    def test_status_change_is_announced(self):
        with self.captureOnCommitCallbacks(execute=True):
            order = self.create_order()

        with self.captureOnCommitCallbacks(execute=True):
            order.status = Order.Status.CONFIRMED
            order.save()

        self.assertEqual(
            self.registry.events[-1],
            frames.OrderStatusChanged(orderId=str(order.id), status="CONFIRMED"),
        )

    def test_save_without_status_change_is_silent(self):
        with self.captureOnCommitCallbacks(execute=True):
            order = self.create_order()

        with self.captureOnCommitCallbacks(execute=True):
            order.notes = "Leave at the door"
            order.save()

        self.assertEqual(len(self.registry.events), 1)

    def test_nothing_is_sent_before_commit(self):
        with self.captureOnCommitCallbacks(execute=False) as callbacks:
            self.create_order()
        self.assertTrue(callbacks)
        self.assertEqual(self.registry.events, [])

    def test_broadcast_failure_is_swallowed(self):
        broadcaster = OrderBroadcaster(RecordingRegistry(fail=True))
        self.assertEqual(broadcaster.send(frames.OrderUpdated(data={})), 0)

    def test_real_registry_with_no_sessions(self):
        broadcaster = OrderBroadcaster(ConnectionRegistry(keepalive_interval=0))
        self.assertEqual(broadcaster.send(frames.OrderUpdated(data={})), 0)


class AppWiringTests(TestCase):
    def test_app_config_owns_a_registry(self):
        registry = apps.get_app_config("storefront").registry
        self.assertIsInstance(registry, ConnectionRegistry)
        self.assertTrue(registry.accepting)


class SeedDemoDataTests(TestCase):
    def test_seed_is_idempotent(self):
        call_command("seed_demo_data", stdout=StringIO())
        products = Product.objects.count()
        coupons = Coupon.objects.count()

        call_command("seed_demo_data", stdout=StringIO())

        self.assertGreater(products, 0)
        self.assertEqual(Product.objects.count(), products)
        self.assertEqual(Coupon.objects.count(), coupons)
        self.assertTrue(Coupon.objects.filter(code="WELCOME10", first_order_only=True).exists())
