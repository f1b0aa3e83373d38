import logging

from asgiref.sync import async_to_sync
from django.db import transaction
from django.db.models.signals import post_save, pre_save
from django.dispatch import receiver

from . import frames
from .models import Order
from .serializers import serialize_order_for_channels

# -----------------------------------------------------------------------------
# Logger
# -----------------------------------------------------------------------------
logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Store previous Order status
# -----------------------------------------------------------------------------
@receiver(pre_save, sender=Order)
def store_previous_order_status(sender, instance, **kwargs):
    instance._previous_status = (
        Order.objects.filter(pk=instance.pk).values_list("status", flat=True).first()
        if instance.pk else None
    )

# -----------------------------------------------------------------------------
# Notify via WebSocket (ConnectionRegistry)
# -----------------------------------------------------------------------------
class OrderBroadcaster:
    """
    post_save receiver that pushes order events through a ConnectionRegistry.

    Events go out once the surrounding transaction commits, so a new order is
    announced together with the items saved alongside it.
    """

    def __init__(self, registry):
        self.registry = registry

    def __call__(self, sender, instance, created, **kwargs):
        if created:
            order_id = instance.pk
            transaction.on_commit(lambda: self.announce_created(order_id))
            return

        previous_status = getattr(instance, "_previous_status", None)
        if previous_status == instance.status:
            return

        event = self.status_event(instance, previous_status)
        transaction.on_commit(lambda: self.send(event))

    def announce_created(self, order_id):
        order = (
            Order.objects.select_related("customer", "coupon")
            .prefetch_related("items")
            .filter(pk=order_id)
            .first()
        )
        if order is None:
            return
        logger.info(f"🆕 New order ({order.id}) created, status={order.status}.")
        self.send(frames.OrderCreated(order=serialize_order_for_channels(order)))

    def status_event(self, order, previous_status):
        logger.info(f"🔄 Order {order.id} status changed: {previous_status} → {order.status}")
        return frames.OrderStatusChanged(orderId=str(order.id), status=order.status)

    def send(self, event):
        try:
            return async_to_sync(self.registry.broadcast)(event)
        except Exception as exc:
            logger.error(f"Order broadcast failed: {exc}", exc_info=True)
            return 0


def connect_order_broadcasts(registry):
    """Wire order saves to ``registry``; called once from StorefrontConfig.ready()."""
    broadcaster = OrderBroadcaster(registry)
    post_save.connect(
        broadcaster,
        sender=Order,
        weak=False,
        dispatch_uid="storefront.order_broadcast",
    )
    return broadcaster
