"""
Order creation from a session cart.

The client cart is only a list of product ids, option selections and
quantities as far as this module is concerned: unit prices, the delivery fee
and any coupon discount are recomputed here before anything is persisted.
"""

import logging

from django.conf import settings
from django.db import transaction
from django.db.models import F

from . import coupons
from .cart import ZERO, to_money
from .models import Coupon, Customer, Order, OrderItem, Product

logger = logging.getLogger(__name__)


class CheckoutError(Exception):
    def __init__(self, message, status_code=400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _catalogue_pk(product_id):
    # Only plain ASCII digits can name a catalogue row.
    if product_id.isascii() and product_id.isdecimal():
        return int(product_id)
    return None


@transaction.atomic
def place_order(cart, customer_data, payment_method=Order.PaymentMethod.CASH, notes=""):
    """Persist ``cart`` as a new PENDING order and return it."""
    if cart.is_empty:
        raise CheckoutError("Cart is empty")

    # --- Re-price every line from the catalogue ---
    pks = {item.product_id: _catalogue_pk(item.product_id) for item in cart.items}
    products = Product.objects.available().in_bulk([pk for pk in pks.values() if pk is not None])
    lines = []
    for item in cart.items:
        product = products.get(pks[item.product_id])
        if product is None:
            raise CheckoutError(f"{item.name or 'A product'} is no longer available", status_code=409)
        lines.append((item, product))

    subtotal = sum((to_money(product.price) * item.quantity for item, product in lines), ZERO)
    delivery_fee = to_money(settings.DEFAULT_DELIVERY_FEE)
    discount = ZERO
    coupon = None

    phone = customer_data["phone"]

    # --- Re-validate the coupon against the server-side subtotal ---
    if cart.coupon_code:
        try:
            coupon = coupons.validate_coupon(cart.coupon_code, customer_phone=phone)
            discount, free_delivery = coupons.validate_for_subtotal(coupon, subtotal)
        except coupons.CouponRejected as exc:
            raise CheckoutError(exc.message, status_code=exc.status_code) from exc
        if free_delivery:
            delivery_fee = ZERO

    total = to_money(subtotal + delivery_fee - discount)

    customer, _ = Customer.objects.update_or_create(
        phone=phone,
        defaults={
            key: value for key, value in customer_data.items()
            if key != "phone" and value not in (None, "")
        },
    )

    order = Order.objects.create(
        customer=customer,
        coupon=coupon,
        payment_method=payment_method,
        subtotal=subtotal,
        delivery_fee=delivery_fee,
        discount=discount,
        total=total,
        notes=notes or "",
    )
    for item, product in lines:
        OrderItem.objects.create(
            order=order,
            product=product,
            product_name=product.name,
            unit_price=product.price,
            quantity=item.quantity,
            selected_options=item.selected_options,
            observation=item.observation,
        )

    if coupon is not None:
        Coupon.objects.filter(pk=coupon.pk).update(usage_count=F("usage_count") + 1)
    customer.record_order(total)

    if total != cart.total:
        logger.warning(
            f"Client cart total {cart.total} differs from server total {total} for order {order.id}"
        )
    logger.info(f"🧾 Order {order.id} placed by {customer.phone}: total={total}")
    return order
