"""
Coupon eligibility checks shared by the public validation endpoint, the
session cart and checkout.
"""

import logging

from django.utils import timezone

from .cart import to_money
from .models import Coupon, Customer

logger = logging.getLogger(__name__)


class CouponRejected(Exception):
    """A coupon cannot be used; ``status_code`` is the HTTP status to answer with."""

    def __init__(self, message, status_code=400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def validate_coupon(code, customer_phone=None, now=None) -> Coupon:
    """Return the active coupon for ``code`` or raise :class:`CouponRejected`."""
    coupon = Coupon.objects.get_by_code(code)
    if coupon is None or not coupon.is_active:
        raise CouponRejected("Coupon not found", status_code=404)

    if not coupon.is_valid_at(now or timezone.now()):
        raise CouponRejected("Coupon expired")

    if coupon.is_exhausted:
        raise CouponRejected("Coupon usage limit reached")

    if coupon.first_order_only and customer_phone:
        customer = Customer.objects.filter(phone=customer_phone).first()
        if customer and customer.total_orders > 0:
            raise CouponRejected("This coupon is only valid on a first order")

    return coupon


def validate_for_subtotal(coupon, subtotal):
    """Apply the minimum-order rule and return ``(discount, free_delivery)``."""
    subtotal = to_money(subtotal)
    if subtotal < coupon.minimum_order:
        raise CouponRejected(f"Minimum order of {to_money(coupon.minimum_order)} required")
    return coupon.discount_for(subtotal)


def apply_to_cart(cart, code, customer_phone=None):
    """Validate ``code`` against ``cart`` and return the discounted cart."""
    coupon = validate_coupon(code, customer_phone)
    discount, free_delivery = validate_for_subtotal(coupon, cart.subtotal)
    logger.info(f"🏷️ Coupon {coupon.code} applied: discount={discount} free_delivery={free_delivery}")
    return cart.apply_coupon(discount, coupon.code, free_delivery)
