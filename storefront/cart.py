"""
storefront/cart.py

Shopping cart aggregate.

A :class:`Cart` is an immutable value: every operation returns a new cart and
leaves the original untouched. Derived amounts (subtotal, total, item count)
are computed from the lines on access, so they can never drift from the items
even when a cart is rebuilt from tampered session data.

The cart total is advisory. Checkout re-prices every line on the server.
"""

import json
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional, Tuple

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")
DEFAULT_DELIVERY_FEE = Decimal("5.00")


def to_money(value) -> Decimal:
    """Coerce ints, floats, strings or Decimals to a two-place Decimal."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def options_key(selected_options) -> Optional[str]:
    """
    Canonical form of an option selection, used in the line identity key.

    Keys are sorted, so ``{"size": "L", "crust": "thin"}`` and
    ``{"crust": "thin", "size": "L"}`` are the same line. Lists keep their
    order. An empty selection is the same as no selection.
    """
    if not selected_options:
        return None
    return json.dumps(selected_options, sort_keys=True, separators=(",", ":"), default=str)


# ==============================================================================
# Line item
# ==============================================================================

@dataclass(frozen=True)
class CartItem:
    product_id: str
    name: str
    unit_price: Decimal
    quantity: int = 1
    selected_options: Optional[Dict[str, Any]] = None
    observation: str = ""

    @property
    def total(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)

    @property
    def key(self) -> Tuple[str, Optional[str]]:
        return (self.product_id, options_key(self.selected_options))

    def matches(self, product_id, selected_options=None) -> bool:
        return self.key == (str(product_id), options_key(selected_options))

    def with_quantity(self, quantity: int) -> "CartItem":
        return replace(self, quantity=quantity)

    def to_dict(self):
        return {
            "id": self.product_id,
            "name": self.name,
            "price": str(self.unit_price),
            "quantity": self.quantity,
            "total": str(self.total),
            "selected_options": self.selected_options,
            "observation": self.observation,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            product_id=str(data["id"]),
            name=data.get("name", ""),
            unit_price=to_money(data["price"]),
            quantity=int(data.get("quantity", 1)),
            selected_options=data.get("selected_options") or None,
            observation=data.get("observation") or "",
        )


# ==============================================================================
# Cart
# ==============================================================================

@dataclass(frozen=True)
class Cart:
    items: Tuple[CartItem, ...] = field(default_factory=tuple)
    delivery_fee: Decimal = DEFAULT_DELIVERY_FEE
    discount: Decimal = ZERO
    coupon_code: Optional[str] = None
    free_delivery: bool = False

    # --------------------------------------------------------------------------
    # Derived amounts
    # --------------------------------------------------------------------------
    @property
    def subtotal(self) -> Decimal:
        return sum((item.total for item in self.items), ZERO)

    @property
    def total(self) -> Decimal:
        return to_money(self.subtotal + self.delivery_fee - self.discount)

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def find(self, product_id, selected_options=None) -> Optional[CartItem]:
        return next((i for i in self.items if i.matches(product_id, selected_options)), None)

    # --------------------------------------------------------------------------
    # Operations
    # --------------------------------------------------------------------------
    def add_item(self, product, selected_options=None, observation=None) -> "Cart":
        """
        Add one unit of ``product``: a model instance or a mapping with ``id``
        and ``price`` (``name`` optional). An identical product/options line is
        bumped by one instead of being duplicated.
        """
        if isinstance(product, Mapping):
            product_id, name, price = product["id"], product.get("name"), product["price"]
        else:
            product_id, name, price = product.id, getattr(product, "name", ""), product.price
        product_id = str(product_id)
        existing = self.find(product_id, selected_options)

        if existing is not None:
            items = tuple(
                item.with_quantity(item.quantity + 1) if item is existing else item
                for item in self.items
            )
        else:
            new_item = CartItem(
                product_id=product_id,
                name=name or "",
                unit_price=to_money(price),
                quantity=1,
                selected_options=selected_options or None,
                observation=observation or "",
            )
            items = self.items + (new_item,)

        return replace(self, items=items)

    def update_quantity(self, product_id, delta: int, selected_options=None) -> "Cart":
        """Shift a line's quantity by ``delta``; lines reaching zero are removed."""
        existing = self.find(product_id, selected_options)
        if existing is None:
            return self

        quantity = existing.quantity + int(delta)
        items = []
        for item in self.items:
            if item is not existing:
                items.append(item)
            elif quantity > 0:
                items.append(item.with_quantity(quantity))
        return replace(self, items=tuple(items))

    def remove_item(self, product_id, selected_options=None) -> "Cart":
        items = tuple(i for i in self.items if not i.matches(product_id, selected_options))
        return replace(self, items=items)

    def apply_discount(self, discount, coupon_code=None) -> "Cart":
        """Set the discount amount. Bounds are not checked here; callers validate."""
        return replace(self, discount=to_money(discount), coupon_code=coupon_code)

    def apply_coupon(self, discount, coupon_code=None, free_delivery=False) -> "Cart":
        cart = self.apply_discount(discount, coupon_code)
        if free_delivery:
            return replace(cart, delivery_fee=ZERO, free_delivery=True)
        return cart

    def clear(self, delivery_fee=DEFAULT_DELIVERY_FEE) -> "Cart":
        return Cart(delivery_fee=to_money(delivery_fee))

    # --------------------------------------------------------------------------
    # Serialization (session storage / API responses)
    # --------------------------------------------------------------------------
    def to_dict(self):
        return {
            "items": [item.to_dict() for item in self.items],
            "subtotal": str(self.subtotal),
            "delivery_fee": str(self.delivery_fee),
            "discount": str(self.discount),
            "total": str(self.total),
            "item_count": self.item_count,
            "coupon_code": self.coupon_code,
            "free_delivery": self.free_delivery,
        }

    @classmethod
    def from_dict(cls, data, delivery_fee=DEFAULT_DELIVERY_FEE):
        """Rebuild a cart from :meth:`to_dict` output; stored totals are ignored."""
        if not data:
            return cls(delivery_fee=to_money(delivery_fee))
        return cls(
            items=tuple(CartItem.from_dict(item) for item in data.get("items", [])
                        if int(item.get("quantity", 0)) > 0),
            delivery_fee=to_money(data.get("delivery_fee", delivery_fee)),
            discount=to_money(data.get("discount", ZERO)),
            coupon_code=data.get("coupon_code"),
            free_delivery=bool(data.get("free_delivery", False)),
        )
