from django.conf import settings

from .cart import Cart

SESSION_KEY = "storefront_cart"


class CartSession:
    """
    Per-request handle on the cart stored in the Django session.

    Views build one from the request, read ``cart``, and ``save()`` whatever
    new cart value an operation returned. The session always holds a whole
    cart, never a partially updated one.
    """

    def __init__(self, session, delivery_fee=None):
        self.session = session
        self.delivery_fee = settings.DEFAULT_DELIVERY_FEE if delivery_fee is None else delivery_fee
        self.cart = Cart.from_dict(session.get(SESSION_KEY), delivery_fee=self.delivery_fee)

    @classmethod
    def from_request(cls, request):
        return cls(request.session)

    def save(self, cart):
        self.cart = cart
        self.session[SESSION_KEY] = cart.to_dict()
        self.session.modified = True
        return cart

    def clear(self):
        return self.save(self.cart.clear(delivery_fee=self.delivery_fee))
