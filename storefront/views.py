import logging

from django.apps import apps
from django.shortcuts import get_object_or_404
from rest_framework import generics, permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.views import APIView

from . import coupons
from .checkout import CheckoutError, place_order
from .models import Category, Order, Product
from .serializers import (
    CartAddSerializer, CartLineSerializer, CartQuantitySerializer,
    CategorySerializer, CheckoutSerializer, CouponCodeSerializer,
    CouponSerializer, OrderSerializer, OrderStatusSerializer, ProductSerializer,
)
from .session import CartSession

logger = logging.getLogger(__name__)


def error_response(message, status_code=status.HTTP_400_BAD_REQUEST):
    return Response({"error": message}, status=status_code)


# ==============================================================================
# MENU
# ==============================================================================

class CategoryListView(generics.ListAPIView):
    serializer_class = CategorySerializer
    permission_classes = [permissions.AllowAny]
    pagination_class = None
    queryset = Category.objects.filter(is_active=True)


class ProductListView(generics.ListAPIView):
    """Available products, optionally filtered with ?category=<id>."""
    serializer_class = ProductSerializer
    permission_classes = [permissions.AllowAny]
    pagination_class = None

    def get_queryset(self):
        qs = Product.objects.available().select_related("category")
        category = self.request.query_params.get("category")
        if category:
            qs = qs.filter(category_id=category)
        return qs


# ==============================================================================
# CART (session-backed)
# ==============================================================================

class CartView(APIView):
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        return Response(CartSession.from_request(request).cart.to_dict())

    def delete(self, request):
        return Response(CartSession.from_request(request).clear().to_dict())


class CartItemsView(APIView):
    """Add, re-quantify and remove cart lines keyed by (product, options)."""
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = CartAddSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        product = Product.objects.available().filter(pk=data["product_id"]).first()
        if product is None:
            return error_response("Product not available", status.HTTP_404_NOT_FOUND)

        session = CartSession.from_request(request)
        cart = session.save(session.cart.add_item(
            product,
            selected_options=data["selected_options"],
            observation=data["observation"],
        ))
        return Response(cart.to_dict(), status=status.HTTP_201_CREATED)

    def patch(self, request):
        serializer = CartQuantitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        session = CartSession.from_request(request)
        cart = session.save(session.cart.update_quantity(
            data["product_id"], data["delta"], selected_options=data["selected_options"],
        ))
        return Response(cart.to_dict())

    def delete(self, request):
        serializer = CartLineSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        session = CartSession.from_request(request)
        cart = session.save(session.cart.remove_item(
            data["product_id"], selected_options=data["selected_options"],
        ))
        return Response(cart.to_dict())


class CartCouponView(APIView):
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = CouponCodeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        session = CartSession.from_request(request)
        try:
            cart = coupons.apply_to_cart(session.cart, data["code"], data.get("customer_phone") or None)
        except coupons.CouponRejected as exc:
            return error_response(exc.message, exc.status_code)
        return Response(session.save(cart).to_dict())


# ==============================================================================
# COUPONS
# ==============================================================================

class CouponValidateView(APIView):
    """Public coupon check used by the checkout form."""
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = CouponCodeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            coupon = coupons.validate_coupon(data["code"], data.get("customer_phone") or None)
        except coupons.CouponRejected as exc:
            return error_response(exc.message, exc.status_code)
        return Response(CouponSerializer(coupon).data)


# ==============================================================================
# ORDERS
# ==============================================================================

class OrderListCreateView(APIView):
    """GET lists orders for staff; POST checks out the session cart."""

    def get_permissions(self):
        if self.request.method == "POST":
            return [permissions.AllowAny()]
        return [permissions.IsAdminUser()]

    def get(self, request):
        qs = Order.objects.select_related("customer", "coupon").prefetch_related("items")
        status_filter = request.query_params.get("status")
        if status_filter:
            qs = qs.filter(status=status_filter.upper())
        return Response(OrderSerializer(qs[:100], many=True).data)

    def post(self, request):
        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        payment_method = data.pop("payment_method")
        notes = data.pop("notes", "")

        session = CartSession.from_request(request)
        try:
            order = place_order(session.cart, data, payment_method=payment_method, notes=notes)
        except CheckoutError as exc:
            return error_response(exc.message, exc.status_code)

        session.clear()
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)


class OrderDetailView(generics.RetrieveAPIView):
    """Order tracking by its unguessable UUID."""
    serializer_class = OrderSerializer
    permission_classes = [permissions.AllowAny]
    queryset = Order.objects.select_related("customer", "coupon").prefetch_related("items")


class OrderStatusView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def put(self, request, pk):
        order = get_object_or_404(Order, pk=pk)
        serializer = OrderStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order.status = serializer.validated_data["status"]
        order.save(update_fields=["status", "updated_at"])
        logger.info(f"Order {order.id} set to {order.status} by {request.user}")
        return Response(OrderSerializer(order).data)

    patch = put


# ==============================================================================
# REALTIME
# ==============================================================================

@api_view(["GET"])
@permission_classes([permissions.IsAdminUser])
def websocket_stats(request):
    registry = apps.get_app_config("storefront").registry
    return Response(registry.stats())
