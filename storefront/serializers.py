# storefront/serializers.py

from rest_framework import serializers

from .models import Category, Coupon, Order, OrderItem, Product


# ==============================================================================
# Menu Serializers
# ==============================================================================

class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ['id', 'name', 'description', 'sort_order']


class ProductSerializer(serializers.ModelSerializer):
    """Serializer for menu products."""

    category_name = serializers.CharField(source='category.name', read_only=True)

    class Meta:
        model = Product
        fields = [
            'id',
            'name',
            'description',
            'price',
            'image_url',
            'category',
            'category_name',
            'is_available',
        ]


class CouponSerializer(serializers.ModelSerializer):
    class Meta:
        model = Coupon
        fields = [
            'code',
            'name',
            'description',
            'type',
            'value',
            'minimum_order',
            'maximum_discount',
            'free_delivery',
            'valid_until',
        ]
        read_only_fields = fields


# ==============================================================================
# Cart Request Serializers
# ==============================================================================

class CartLineSerializer(serializers.Serializer):
    """Identifies one cart line: product plus option selection."""

    product_id = serializers.IntegerField(min_value=1)
    selected_options = serializers.JSONField(required=False, allow_null=True, default=None)

    def validate_selected_options(self, value):
        if value is not None and not isinstance(value, dict):
            raise serializers.ValidationError("Options must be a JSON object.")
        return value


class CartAddSerializer(CartLineSerializer):
    observation = serializers.CharField(required=False, allow_blank=True, default="")


class CartQuantitySerializer(CartLineSerializer):
    delta = serializers.IntegerField()


class CouponCodeSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=40)
    customer_phone = serializers.CharField(max_length=16, required=False, allow_blank=True)


# ==============================================================================
# Order Serializers
# ==============================================================================

class OrderItemSerializer(serializers.ModelSerializer):
    """Serializer for individual items within an order."""

    class Meta:
        model = OrderItem
        fields = [
            'id',
            'product',
            'product_name',
            'unit_price',
            'quantity',
            'selected_options',
            'observation',
            'total',
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """
    Main serializer for the Order model.
    Includes nested items for both API reads and WebSocket broadcasts.
    """

    items = OrderItemSerializer(many=True, read_only=True)
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    customer_phone = serializers.CharField(source='customer.phone', read_only=True)
    coupon_code = serializers.CharField(source='coupon.code', read_only=True, default=None)
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = Order
        fields = [
            'id',
            'customer_name',
            'customer_phone',
            'status',
            'status_display',
            'payment_method',
            'subtotal',
            'delivery_fee',
            'discount',
            'total',
            'coupon_code',
            'notes',
            'created_at',
            'updated_at',
            'items',
        ]


class CheckoutSerializer(serializers.Serializer):
    """Customer details submitted with the session cart at checkout."""

    name = serializers.CharField(max_length=120)
    phone = serializers.RegexField(r'^\+?\d{8,15}$', max_length=16)
    email = serializers.EmailField(required=False, allow_blank=True)
    address = serializers.CharField(max_length=255)
    neighborhood = serializers.CharField(max_length=120, required=False, allow_blank=True)
    city = serializers.CharField(max_length=120, required=False, allow_blank=True)
    reference = serializers.CharField(max_length=255, required=False, allow_blank=True)
    payment_method = serializers.ChoiceField(choices=Order.PaymentMethod.choices, default=Order.PaymentMethod.CASH)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Order.Status.choices)


# ==============================================================================
# Integration Helper: Build payloads for WebSocket broadcasts
# ==============================================================================

def serialize_order_for_channels(order):
    """
    Helper for WebSocket broadcasting; returns plain JSON-safe data.

    Usage:
        await registry.broadcast(frames.OrderCreated(order=serialize_order_for_channels(order)))
    """
    return dict(OrderSerializer(order).data)
