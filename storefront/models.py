import uuid
from decimal import Decimal

from django.core.validators import MinValueValidator, RegexValidator
from django.db import models
from django.utils import timezone

from .cart import CENTS, ZERO, to_money

# =============================================================================
# === BASE MANAGERS & UTILITIES ==============================================
# =============================================================================

class ProductManager(models.Manager):
    def available(self):
        return self.filter(is_available=True, category__is_active=True)


class CouponManager(models.Manager):
    def get_by_code(self, code):
        return self.filter(code__iexact=(code or "").strip()).first()


phone_regex = RegexValidator(
    regex=r'^\+?\d{8,15}$',
    message="Use digits only, optionally prefixed with +. 8 to 15 digits."
)

# =============================================================================
# === MENU ====================================================================
# =============================================================================

class Category(models.Model):
    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)
    sort_order = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["sort_order", "name"]
        verbose_name_plural = "Categories"

    def __str__(self):
        return self.name


class Product(models.Model):
    """A dish or drink offered on the storefront menu."""
    category = models.ForeignKey(
        Category,
        on_delete=models.PROTECT,
        related_name="products"
    )
    name = models.CharField(max_length=120)
    description = models.TextField(blank=True)
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))]
    )
    image_url = models.URLField(blank=True)
    is_available = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ProductManager()

    class Meta:
        ordering = ["category", "name"]
        unique_together = ("category", "name")

    def __str__(self):
        return f"{self.name} ({self.price})"

# =============================================================================
# === CUSTOMERS ===============================================================
# =============================================================================

class Customer(models.Model):
    """Delivery customer, identified by phone number (no account required)."""
    name = models.CharField(max_length=120)
    phone = models.CharField(validators=[phone_regex], max_length=16, unique=True)
    email = models.EmailField(blank=True)
    address = models.CharField(max_length=255)
    neighborhood = models.CharField(max_length=120, blank=True)
    city = models.CharField(max_length=120, blank=True)
    reference = models.CharField(max_length=255, blank=True)
    total_orders = models.PositiveIntegerField(default=0)
    total_spent = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.name} ({self.phone})"

    def record_order(self, amount: Decimal):
        self.total_orders += 1
        self.total_spent += amount
        self.save(update_fields=["total_orders", "total_spent"])

# =============================================================================
# === COUPONS =================================================================
# =============================================================================

class Coupon(models.Model):
    class Type(models.TextChoices):
        PERCENTAGE = 'PERCENTAGE', 'Percentage'
        FIXED = 'FIXED', 'Fixed amount'
        FREE_DELIVERY = 'FREE_DELIVERY', 'Free delivery'

    code = models.CharField(max_length=40, unique=True)
    name = models.CharField(max_length=120)
    description = models.TextField(blank=True)
    type = models.CharField(max_length=20, choices=Type.choices, default=Type.PERCENTAGE)
    value = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    minimum_order = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    maximum_discount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    usage_limit = models.PositiveIntegerField(null=True, blank=True)
    usage_count = models.PositiveIntegerField(default=0)
    valid_from = models.DateTimeField(default=timezone.now)
    valid_until = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    free_delivery = models.BooleanField(default=False)
    first_order_only = models.BooleanField(
        default=False,
        help_text="Only customers without previous orders may use this coupon."
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = CouponManager()

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.code} ({self.get_type_display()})"

    def save(self, *args, **kwargs):
        self.code = self.code.upper().strip()
        super().save(*args, **kwargs)

    @property
    def is_exhausted(self) -> bool:
        return self.usage_limit is not None and self.usage_count >= self.usage_limit

    def is_valid_at(self, when=None) -> bool:
        when = when or timezone.now()
        if when < self.valid_from:
            return False
        return self.valid_until is None or when <= self.valid_until

    def discount_for(self, subtotal):
        """
        Return ``(discount, free_delivery)`` for a cart subtotal.
        Callers check ``minimum_order`` first (see coupons.validate_for_subtotal).
        """
        subtotal = to_money(subtotal)
        free_delivery = self.free_delivery or self.type == self.Type.FREE_DELIVERY

        if self.type == self.Type.PERCENTAGE:
            discount = (subtotal * Decimal(str(self.value)) / Decimal("100")).quantize(CENTS)
            if self.maximum_discount is not None:
                discount = min(discount, self.maximum_discount)
        elif self.type == self.Type.FIXED:
            discount = to_money(self.value)
        else:
            discount = ZERO

        return min(to_money(discount), subtotal), free_delivery

# =============================================================================
# === ORDERS ==================================================================
# =============================================================================

class Order(models.Model):
    class Status(models.TextChoices):
        PENDING = 'PENDING', 'Pending'
        CONFIRMED = 'CONFIRMED', 'Confirmed'
        PREPARING = 'PREPARING', 'Preparing'
        READY = 'READY', 'Ready'
        OUT_DELIVERY = 'OUT_DELIVERY', 'Out for delivery'
        DELIVERED = 'DELIVERED', 'Delivered'
        CANCELLED = 'CANCELLED', 'Cancelled'

    class PaymentMethod(models.TextChoices):
        CASH = 'CASH', 'Cash on delivery'
        CARD = 'CARD', 'Card'
        PIX = 'PIX', 'PIX'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name="orders")
    coupon = models.ForeignKey(Coupon, null=True, blank=True, on_delete=models.SET_NULL, related_name="orders")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    payment_method = models.CharField(max_length=10, choices=PaymentMethod.choices, default=PaymentMethod.CASH)
    subtotal = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    delivery_fee = models.DecimalField(max_digits=8, decimal_places=2, default=Decimal("0.00"))
    discount = models.DecimalField(max_digits=8, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"Order {str(self.id)[:8]} ({self.get_status_display()})"

    def elapsed_time(self):
        """Return how long ago the order was created (timedelta)."""
        return timezone.now() - self.created_at


class OrderItem(models.Model):
    """Snapshot of one cart line at checkout time."""
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="order_items")
    product_name = models.CharField(max_length=120)
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    selected_options = models.JSONField(null=True, blank=True)
    observation = models.TextField(blank=True)
    total = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))

    def save(self, *args, **kwargs):
        self.total = to_money(self.unit_price * self.quantity)
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.quantity}x {self.product_name}"
