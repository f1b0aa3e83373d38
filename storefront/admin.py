# storefront/admin.py
import logging

from django.contrib import admin
from unfold.admin import ModelAdmin, TabularInline

from .models import Category, Coupon, Customer, Order, OrderItem, Product

logger = logging.getLogger(__name__)

# =============================================================================
# === GLOBAL UTILITIES ========================================================
# =============================================================================

@admin.action(description="Mark selected as unavailable")
def mark_unavailable(modeladmin, request, queryset):
    queryset.update(is_available=False)

@admin.action(description="Mark selected as available")
def mark_available(modeladmin, request, queryset):
    queryset.update(is_available=True)


def set_status_action(status):
    """Admin action saving each order so status broadcasts fire."""
    @admin.action(description=f"Set status to {status.label}")
    def action(modeladmin, request, queryset):
        for order in queryset:
            order.status = status
            order.save(update_fields=["status", "updated_at"])
        logger.info(f"{request.user} set {queryset.count()} order(s) to {status}")
    action.__name__ = f"set_status_{status.value.lower()}"
    return action


# =============================================================================
# === MENU ADMIN ==============================================================
# =============================================================================

@admin.register(Category)
class CategoryAdmin(ModelAdmin):
    list_display = ("name", "sort_order", "is_active")
    list_editable = ("sort_order", "is_active")
    search_fields = ("name",)


@admin.register(Product)
class ProductAdmin(ModelAdmin):
    list_display = ("name", "category", "price", "is_available", "updated_at")
    list_filter = ("category", "is_available")
    search_fields = ("name", "description")
    list_editable = ("price", "is_available")
    actions = [mark_available, mark_unavailable]
    ordering = ("category", "name")


# =============================================================================
# === CUSTOMER & COUPON ADMIN =================================================
# =============================================================================

@admin.register(Customer)
class CustomerAdmin(ModelAdmin):
    list_display = ("name", "phone", "email", "total_orders", "total_spent", "created_at")
    search_fields = ("name", "phone", "email")
    readonly_fields = ("total_orders", "total_spent", "created_at")
    ordering = ("-created_at",)


@admin.register(Coupon)
class CouponAdmin(ModelAdmin):
    list_display = ("code", "type", "value", "usage_count", "usage_limit", "valid_until", "is_active")
    list_filter = ("type", "is_active", "free_delivery", "first_order_only")
    search_fields = ("code", "name")
    readonly_fields = ("usage_count", "created_at", "updated_at")


# =============================================================================
# === ORDER ADMIN =============================================================
# =============================================================================

class OrderItemInline(TabularInline):
    model = OrderItem
    extra = 0
    fields = ("product_name", "unit_price", "quantity", "selected_options", "observation", "total")
    readonly_fields = fields
    can_delete = False


@admin.register(Order)
class OrderAdmin(ModelAdmin):
    list_display = ("short_id", "customer", "status", "payment_method", "total", "created_at")
    list_filter = ("status", "payment_method", "created_at")
    search_fields = ("id", "customer__name", "customer__phone")
    readonly_fields = ("subtotal", "delivery_fee", "discount", "total", "created_at", "updated_at")
    inlines = [OrderItemInline]
    actions = [set_status_action(s) for s in Order.Status]
    ordering = ("-created_at",)

    @admin.display(description="Order")
    def short_id(self, obj):
        return str(obj.id)[:8]
