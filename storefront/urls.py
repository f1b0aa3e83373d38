from django.urls import path

from . import views

# ==============================================================================
# URL PATTERNS
# ==============================================================================
app_name = 'storefront'

urlpatterns = [
    # --------------------------------------------------------------------------
    # MENU
    # --------------------------------------------------------------------------
    path('categories/', views.CategoryListView.as_view(), name='category-list'),
    path('products/', views.ProductListView.as_view(), name='product-list'),

    # --------------------------------------------------------------------------
    # CART
    # --------------------------------------------------------------------------
    path('cart/', views.CartView.as_view(), name='cart'),
    path('cart/items/', views.CartItemsView.as_view(), name='cart-items'),
    path('cart/coupon/', views.CartCouponView.as_view(), name='cart-coupon'),

    # --------------------------------------------------------------------------
    # COUPONS
    # --------------------------------------------------------------------------
    path('coupons/validate/', views.CouponValidateView.as_view(), name='coupon-validate'),

    # --------------------------------------------------------------------------
    # ORDERS
    # --------------------------------------------------------------------------
    path('orders/', views.OrderListCreateView.as_view(), name='order-list'),
    path('orders/<uuid:pk>/', views.OrderDetailView.as_view(), name='order-detail'),
    path('orders/<uuid:pk>/status/', views.OrderStatusView.as_view(), name='order-status'),

    # --------------------------------------------------------------------------
    # REALTIME
    # --------------------------------------------------------------------------
    path('ws/stats/', views.websocket_stats, name='ws-stats'),
]
