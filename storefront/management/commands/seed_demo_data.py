from datetime import timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from storefront.models import Category, Coupon, Product

MENU = {
    "Burgers": [
        ("Classic Burger", "Beef patty, cheddar, lettuce and tomato.", "12.50"),
        ("Bacon Burger", "Beef patty, crispy bacon and smoked cheese.", "15.90"),
        ("Veggie Burger", "Chickpea patty with avocado.", "13.00"),
    ],
    "Pizzas": [
        ("Margherita", "Tomato, mozzarella and basil.", "32.00"),
        ("Pepperoni", "Tomato, mozzarella and pepperoni.", "38.00"),
    ],
    "Sides": [
        ("Fries", "Crispy fries.", "8.00"),
        ("Onion Rings", "Beer-battered onion rings.", "9.50"),
    ],
    "Drinks": [
        ("Soda", "350ml can.", "5.00"),
        ("Orange Juice", "Freshly squeezed, 500ml.", "9.00"),
    ],
}


class Command(BaseCommand):
    help = 'Seed the database with a demo menu and coupons'

    @transaction.atomic
    def handle(self, *args, **kwargs):
        for sort_order, (category_name, products) in enumerate(MENU.items()):
            category, _ = Category.objects.get_or_create(
                name=category_name, defaults={"sort_order": sort_order}
            )
            for name, description, price in products:
                _, created = Product.objects.get_or_create(
                    category=category,
                    name=name,
                    defaults={"description": description, "price": Decimal(price)},
                )
                if created:
                    self.stdout.write(f"Creating Product: {category_name} / {name} ({price})")

        coupons = [
            dict(code="WELCOME10", name="Welcome 10%", type=Coupon.Type.PERCENTAGE,
                 value=Decimal("10"), maximum_discount=Decimal("20.00"), first_order_only=True),
            dict(code="MINUS5", name="5 off orders over 40", type=Coupon.Type.FIXED,
                 value=Decimal("5.00"), minimum_order=Decimal("40.00")),
            dict(code="FREESHIP", name="Free delivery", type=Coupon.Type.FREE_DELIVERY,
                 usage_limit=100, valid_until=timezone.now() + timedelta(days=30)),
        ]
        for data in coupons:
            code = data.pop("code")
            _, created = Coupon.objects.get_or_create(code=code, defaults=data)
            if created:
                self.stdout.write(f"Creating Coupon: {code}")

        self.stdout.write(self.style.SUCCESS("Demo data ready."))
