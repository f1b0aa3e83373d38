# food_ordering/asgi.py

import os

from django.core.asgi import get_asgi_application

# -----------------------------------------------------------------------------
# Environment setup
# -----------------------------------------------------------------------------
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'food_ordering.settings')

# Populates the app registry; must run before importing consumers or models.
django_asgi_app = get_asgi_application()

from django.apps import apps  # noqa: E402
from channels.auth import AuthMiddlewareStack  # noqa: E402
from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402

from storefront import routing  # noqa: E402
from storefront.realtime import RegistryLifespan  # noqa: E402

registry = apps.get_app_config("storefront").registry

# -----------------------------------------------------------------------------
# ASGI application configuration
# -----------------------------------------------------------------------------
application = ProtocolTypeRouter({
    # Handles traditional HTTP requests (REST API + admin)
    "http": django_asgi_app,

    # Order updates stream, backed by the storefront ConnectionRegistry
    "websocket": AuthMiddlewareStack(
        URLRouter(
            routing.build_websocket_urlpatterns(registry)
        )
    ),

    # Server shutdown closes every tracked session with 1000
    "lifespan": RegistryLifespan(registry),
})
