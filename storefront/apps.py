# storefront/apps.py

import logging

from django.apps import AppConfig
from django.conf import settings


class StorefrontConfig(AppConfig):
    """App configuration for the Storefront application."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'storefront'
    verbose_name = "Storefront"

    registry = None

    def ready(self):
        """
        Build the process-wide ConnectionRegistry and bind order signals to it.
        The registry lives for the whole process; ASGI lifespan shutdown
        closes its sessions.
        """
        from . import signals  # noqa: F401  # registers pre_save receivers
        from .realtime import ConnectionRegistry

        self.registry = ConnectionRegistry(
            keepalive_interval=settings.WEBSOCKET_KEEPALIVE_INTERVAL,
        )
        signals.connect_order_broadcasts(self.registry)
        logging.getLogger(__name__).info("✅ storefront realtime registry ready.")
