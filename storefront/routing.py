"""
storefront/routing.py
=====================================================================================
WebSocket route map for Django Channels.

Routes are built around an explicit ConnectionRegistry so that the consumer,
the order signals and the stats endpoint all share the same session set.
=====================================================================================
"""

from django.urls import re_path

from . import consumers

# Example connection: ws://host/api/ws/
WEBSOCKET_PATH = r"^api/ws/?$"


def build_websocket_urlpatterns(registry):
    return [
        # ---------------------------------------------------------------------
        # Order updates stream
        # New orders and status changes pushed to storefront and admin tabs
        # ---------------------------------------------------------------------
        re_path(WEBSOCKET_PATH, consumers.OrderUpdatesConsumer.as_asgi(registry=registry)),
    ]
