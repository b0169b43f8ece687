"""ASGI entry point: plain Django for HTTP, the GraphQL consumer for WebSocket subscriptions.

Serve with any ASGI server, e.g. ``daphne hackernews.asgi:application``.
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'hackernews.settings')

# set up Django before importing anything that touches models
django_asgi_app = get_asgi_application()

from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402

from hackernews.routing import websocket_urlpatterns  # noqa: E402


application = ProtocolTypeRouter({
    'http': django_asgi_app,
    'websocket': URLRouter(websocket_urlpatterns),
})
