import os

from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'roommate_finder.settings.development')

# Initialise Django before importing consumers that touch the ORM
django_asgi_app = get_asgi_application()

from channels.auth import AuthMiddlewareStack  # noqa: E402
from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402

from messaging.routing import websocket_urlpatterns as chat_urlpatterns  # noqa: E402
from roommate_matching.routing import websocket_urlpatterns as notification_urlpatterns  # noqa: E402

application = ProtocolTypeRouter({
    'http': django_asgi_app,
    'websocket': AuthMiddlewareStack(
        URLRouter(notification_urlpatterns + chat_urlpatterns)
    ),
})
