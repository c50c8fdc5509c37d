from django.urls import path
from . import consumers

websocket_urlpatterns = [
    # Notifications WebSocket for the connected user's profile
    path(
        'ws/notifications/',
        consumers.NotificationConsumer.as_asgi()
    ),
]
