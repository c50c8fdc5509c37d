from django.urls import re_path
from . import consumers

websocket_urlpatterns = [
    # Chat WebSocket for a specific match
    re_path(
        r'ws/chat/(?P<match_id>[0-9a-f-]+)/$',
        consumers.ChatConsumer.as_asgi()
    ),
]
