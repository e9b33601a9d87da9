"""
WebSocket URL routing.
"""

from django.urls import path

from src.smart_upload.consumers import UploadEventsConsumer

websocket_urlpatterns = [
    path("ws/uploads/", UploadEventsConsumer.as_asgi()),
]
