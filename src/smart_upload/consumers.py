"""
WebSocket Consumer for Smart Upload status events

Protocol:
1. Client connects to /ws/uploads/?token=<jwt> OR ?api_key=xxx
2. Server sends the current review counts:
   - {"type": "stats", "pending": 3, "approved": 10, "rejected": 1}
3. Server relays every session status change as it happens:
   - {"type": "status", "session_id": "...", "status": "parsed", "message": "Analysis complete", ...}
"""

import json
import logging
from urllib.parse import parse_qs

from asgiref.sync import sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework_simplejwt.tokens import AccessToken

from src.api.auth import check_api_key
from src.tasks.notifications import UPLOADS_GROUP
from .review import session_stats

logger = logging.getLogger(__name__)


class UploadEventsConsumer(AsyncWebsocketConsumer):
    """
    Streams upload session status changes to reviewers.

    Accepts either:
    - ?token=<jwt> - JWT authentication
    - ?api_key=<key> - API key authentication
    """

    async def connect(self):
        """Handle WebSocket connection."""
        query_string = self.scope.get("query_string", b"").decode()
        params = parse_qs(query_string)

        token = params.get("token", [None])[0]
        if token:
            try:
                AccessToken(token)
            except (InvalidToken, TokenError):
                await self.close(code=4001)  # Unauthorized
                return
        else:
            api_key = params.get("api_key", [None])[0]
            if not api_key or not check_api_key(api_key):
                await self.close(code=4001)  # Unauthorized
                return

        self.group_name = UPLOADS_GROUP
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()

        await self.send_stats()

    async def disconnect(self, close_code):
        """Handle WebSocket disconnection."""
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def send_stats(self):
        stats = await sync_to_async(session_stats)()
        await self.send_json({"type": "stats", **stats})

    # Handler for notify_session_status (via channel layer)
    async def session_status(self, event):
        """Relay a session status change."""
        payload = {key: value for key, value in event.items() if key != "type"}
        await self.send_json({"type": "status", **payload})

    async def send_json(self, data: dict):
        """Send JSON message to client."""
        await self.send(text_data=json.dumps(data))
