"""WebSocket notification helpers for upload status changes."""

import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

logger = logging.getLogger(__name__)

UPLOADS_GROUP = "smart_upload"


def notify_session_status(session_id, status: str, message: str = "", **extra):
    """Push an upload session status change to connected reviewers."""
    channel_layer = get_channel_layer()
    if channel_layer is None:
        logger.warning("No channel layer available for notifications")
        return

    try:
        async_to_sync(channel_layer.group_send)(
            UPLOADS_GROUP,
            {
                "type": "session.status",
                "session_id": str(session_id),
                "status": status,
                "message": message,
                **extra,
            }
        )
    except Exception as e:
        logger.warning(f"Failed to send session status notification: {e}")
