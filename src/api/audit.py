"""Fire-and-forget audit events."""

import json
import logging

from django.core.serializers.json import DjangoJSONEncoder

from .models import AuditLog

logger = logging.getLogger(__name__)


def record_audit_event(action: str, entity_type: str, entity_id, actor=None, payload: dict | None = None) -> AuditLog | None:
    """
    Write an AuditLog row.

    Never raises: audit is not part of the operation it describes, so a
    failure here is logged and the caller carries on.

    Args:
        action: e.g. "smart_upload.approve"
        entity_type: e.g. "UploadSession"
        entity_id: Primary key of the entity
        actor: User who acted, None for automatic actions
        payload: What changed
    """
    try:
        # Round-trip through the Django encoder so UUIDs and datetimes store cleanly
        safe_payload = json.loads(json.dumps(payload or {}, cls=DjangoJSONEncoder))
        return AuditLog.objects.create(
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            actor=actor if getattr(actor, "pk", None) else None,
            payload=safe_payload,
        )
    except Exception as e:
        logger.warning(f"Failed to record audit event {action} for {entity_type} {entity_id}: {e}")
        return None
