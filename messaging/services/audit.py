import logging
from typing import Any, Dict, Optional

from django.db import DatabaseError, transaction

from messaging.models import AuditEvent

logger = logging.getLogger(__name__)


def log_action(*, user_id: Optional[int], action: str, object_type: Optional[str] = None,
               object_id: Optional[int] = None, detail: Optional[Dict[str, Any]] = None) -> Optional[AuditEvent]:
    """Record an audit row for ``action``.

    Auditing never fails the operation being audited: a write error is
    logged and ``None`` is returned.
    """
    try:
        with transaction.atomic():
            return AuditEvent.objects.create(
                user_id=user_id,
                action=action,
                object_type=object_type,
                object_id=object_id,
                detail=detail or {},
            )
    except DatabaseError:
        logger.warning("audit %s for %s:%s not recorded", action, object_type, object_id, exc_info=True)
        return None
