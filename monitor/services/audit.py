import logging
from typing import Optional, Any, Dict
from django.contrib.auth import get_user_model
from django.db import transaction
from monitor.models import AuditEvent

logger = logging.getLogger(__name__)
User = get_user_model()

def log_action(*, user: Optional[User], action: str, object_type: Optional[str]=None, object_id: Optional[Any]=None, detail: Optional[Dict[str, Any]]=None) -> AuditEvent:
    return AuditEvent.objects.create(
        user=user if getattr(user, 'pk', None) else None,
        action=action,
        object_type=object_type,
        object_id=str(object_id) if object_id is not None else None,
        detail=detail or {},
    )


def audit(**kwargs) -> Optional[AuditEvent]:
    """``log_action`` that never fails the surrounding operation."""
    try:
        # savepoint keeps a failed insert from poisoning the caller's transaction
        with transaction.atomic():
            return log_action(**kwargs)
    except Exception:
        logger.exception('audit log failed: %s', kwargs.get('action'))
        return None
