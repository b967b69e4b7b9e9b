import logging

from .models import ActivityLog

logger = logging.getLogger(__name__)


def log_activity(user, action, description, department=None, meta=None):
    """
    Record an action in the activity log.

    Logging must never break the operation being logged, so database errors
    are reported to the application log and None is returned.
    """
    try:
        return ActivityLog.objects.create(
            user=user,
            action=action,
            description=description,
            department=department,
            meta=meta or {},
        )
    except Exception as e:
        logger.error(f"Failed to record activity {action}: {str(e)}")
        return None


def serialize_activity(log):
    return {
        'id': log.pk,
        'action': log.action,
        'description': log.description,
        'user': {
            'id': log.user_id,
            'name': log.user.display_name,
            'email': log.user.email,
        } if log.user else None,
        'department': log.department.name if log.department else None,
        'meta': log.meta,
        'created_at': log.created_at.isoformat(),
    }
