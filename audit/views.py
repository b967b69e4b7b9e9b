from django.db.models import Q
from django.http import JsonResponse
from django.views.decorators.http import require_GET

from accounts.mixins import api_login_required
from accounts.permissions import can_view_activity
from .models import ActivityLog
from .utils import serialize_activity

FEED_LIMIT = 50


@require_GET
@api_login_required
def activity_feed(request):
    """Latest activity: everything for super admins, own departments and own actions for admins."""
    actor = request.actor
    if not can_view_activity(actor):
        return JsonResponse({'message': 'Access denied: staff cannot view the activity log'}, status=403)

    logs = ActivityLog.objects.select_related('user', 'department')
    if not actor.is_super_admin:
        logs = logs.filter(Q(department_id__in=actor.department_ids) | Q(user_id=actor.id))

    action = request.GET.get('action')
    if action:
        logs = logs.filter(action=action)

    return JsonResponse({'results': [serialize_activity(log) for log in logs[:FEED_LIMIT]]})
