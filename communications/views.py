import logging

from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_POST

from accounts.mixins import role_required, api_login_required, json_body
from accounts.models import ROLE_ADMIN
from audit.models import ActivityLog
from audit.utils import log_activity
from .broadcast import resolve_audience
from .forms import BroadcastForm
from .models import BroadcastLog
from .services import EmailService

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 50


@require_POST
@role_required([ROLE_ADMIN])
def send_broadcast(request):
    """Send one email to the resolved audience, every recipient in BCC."""
    actor = request.actor
    try:
        payload = json_body(request)
    except ValueError as e:
        return JsonResponse({'message': f'Invalid request body: {str(e)}'}, status=400)

    form = BroadcastForm(data=payload)
    if not form.is_valid():
        return JsonResponse({'message': 'Validation failed', 'errors': form.errors.get_json_data()}, status=400)

    audience_type = form.cleaned_data['audience_type']
    subject = form.cleaned_data['subject']
    message = form.cleaned_data['message']

    recipients, program_names = resolve_audience(actor, audience_type, payload)
    if not recipients:
        return JsonResponse({'message': 'No valid recipients found for this audience.'}, status=400)

    try:
        EmailService().send_templated_email(
            actor.user.email,
            subject,
            'communications/emails/broadcast.html',
            {'subject': subject, 'message': message, 'sender_name': actor.user.display_name},
            bcc=recipients,
        )
    except Exception as e:
        logger.error(f"Broadcast '{subject}' by {actor.user.email} failed: {str(e)}")
        return JsonResponse({'message': f'Failed to send email: {str(e)}'}, status=502)

    broadcast = BroadcastLog.objects.create(
        sender=actor.user,
        audience_type=audience_type,
        target_programs=program_names,
        subject=subject,
        message=message,
        recipient_count=len(recipients),
    )
    log_activity(
        actor.user,
        ActivityLog.Action.SEND_BROADCAST,
        f"Sent broadcast '{subject}' to {len(recipients)} recipients",
        meta={'broadcast_id': broadcast.pk, 'audience_type': audience_type},
    )
    logger.info(f"Broadcast {broadcast.pk} sent to {len(recipients)} recipients by {actor.user.email}")

    return JsonResponse({
        'message': f'Email sent to {len(recipients)} recipients',
        'recipient_count': len(recipients),
        'id': broadcast.pk,
    })


@require_GET
@api_login_required
def broadcast_history(request):
    """Sent broadcasts: all for super admins, otherwise the actor's own."""
    actor = request.actor
    logs = BroadcastLog.objects.select_related('sender')
    if not actor.is_super_admin:
        logs = logs.filter(sender_id=actor.id)

    return JsonResponse({'results': [
        {
            'id': log.pk,
            'subject': log.subject,
            'message': log.message,
            'audience_type': log.audience_type,
            'target_programs': log.target_programs,
            'recipient_count': log.recipient_count,
            'status': log.status,
            'sender': log.sender.email if log.sender else None,
            'created_at': log.created_at.isoformat(),
        }
        for log in logs[:HISTORY_LIMIT]
    ]})
