"""
Unauthenticated endpoints behind a program's shareable registration link.
"""

import json
import logging

from django.db import transaction
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from communications.services import schedule_registration_ticket
from .forms import PublicRegistrationForm
from .models import Program, Participant, RosterEntry
from .utils.registration import (
    get_effective_schema, serialize_schema, is_registration_open, registration_closed_message,
    split_submission,
)
from .utils.roster import next_position

logger = logging.getLogger(__name__)

PUBLIC_STATUSES = (Program.Status.APPROVED, Program.Status.ONGOING, Program.Status.COMPLETED)


def find_public_program(identifier):
    """Look a program up by its link slug, falling back to its id."""
    programs = Program.objects.select_related('parent_program', 'department')
    program = programs.filter(link_slug=identifier).first()
    if program is None and str(identifier).isdigit():
        program = programs.filter(pk=int(identifier)).first()
    return program


@require_GET
def public_program_detail(request, identifier):
    """Safe subset of program fields plus the registration form to render."""
    program = find_public_program(identifier)
    if program is None or program.status not in PUBLIC_STATUSES:
        return JsonResponse({'message': 'Program not found'}, status=404)

    return JsonResponse({
        'id': program.pk,
        'name': program.display_name,
        'description': program.description or (
            program.parent_program.description if program.parent_program else ''
        ),
        'program_type': program.program_type,
        'date': program.date.isoformat() if program.date else None,
        'venue': program.venue,
        'flyer': program.flyer,
        'department': program.department.name,
        'registration_open': is_registration_open(program),
        'registration_deadline': (
            program.registration_deadline.isoformat() if program.registration_deadline else None
        ),
        'form_fields': serialize_schema(get_effective_schema(program)),
    })


@csrf_exempt
@require_POST
def public_register(request, identifier):
    """
    Register a participant through the public link.

    Checks run in order: program exists, registration is open, submission
    is valid. The ticket email goes out after the transaction commits.
    """
    program = find_public_program(identifier)
    if program is None or program.status not in PUBLIC_STATUSES:
        return JsonResponse({'message': 'Program not found'}, status=404)

    now = timezone.now()
    if not is_registration_open(program, now=now):
        logger.info(f"Rejected registration for closed program {program.pk}")
        return JsonResponse({'message': registration_closed_message(program, now=now)}, status=403)

    if request.content_type == 'application/json':
        try:
            data = json.loads(request.body or b'{}')
        except ValueError:
            return JsonResponse({'message': 'Invalid JSON body'}, status=400)
        if not isinstance(data, dict):
            return JsonResponse({'message': 'Invalid JSON body'}, status=400)
    else:
        data = request.POST

    schema = get_effective_schema(program)
    form = PublicRegistrationForm(schema, data=data)
    if not form.is_valid():
        return JsonResponse({'message': 'Validation failed', 'errors': form.error_dict()}, status=400)

    participant_data, responses = split_submission(schema, form.cleaned_data)

    with transaction.atomic():
        participant = Participant(**participant_data)
        participant.referral_source = participant.referral_source or 'Public Registration'
        participant.save()
        RosterEntry.objects.create(
            program=program,
            participant=participant,
            responses=responses,
            position=next_position(program),
        )
        schedule_registration_ticket(participant, program)

    logger.info(f"Participant {participant.pk} registered for program {program.pk}")
    return JsonResponse({
        'message': 'Registration successful',
        'participant_id': participant.pk,
    }, status=201)
