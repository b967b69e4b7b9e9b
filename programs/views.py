from functools import wraps
import logging

from django.core.exceptions import PermissionDenied, ValidationError
from django.db.models import Q
from django.forms.models import model_to_dict
from django.http import Http404, JsonResponse, HttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.views.decorators.http import require_http_methods, require_GET, require_POST

from accounts.mixins import api_login_required, json_body
from accounts.permissions import can_view_program, can_edit_program, can_manage_participants
from .exceptions import ProgramError
from .forms import (
    ProgramForm, VersionForm, ProgramEditForm, CompleteProgramForm,
    ParticipantForm, ProgramUpdateForm, RegistrationSettingsForm,
)
from .models import Program
from . import services
from .utils import roster
from .utils.csv_io import parse_participant_csv, export_participants_csv
from .utils.registration import get_effective_schema, serialize_schema
from .utils.series import children

logger = logging.getLogger(__name__)


def handles_api_errors(view_func):
    """Translate domain and validation errors raised by a view into JSON responses."""
    @wraps(view_func)
    def _wrapped_view(request, *args, **kwargs):
        try:
            return view_func(request, *args, **kwargs)
        except ValueError as e:
            return JsonResponse({'message': f'Invalid request body: {str(e)}'}, status=400)
        except ValidationError as e:
            errors = e.message_dict if hasattr(e, 'error_dict') else {'non_field_errors': e.messages}
            return JsonResponse({'message': 'Validation failed', 'errors': errors}, status=400)
        except PermissionDenied as e:
            return JsonResponse({'message': str(e) or 'Access denied'}, status=403)
        except Http404 as e:
            return JsonResponse({'message': str(e) or 'Not found'}, status=404)
        except ProgramError as e:
            return JsonResponse({'message': e.message}, status=e.status_code)
    return _wrapped_view


def form_errors(form):
    errors = {}
    for key, messages in form.errors.items():
        errors['non_field_errors' if key == '__all__' else key] = list(messages)
    return JsonResponse({'message': 'Validation failed', 'errors': errors}, status=400)


def _iso(value):
    return value.isoformat() if value else None


def serialize_program(program, detail=False):
    data = {
        'id': program.pk,
        'name': program.name,
        'display_name': program.display_name,
        'program_type': program.program_type,
        'structure': program.structure,
        'series_kind': program.series_kind,
        'status': program.status,
        'parent_program': program.parent_program_id,
        'batch_number': program.batch_number,
        'custom_suffix': program.custom_suffix,
        'version_label': program.version_label,
        'department': {'id': program.department_id, 'name': program.department.name},
        'created_by': {'id': program.created_by_id, 'email': program.created_by.email},
        'date': _iso(program.date),
        'venue': program.venue,
        'cost': str(program.cost),
        'participants_count': program.participants_count,
        'registration_open': program.registration_open,
        'registration_deadline': _iso(program.registration_deadline),
        'is_registration_open': program.is_registration_open,
        'link_slug': program.link_slug,
        'created_at': _iso(program.created_at),
    }
    if detail:
        data.update({
            'description': program.description,
            'course_title': program.course_title,
            'frequency': program.frequency,
            'amount_disbursed': str(program.amount_disbursed) if program.amount_disbursed is not None else None,
            'startups_count': program.startups_count,
            'flyer': program.flyer,
            'proposal': program.proposal,
            'actual_attendance': program.actual_attendance,
            'actual_start': _iso(program.actual_start),
            'actual_end': _iso(program.actual_end),
            'drive_link': program.drive_link,
            'final_document': program.final_document,
            'approved_at': _iso(program.approved_at),
            'form_fields': [
                dict(field.to_field_def().to_dict(), id=field.pk, order=field.order)
                for field in program.form_fields.all()
            ],
            'effective_schema': serialize_schema(get_effective_schema(program)),
            'participants': [roster.serialize_entry(entry) for entry in program.roster()],
            'updates': [serialize_update(update) for update in program.updates.select_related('user')],
            'children': [serialize_program(child) for child in children(program)],
        })
    return data


def serialize_update(update):
    return {
        'id': update.pk,
        'user': update.user.display_name if update.user else None,
        'text': update.text,
        'date': _iso(update.date),
    }


def visible_programs(actor):
    programs = Program.objects.select_related('department', 'created_by', 'parent_program')
    if actor.is_super_admin:
        return programs
    return programs.filter(Q(department_id__in=actor.department_ids) | Q(created_by_id=actor.id))


def get_program_for(actor, pk):
    program = get_object_or_404(
        Program.objects.select_related('department', 'created_by', 'parent_program'), pk=pk
    )
    if not can_view_program(actor, program):
        raise PermissionDenied("Access denied: This program belongs to another department.")
    return program


@require_http_methods(["GET", "POST"])
@api_login_required
@handles_api_errors
def program_list(request):
    """List visible programs or create a new one."""
    actor = request.actor

    if request.method == 'POST':
        payload = json_body(request)
        form = ProgramForm(data=payload)
        if not form.is_valid():
            return form_errors(form)
        program = services.create_program(
            actor,
            form.cleaned_data,
            department=payload.get('department'),
            form_fields=payload.get('form_fields'),
        )
        return JsonResponse(serialize_program(program, detail=True), status=201)

    programs = visible_programs(actor)
    status = request.GET.get('status')
    if status:
        programs = programs.filter(status=status)
    department = request.GET.get('department')
    if department:
        programs = programs.filter(department_id=department)
    if request.GET.get('masters') == 'true':
        programs = programs.filter(
            parent_program__isnull=True,
            structure__in=[Program.Structure.RECURRING, Program.Structure.NUMERICAL],
        )
    search = request.GET.get('q')
    if search:
        programs = programs.filter(name__icontains=search)

    return JsonResponse({'results': [serialize_program(program) for program in programs]})


@require_http_methods(["GET", "PUT", "PATCH"])
@api_login_required
@handles_api_errors
def program_detail(request, pk):
    actor = request.actor
    program = get_program_for(actor, pk)

    if request.method == 'GET':
        return JsonResponse(serialize_program(program, detail=True))

    payload = json_body(request)
    services.check_structure_unchanged(program, payload)
    payload.pop('structure', None)

    # Partial updates keep the stored value of every field not in the payload
    data = model_to_dict(program, fields=ProgramEditForm.Meta.fields)
    data.update(payload)
    form = ProgramEditForm(data=data, instance=program)
    if not form.is_valid():
        return form_errors(form)
    program = services.update_program(program, actor, form)
    return JsonResponse(serialize_program(program, detail=True))


@require_POST
@api_login_required
@handles_api_errors
def create_version(request, pk):
    """Schedule a new version of a series master."""
    actor = request.actor
    master = get_program_for(actor, pk)
    payload = json_body(request)
    form = VersionForm(data=payload)
    if not form.is_valid():
        return form_errors(form)
    version = services.create_version(master, actor, form.cleaned_data, department=payload.get('department'))
    return JsonResponse(serialize_program(version, detail=True), status=201)


@require_http_methods(["POST", "PATCH"])
@api_login_required
@handles_api_errors
def update_status(request, pk):
    actor = request.actor
    program = get_program_for(actor, pk)
    new_status = json_body(request).get('status')
    if new_status not in Program.Status.values:
        return JsonResponse({'message': f"Unknown status '{new_status}'"}, status=400)
    program = services.change_status(program, actor, new_status)
    return JsonResponse(serialize_program(program))


@require_POST
@api_login_required
@handles_api_errors
def complete_program(request, pk):
    """Submit the post-event report and mark the program completed."""
    actor = request.actor
    program = get_program_for(actor, pk)
    form = CompleteProgramForm(data=json_body(request))
    if not form.is_valid():
        return form_errors(form)
    program = services.complete_program(program, actor, form.cleaned_data)
    return JsonResponse(serialize_program(program, detail=True))


@require_http_methods(["POST", "PATCH"])
@api_login_required
@handles_api_errors
def registration_settings(request, pk):
    """Open or close public registration and set or clear its deadline."""
    actor = request.actor
    program = get_program_for(actor, pk)
    form = RegistrationSettingsForm(data=json_body(request))
    if not form.is_valid():
        return form_errors(form)
    program = services.update_registration_settings(program, actor, form)
    return JsonResponse({
        'registration_open': program.registration_open,
        'registration_deadline': _iso(program.registration_deadline),
        'is_registration_open': program.is_registration_open,
    })


@require_http_methods(["GET", "PUT"])
@api_login_required
@handles_api_errors
def form_fields(request, pk):
    """Read the registration form or replace its custom questions."""
    actor = request.actor
    program = get_program_for(actor, pk)

    if request.method == 'PUT':
        if not can_edit_program(actor, program):
            raise PermissionDenied("Access denied: You cannot edit this program.")
        fields = json_body(request).get('form_fields')
        if not isinstance(fields, list):
            return JsonResponse({'message': 'form_fields must be a list'}, status=400)
        services.replace_form_fields(program, fields)

    return JsonResponse({
        'form_fields': [field.to_field_def().to_dict() for field in program.form_fields.all()],
        'effective_schema': serialize_schema(get_effective_schema(program)),
    })


@require_http_methods(["GET", "POST"])
@api_login_required
@handles_api_errors
def program_updates(request, pk):
    actor = request.actor
    program = get_program_for(actor, pk)

    if request.method == 'POST':
        form = ProgramUpdateForm(data=json_body(request))
        if not form.is_valid():
            return form_errors(form)
        update = services.add_update(program, actor, form.cleaned_data['text'])
        return JsonResponse(serialize_update(update), status=201)

    updates = program.updates.select_related('user')
    return JsonResponse({'results': [serialize_update(update) for update in updates]})


@require_http_methods(["GET", "POST"])
@api_login_required
@handles_api_errors
def participants(request, pk):
    """Roster listing, or manual add of one participant."""
    actor = request.actor
    program = get_program_for(actor, pk)

    if request.method == 'POST':
        form = ParticipantForm(data=json_body(request))
        if not form.is_valid():
            return form_errors(form)
        entry = services.add_participant(program, actor, form.cleaned_data)
        return JsonResponse(roster.serialize_entry(entry), status=201)

    return JsonResponse({
        'count': program.participants.count(),
        'results': [roster.serialize_entry(entry) for entry in program.roster()],
    })


@require_POST
@api_login_required
@handles_api_errors
def import_participants(request, pk):
    """
    Bulk import participants.

    Accepts a CSV upload (``file``), CSV text (``csv``) or parsed rows
    (``rows``); rows without email or phone are dropped.
    """
    actor = request.actor
    program = get_program_for(actor, pk)

    if 'file' in request.FILES:
        rows = parse_participant_csv(request.FILES['file'].read())
    else:
        payload = json_body(request)
        if payload.get('csv') is not None:
            rows = parse_participant_csv(payload['csv'])
        else:
            rows = payload.get('rows')
            if not isinstance(rows, list):
                return JsonResponse({'message': 'Provide a CSV file, csv text or a list of rows'}, status=400)
            rows = [row for row in rows if isinstance(row, dict)]

    added = services.import_participants(program, actor, rows)
    return JsonResponse({
        'message': f'{added} participants imported successfully',
        'added': added,
        'total': program.participants.count(),
    })


@require_POST
@api_login_required
@handles_api_errors
def remove_participant(request, pk):
    """Remove a roster entry named by ``participant_id``, ``entry_id`` or a raw ``target``."""
    actor = request.actor
    program = get_program_for(actor, pk)
    payload = json_body(request)

    if 'entry_id' in payload:
        target = get_object_or_404(program.participants.select_related('participant'), pk=payload['entry_id'])
    elif 'participant_id' in payload:
        target = payload['participant_id']
    else:
        target = payload.get('target')

    participant = services.remove_participant(program, actor, target)
    return JsonResponse({
        'message': f'{participant.full_name} removed from {program.display_name}',
        'participant_id': participant.pk,
    })


@require_GET
@api_login_required
@handles_api_errors
def export_participants(request, pk):
    actor = request.actor
    program = get_program_for(actor, pk)
    if not can_manage_participants(actor, program):
        raise PermissionDenied("Access denied: You cannot export participants of this program.")

    response = HttpResponse(export_participants_csv(program), content_type='text/csv')
    filename = f"{program.link_slug or program.pk}-participants-{timezone.now():%Y%m%d}.csv"
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    return response


@require_GET
@api_login_required
def pending_approvals(request):
    """Pending programs the actor may review."""
    actor = request.actor
    programs = visible_programs(actor).filter(status=Program.Status.PENDING)
    if not actor.is_super_admin:
        if not actor.is_admin:
            return JsonResponse({'results': []})
        programs = programs.filter(department_id__in=actor.department_ids)
    return JsonResponse({'results': [serialize_program(program) for program in programs]})
