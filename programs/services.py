"""
Program lifecycle operations used by the API views.

Each function checks the actor's permissions, applies the change and records
it in the activity log. Input is expected to be cleaned by the matching form.
"""

import logging

from django.core.exceptions import PermissionDenied, ValidationError
from django.db import transaction

from accounts.permissions import (
    can_create_program_in, can_change_status, can_edit_program,
    can_manage_participants, can_complete_program, can_view_program,
)
from audit.models import ActivityLog
from audit.utils import log_activity
from .exceptions import ProgramError, SeriesError
from .forms import FormFieldForm
from .models import Program, FormField, ProgramUpdate
from .utils import roster
from .utils.series import (
    is_master, create_slug, locale_date_string, next_batch_number, resolve_department,
)
from .utils.status_guard import APPROVED, COMPLETED, set_status, validate_transition

logger = logging.getLogger(__name__)


def _auto_approve(program, actor):
    """Programs created by a super admin skip the review queue."""
    if actor.is_super_admin and program.status == Program.Status.PENDING:
        set_status(program, APPROVED, actor)


def create_program(actor, data, department=None, form_fields=None):
    """Create a Pending program owned by the resolved department."""
    department = resolve_department(actor, explicit=department)
    if not can_create_program_in(actor, department.pk):
        raise PermissionDenied("Access denied: You can only create programs for your own department.")

    with transaction.atomic():
        program = Program(
            department=department,
            created_by=actor.user,
            status=Program.Status.PENDING,
            **data
        )
        program.link_slug = create_slug(program.name)
        program.full_clean()
        program.save()
        if form_fields is not None:
            replace_form_fields(program, form_fields)
        _auto_approve(program, actor)

    logger.info(f"Program {program.pk} '{program.name}' created by {actor.user.email}")
    log_activity(
        actor.user,
        ActivityLog.Action.CREATE_PROGRAM,
        f"Created program: {program.name}",
        department=department,
        meta={'program_id': program.pk, 'structure': program.structure},
    )
    return program


def create_version(master, actor, data, department=None):
    """
    Schedule a new Version of a series master.

    Numerical masters number their versions (``Batch N``); Recurring masters
    label them with the custom suffix or the version date. Form fields are not
    copied: versions inherit them at registration time.
    """
    if not is_master(master):
        raise SeriesError("Only a Recurring or Numerical master program can have versions.")

    department = resolve_department(actor, explicit=department, parent=master)
    if not can_create_program_in(actor, department.pk):
        raise PermissionDenied("Access denied: You can only create programs for your own department.")

    data = dict(data)
    suffix = (data.pop('custom_suffix', '') or '').strip()

    with transaction.atomic():
        version = Program(
            name=master.name,
            program_type=master.program_type,
            structure=master.structure,
            course_title=master.course_title,
            frequency=master.frequency,
            parent_program=master,
            department=department,
            created_by=actor.user,
            status=Program.Status.PENDING,
            **data
        )
        if master.structure == Program.Structure.NUMERICAL:
            version.batch_number = next_batch_number(master)
            version.custom_suffix = suffix or f"Batch {version.batch_number}"
        else:
            version.custom_suffix = suffix
            version.version_label = suffix or locale_date_string(version.date)
        version.link_slug = create_slug(master.name, version.custom_suffix or version.version_label)
        version.save()
        _auto_approve(version, actor)

    logger.info(f"Version {version.pk} of program {master.pk} created by {actor.user.email}")
    log_activity(
        actor.user,
        ActivityLog.Action.CREATE_VERSION,
        f"Created version: {version.display_name}",
        department=department,
        meta={'program_id': version.pk, 'parent_id': master.pk},
    )
    return version


def check_structure_unchanged(program, payload):
    """Structure is fixed at creation; reject any attempt to change it."""
    if 'structure' in payload and payload['structure'] != program.structure:
        raise ValidationError({'structure': ["Program structure cannot be changed after creation."]})


def update_program(program, actor, form):
    """Save a valid ProgramEditForm bound to ``program``."""
    if not can_edit_program(actor, program):
        raise PermissionDenied("Access denied: You cannot edit this program.")
    program = form.save()
    log_activity(
        actor.user,
        ActivityLog.Action.UPDATE_PROGRAM,
        f"Updated program: {program.display_name}",
        department=program.department,
        meta={'program_id': program.pk, 'fields': sorted(form.changed_data)},
    )
    return program


def change_status(program, actor, new_status):
    """Approve, reject, start or cancel a program."""
    if not can_change_status(actor, program):
        raise PermissionDenied("Access denied: Only an admin of this department can change its status.")
    if new_status == COMPLETED:
        raise ProgramError("Submit the completion report to mark a program as completed.")

    previous = program.status
    set_status(program, new_status, actor)
    log_activity(
        actor.user,
        ActivityLog.Action.UPDATE_STATUS,
        f"Changed status of {program.display_name} from {previous} to {new_status}",
        department=program.department,
        meta={'program_id': program.pk, 'from': previous, 'to': new_status},
    )
    return program


def complete_program(program, actor, report):
    """Record the post-event report and move the program to Completed."""
    if not can_complete_program(actor, program):
        raise PermissionDenied("Access denied: Only an admin of this department can complete this program.")
    validate_transition(program.status, COMPLETED)

    with transaction.atomic():
        program.actual_attendance = report['actual_attendance']
        program.actual_start = report['start_date']
        program.actual_end = report['end_date']
        program.drive_link = report.get('drive_link') or ''
        program.final_document = report.get('final_document') or ''
        program.save(update_fields=[
            'actual_attendance', 'actual_start', 'actual_end',
            'drive_link', 'final_document', 'updated_at',
        ])
        set_status(program, COMPLETED, actor)

    log_activity(
        actor.user,
        ActivityLog.Action.COMPLETE_PROGRAM,
        f"Completed program: {program.display_name}",
        department=program.department,
        meta={'program_id': program.pk, 'actual_attendance': program.actual_attendance},
    )
    return program


def add_update(program, actor, text):
    """Append a message to the program's update thread."""
    if not can_view_program(actor, program):
        raise PermissionDenied("Access denied: You cannot post updates on this program.")
    text = (text or '').strip()
    if not text:
        raise ValidationError({'text': ["Update text is required."]})
    return ProgramUpdate.objects.create(program=program, user=actor.user, text=text)


def _log_registration_change(program, actor):
    log_activity(
        actor.user,
        ActivityLog.Action.UPDATE_REGISTRATION,
        f"Updated registration settings for {program.display_name}",
        department=program.department,
        meta={
            'program_id': program.pk,
            'registration_open': program.registration_open,
            'registration_deadline': (
                program.registration_deadline.isoformat() if program.registration_deadline else None
            ),
        },
    )


def set_registration_open(program, actor, is_open):
    if not can_edit_program(actor, program):
        raise PermissionDenied("Access denied: You cannot edit this program.")
    program.registration_open = bool(is_open)
    program.save(update_fields=['registration_open', 'updated_at'])
    _log_registration_change(program, actor)
    return program


def set_registration_deadline(program, actor, deadline):
    """Set the deadline, or clear it when ``deadline`` is None."""
    if not can_edit_program(actor, program):
        raise PermissionDenied("Access denied: You cannot edit this program.")
    program.registration_deadline = deadline
    program.save(update_fields=['registration_deadline', 'updated_at'])
    _log_registration_change(program, actor)
    return program


def update_registration_settings(program, actor, settings_form):
    """Apply the keys present in a valid RegistrationSettingsForm; each key is changed on its own."""
    if not can_edit_program(actor, program):
        raise PermissionDenied("Access denied: You cannot edit this program.")
    if 'registration_open' in settings_form.provided:
        set_registration_open(program, actor, settings_form.cleaned_data['registration_open'])
    if 'registration_deadline' in settings_form.provided:
        set_registration_deadline(program, actor, settings_form.cleaned_data['registration_deadline'])
    return program


def replace_form_fields(program, field_dicts):
    """
    Replace the program's custom questions with ``field_dicts``.

    All questions are validated before anything is written; errors are keyed
    by the question's position in the list.
    """
    forms = []
    errors = {}
    for index, item in enumerate(field_dicts or []):
        data = dict(item)
        if 'fieldType' in data and 'field_type' not in data:
            data['field_type'] = data.pop('fieldType')
        data.setdefault('order', index)
        form = FormFieldForm(data=data)
        if form.is_valid():
            forms.append(form)
        else:
            errors[f'form_fields[{index}]'] = [
                f"{name}: {message}" for name, messages in form.errors.items() for message in messages
            ]
    if errors:
        raise ValidationError(errors)

    with transaction.atomic():
        program.form_fields.all().delete()
        fields = []
        for form in forms:
            field = form.save(commit=False)
            field.program = program
            fields.append(field)
        FormField.objects.bulk_create(fields)
    return list(program.form_fields.all())


def add_participant(program, actor, participant_data):
    if not can_manage_participants(actor, program):
        raise PermissionDenied("Access denied: You cannot manage participants of this program.")
    entry = roster.add(program, participant_data)
    log_activity(
        actor.user,
        ActivityLog.Action.ADD_PARTICIPANT,
        f"Added {entry.participant.full_name} to {program.display_name}",
        department=program.department,
        meta={'program_id': program.pk, 'participant_id': entry.participant_id},
    )
    return entry


def import_participants(program, actor, rows):
    if not can_manage_participants(actor, program):
        raise PermissionDenied("Access denied: You cannot manage participants of this program.")
    added = roster.import_batch(program, rows)
    log_activity(
        actor.user,
        ActivityLog.Action.IMPORT_PARTICIPANTS,
        f"Imported {added} participants into {program.display_name}",
        department=program.department,
        meta={'program_id': program.pk, 'added': added, 'rows': len(rows)},
    )
    return added


def remove_participant(program, actor, target):
    if not can_manage_participants(actor, program):
        raise PermissionDenied("Access denied: You cannot manage participants of this program.")
    participant = roster.remove(program, target)
    log_activity(
        actor.user,
        ActivityLog.Action.REMOVE_PARTICIPANT,
        f"Removed {participant.full_name} from {program.display_name}",
        department=program.department,
        meta={'program_id': program.pk, 'participant_id': participant.pk},
    )
    return participant
