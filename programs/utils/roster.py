"""
Participant roster operations.

A roster entry is structured (points at a Participant), legacy (holds only a
historical email string) or missing (its participant was deleted). Consumers
match on ``RosterEntry.kind``; only structured entries can be removed.
"""

import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Max

from ..exceptions import LegacyParticipantError, ParticipantNotFound
from ..models import Participant, RosterEntry

logger = logging.getLogger(__name__)

PARTICIPANT_FIELDS = (
    'full_name', 'email', 'phone', 'gender', 'age_group',
    'state', 'organization', 'referral_source', 'consent',
)

MANUAL_SOURCE = 'Admin Manual Add'
IMPORT_SOURCE = 'Admin Bulk Import'


def _clean(value):
    if value is None:
        return ''
    return str(value).strip()


def has_contact(data):
    return bool(_clean(data.get('email')) or _clean(data.get('phone')))


def next_position(program):
    highest = program.participants.aggregate(highest=Max('position'))['highest']
    return 0 if highest is None else highest + 1


def _build_participant(data, default_source=''):
    values = {}
    for name in PARTICIPANT_FIELDS:
        if name == 'consent':
            values[name] = bool(data.get(name, True))
        else:
            values[name] = _clean(data.get(name))
    if not values['full_name']:
        values['full_name'] = 'Unknown'
    if not values['referral_source']:
        values['referral_source'] = default_source
    return Participant(**values)


def add(program, participant_data, responses=None, source=MANUAL_SOURCE):
    """
    Append one participant to the roster and return the new entry.

    Repeated emails are not merged; every call adds an entry.
    """
    if not has_contact(participant_data):
        raise ValidationError("Email or Phone is required")

    with transaction.atomic():
        participant = _build_participant(participant_data, default_source=source)
        participant.save()
        entry = RosterEntry.objects.create(
            program=program,
            participant=participant,
            responses=responses or {},
            position=next_position(program),
        )
    logger.info(f"Added participant {participant.pk} to program {program.pk}")
    return entry


def import_batch(program, rows):
    """
    Append every row that carries an email or phone; drop the rest silently.

    Returns the number of participants added.
    """
    added = 0
    with transaction.atomic():
        position = next_position(program)
        for row in rows:
            if not row or not has_contact(row):
                continue
            participant = _build_participant(row, default_source=IMPORT_SOURCE)
            participant.save()
            RosterEntry.objects.create(program=program, participant=participant, position=position)
            position += 1
            added += 1
    logger.info(f"Imported {added} of {len(rows)} rows into program {program.pk}")
    return added


def _target_id(target):
    """Participant id named by ``target``, or None when it names no record."""
    if isinstance(target, Participant):
        return target.pk
    if isinstance(target, dict):
        target = target.get('_id', target.get('id'))
    if isinstance(target, bool):
        return None
    if isinstance(target, int):
        return target
    if isinstance(target, str) and target.strip().isdigit():
        return int(target.strip())
    return None


def remove(program, target):
    """
    Remove a structured participant from the roster and return the Participant.

    ``target`` may be a RosterEntry, a Participant, a participant id, or a
    mapping with ``_id``/``id``. Missing and legacy entries have no identifier
    and raise LegacyParticipantError without changing anything.
    """
    if target is None:
        raise LegacyParticipantError(
            "This roster entry has no participant record and cannot be removed."
        )

    if isinstance(target, RosterEntry):
        if target.program_id != program.pk:
            raise ParticipantNotFound("Participant is not registered for this program.")
        if target.kind != RosterEntry.STRUCTURED:
            raise LegacyParticipantError(
                "This is a legacy entry without a participant record and cannot be removed."
            )
        participant = target.participant
        target.delete()
        logger.info(f"Removed participant {participant.pk} from program {program.pk}")
        return participant

    participant_id = _target_id(target)
    if participant_id is None:
        raise LegacyParticipantError(
            f"'{target}' is a legacy entry without a participant record and cannot be removed."
        )

    entries = program.participants.filter(participant_id=participant_id)
    entry = entries.select_related('participant').first()
    if entry is None:
        raise ParticipantNotFound("Participant is not registered for this program.")
    participant = entry.participant
    entries.delete()
    logger.info(f"Removed participant {participant_id} from program {program.pk}")
    return participant


def roster_emails(program):
    """Contact emails from structured and legacy entries; missing entries are skipped."""
    emails = []
    for entry in program.roster():
        if entry.kind == RosterEntry.STRUCTURED:
            if entry.participant.email:
                emails.append(entry.participant.email)
        elif entry.kind == RosterEntry.LEGACY:
            emails.append(entry.legacy_email)
    return emails


def serialize_entry(entry):
    """JSON shape of one roster entry for the admin UI."""
    if entry.kind == RosterEntry.STRUCTURED:
        participant = entry.participant
        return {
            'kind': RosterEntry.STRUCTURED,
            'entry_id': entry.pk,
            '_id': participant.pk,
            'full_name': participant.full_name,
            'email': participant.email,
            'phone': participant.phone,
            'gender': participant.gender,
            'age_group': participant.age_group,
            'state': participant.state,
            'organization': participant.organization,
            'referral_source': participant.referral_source,
            'responses': entry.responses,
            'created_at': participant.created_at.isoformat(),
            'removable': True,
        }
    if entry.kind == RosterEntry.LEGACY:
        return {
            'kind': RosterEntry.LEGACY,
            'entry_id': entry.pk,
            'email': entry.legacy_email,
            'removable': False,
        }
    return {'kind': RosterEntry.MISSING, 'entry_id': entry.pk, 'removable': False}
