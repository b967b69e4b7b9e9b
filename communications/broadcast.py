"""
Broadcast audience resolution.

Every audience resolves to a de-duplicated list of addresses; entries
without an ``@`` are dropped.
"""

from django.contrib.auth import get_user_model

from programs.models import Program
from programs.utils.roster import roster_emails

User = get_user_model()

ALL_PROGRAMS = 'ALL_PROGRAMS'


def clean_recipients(addresses):
    """Strip, drop anything without '@' and de-duplicate case-insensitively, keeping order."""
    seen = set()
    recipients = []
    for address in addresses:
        address = (address or '').strip()
        if '@' not in address:
            continue
        key = address.lower()
        if key in seen:
            continue
        seen.add(key)
        recipients.append(address)
    return recipients


def general_audience(actor):
    """Active staff; admins only reach their own departments."""
    users = User.objects.filter(status=User.Status.ACTIVE)
    if not actor.is_super_admin:
        users = users.filter(departments__in=actor.department_ids).distinct()
    return list(users.values_list('email', flat=True))


def manual_audience(emails):
    if isinstance(emails, str):
        emails = emails.replace(';', ',').replace('\n', ',').split(',')
    return list(emails or [])


def csv_audience(recipients):
    addresses = []
    for item in recipients or []:
        if isinstance(item, dict):
            addresses.append(item.get('email') or item.get('Email') or '')
        else:
            addresses.append(str(item))
    return addresses


def target_programs_for(actor, program_ids):
    programs = Program.objects.all()
    if not actor.is_super_admin:
        programs = programs.filter(department_id__in=actor.department_ids)
    if program_ids == ALL_PROGRAMS or (isinstance(program_ids, list) and ALL_PROGRAMS in program_ids):
        return list(programs)
    ids = [int(pk) for pk in (program_ids or []) if str(pk).isdigit()]
    return list(programs.filter(pk__in=ids))


def program_audience(programs):
    addresses = []
    for program in programs:
        addresses.extend(roster_emails(program))
    return addresses


def resolve_audience(actor, audience_type, payload):
    """
    Return ``(recipients, target_program_names)`` for a broadcast request.

    Raises ValueError for an unknown audience type.
    """
    program_names = []
    if audience_type == 'general':
        addresses = general_audience(actor)
    elif audience_type == 'manual':
        addresses = manual_audience(payload.get('emails'))
    elif audience_type == 'csv':
        addresses = csv_audience(payload.get('recipients'))
    elif audience_type == 'program':
        programs = target_programs_for(actor, payload.get('programs'))
        program_names = [program.display_name for program in programs]
        addresses = program_audience(programs)
    else:
        raise ValueError(f"Unknown audience type '{audience_type}'")
    return clean_recipients(addresses), program_names
