"""
Series resolution for programs.

A Recurring or Numerical program without a parent anchors a series (Master);
every program with a parent is one scheduled instance of it (Version);
everything else is a Standard program.
"""

from django.db.models import Max
from django.utils import timezone
from django.utils.crypto import get_random_string
from django.utils.text import slugify

from accounts.models import Department
from ..exceptions import DepartmentResolutionError

MASTER = 'Master'
VERSION = 'Version'
STANDARD = 'Standard'

SERIES_STRUCTURES = ('Recurring', 'Numerical')

SLUG_ALPHABET = 'abcdefghijklmnopqrstuvwxyz1234567890'


def _parent_ref(program):
    parent_id = getattr(program, 'parent_program_id', None)
    if parent_id is None:
        parent_id = getattr(program, 'parent_program', None)
    return parent_id


def classify(program):
    """Return MASTER, VERSION or STANDARD. Pure: reads only ``structure`` and the parent reference."""
    parent = _parent_ref(program)
    if not parent and getattr(program, 'structure', None) in SERIES_STRUCTURES:
        return MASTER
    elif parent:
        return VERSION
    return STANDARD


def is_master(program):
    return classify(program) == MASTER


def is_version(program):
    return classify(program) == VERSION


def locale_date_string(value):
    """Short date as M/D/YYYY, e.g. 3/7/2025."""
    if value is None:
        return ''
    if hasattr(value, 'hour') and timezone.is_aware(value):
        value = timezone.localtime(value)
    return f"{value.month}/{value.day}/{value.year}"


def version_suffix(version):
    if version.custom_suffix:
        return version.custom_suffix
    if version.date:
        return locale_date_string(version.date)
    return version.version_label


def display_name(program):
    """Name shown for a program; Versions read ``<parent name> - <suffix>``."""
    if not is_version(program) or program.parent_program is None:
        return program.name
    suffix = version_suffix(program)
    if not suffix:
        return program.parent_program.name
    return f"{program.parent_program.name} - {suffix}"


def create_slug(name, suffix=''):
    """Public registration slug: cleaned name, optional suffix, random token."""
    parts = [slugify(name) or 'program']
    if suffix:
        parts.append(slugify(str(suffix)))
    parts.append(get_random_string(10, allowed_chars=SLUG_ALPHABET))
    return '-'.join(part for part in parts if part)


def resolve_department(actor, explicit=None, parent=None):
    """
    Department for a new program: the explicit choice, else the parent's,
    else the actor's first department.

    When the actor belongs to several departments and nothing else is given,
    the first one wins silently.
    """
    if explicit not in (None, ''):
        if isinstance(explicit, Department):
            return explicit
        try:
            department = Department.objects.filter(pk=int(explicit)).first()
        except (TypeError, ValueError):
            department = None
        if department is None:
            raise DepartmentResolutionError(f"Department '{explicit}' not found.")
        return department

    if parent is not None and parent.department_id:
        return parent.department

    first_id = actor.first_department_id if actor is not None else None
    if first_id is not None:
        department = Department.objects.filter(pk=first_id).first()
        if department is not None:
            return department

    raise DepartmentResolutionError(
        "Could not determine a department for this program. Select a department first."
    )


def next_batch_number(master):
    highest = master.versions.aggregate(highest=Max('batch_number'))['highest']
    return (highest or 0) + 1


def children(master):
    """Versions of a master, newest first."""
    if not is_master(master):
        return master.versions.none()
    return master.versions.order_by('-created_at', '-pk')
