"""
Public registration rules: the open/closed gate, the effective form schema
and submission validation.
"""

from django.utils import timezone
from django.utils.text import slugify

FIELD_TYPES = ('text', 'textarea', 'number', 'date', 'select', 'file')

# Always asked, never part of a program's schema
CORE_FIELDS = ('full_name', 'email', 'phone')

# Participant attributes a schema answer may fill in directly
PARTICIPANT_ATTRIBUTES = ('gender', 'age_group', 'state', 'organization', 'referral_source')


class FieldDef:
    """One question on a registration form, independent of storage."""

    def __init__(self, label, field_type='text', required=False, options=None, name=None):
        if field_type not in FIELD_TYPES:
            raise ValueError(f"Unknown field type '{field_type}'")
        self.label = label
        self.field_type = field_type
        self.required = bool(required)
        self.options = list(options or []) if field_type == 'select' else []
        self.name = name or slugify(label).replace('-', '_') or 'field'

    def __repr__(self):
        return f"<FieldDef {self.name} {self.field_type}{' required' if self.required else ''}>"

    def __eq__(self, other):
        if not isinstance(other, FieldDef):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def to_dict(self):
        return {
            'name': self.name,
            'label': self.label,
            'fieldType': self.field_type,
            'required': self.required,
            'options': list(self.options),
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            label=data['label'],
            field_type=data.get('fieldType') or data.get('field_type') or 'text',
            required=data.get('required', False),
            options=data.get('options'),
            name=data.get('name'),
        )


DEFAULT_SCHEMA = (
    FieldDef('Gender', 'select', required=False, options=['Male', 'Female'], name='gender'),
    FieldDef('State of Residence', 'text', required=False, name='state'),
    FieldDef('Organization / School', 'text', required=False, name='organization'),
)


def with_unique_names(fields):
    """
    Copy of ``fields`` where no two questions share a name.

    Labels that slugify alike ('Company' and 'Company?', or two labels with
    no ASCII letters) keep their first name; later ones get a numeric suffix.
    """
    taken = set()
    result = []
    for field in fields:
        name = field.name
        suffix = 2
        while name in taken:
            name = f"{field.name}_{suffix}"
            suffix += 1
        taken.add(name)
        if name != field.name:
            field = FieldDef(field.label, field.field_type, field.required, field.options, name=name)
        result.append(field)
    return result


def serialize_schema(fields):
    return [field.to_dict() for field in fields]


def deserialize_schema(data):
    return [FieldDef.from_dict(item) for item in (data or [])]


def is_registration_open(program, now=None):
    """
    Whether public registration is accepted right now.

    Closed when explicitly toggled off or when the deadline has passed; open
    otherwise. Call it on every submission; never cache the answer.
    """
    if program.registration_open is False:
        return False
    deadline = program.registration_deadline
    if deadline is not None:
        now = now or timezone.now()
        if now > deadline:
            return False
    return True


def registration_closed_message(program, now=None):
    if program.registration_open is False:
        return "Registration for this program is currently closed."
    deadline = program.registration_deadline
    if deadline is not None and (now or timezone.now()) > deadline:
        return f"Registration closed on {timezone.localtime(deadline).strftime('%Y-%m-%d %H:%M')}."
    return ''


def get_effective_schema(program):
    """
    Questions for a program's public form.

    Own fields win; a Version without its own fields reads its master's; the
    default questions cover everything else. Inherited fields are never copied.
    """
    seen = set()
    while program is not None and program.pk not in seen:
        if program.pk is not None:
            seen.add(program.pk)
            own = with_unique_names(field.to_field_def() for field in program.form_fields.all())
            if own:
                return own
        program = program.parent_program if program.parent_program_id else None
    return list(DEFAULT_SCHEMA)


def validate_submission(schema, data):
    """
    Validate a submission against ``schema``.

    Returns a dict of field name to error messages; an empty dict means the
    submission is accepted. Cross-field problems are under ``non_field_errors``.
    """
    from ..forms import PublicRegistrationForm

    form = PublicRegistrationForm(schema, data=data)
    if form.is_valid():
        return {}
    return form.error_dict()


def split_submission(schema, cleaned_data):
    """
    Split cleaned form data into participant attributes and custom answers.

    Answers to questions whose name matches a participant attribute (for
    example the default ``gender`` question) fill that attribute as well.
    """
    participant_data = {name: cleaned_data.get(name) or '' for name in CORE_FIELDS}
    for extra in ('age_group', 'referral_source'):
        if cleaned_data.get(extra):
            participant_data[extra] = cleaned_data[extra]
    participant_data['consent'] = bool(cleaned_data.get('consent'))

    responses = {}
    for field in with_unique_names(schema):
        value = cleaned_data.get(field.name)
        if value in (None, ''):
            continue
        if field.name in PARTICIPANT_ATTRIBUTES:
            participant_data[field.name] = str(value)
        responses[field.label] = value if isinstance(value, (str, int, bool)) else str(value)
    return participant_data, responses
