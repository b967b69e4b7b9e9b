"""
Roster CSV import and export.

Columns: Full Name, Email, Phone, Gender, Organization, State. Rows may stop
early; missing trailing cells read as empty strings.
"""

import csv
import io

from ..models import RosterEntry

ROSTER_CSV_COLUMNS = ('full_name', 'email', 'phone', 'gender', 'organization', 'state')
ROSTER_CSV_HEADERS = ('Full Name', 'Email', 'Phone', 'Gender', 'Organization', 'State')

EXPORT_HEADERS = ROSTER_CSV_HEADERS + ('Age Group', 'Registered', 'Source', 'Attributes')


def _cell(value):
    return (value or '').replace('"', '').strip()


def _is_header(cells):
    return bool(cells) and _cell(cells[0]).lower() in ('full name', 'fullname', 'name')


def parse_row(cells):
    """Map one CSV row to participant data, or None when it has neither email nor phone."""
    padded = list(cells) + [''] * (len(ROSTER_CSV_COLUMNS) - len(cells))
    row = {name: _cell(padded[index]) for index, name in enumerate(ROSTER_CSV_COLUMNS)}
    if not (row['email'] or row['phone']):
        return None
    return row


def parse_participant_csv(text):
    """
    Parse CSV text into participant rows.

    A leading header row is detected and skipped. Blank lines and rows without
    any contact detail are dropped.
    """
    if isinstance(text, bytes):
        text = text.decode('utf-8-sig')
    elif text.startswith('\ufeff'):
        text = text[1:]

    rows = []
    reader = csv.reader(io.StringIO(text))
    seen_content = False
    for cells in reader:
        if not any(_cell(value) for value in cells):
            continue
        first_row = not seen_content
        seen_content = True
        if first_row and _is_header(cells):
            continue
        row = parse_row(cells)
        if row is not None:
            rows.append(row)
    return rows


def _attributes(entry):
    return '; '.join(f"{label}: {value}" for label, value in (entry.responses or {}).items())


def export_participants_csv(program):
    """Roster as CSV text; legacy entries carry only their email, missing entries are skipped."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(EXPORT_HEADERS)

    for entry in program.roster():
        if entry.kind == RosterEntry.STRUCTURED:
            participant = entry.participant
            writer.writerow([
                participant.full_name,
                participant.email,
                participant.phone,
                participant.gender,
                participant.organization,
                participant.state,
                participant.age_group,
                participant.created_at.date().isoformat(),
                participant.referral_source,
                _attributes(entry),
            ])
        elif entry.kind == RosterEntry.LEGACY:
            writer.writerow(['', entry.legacy_email] + [''] * (len(EXPORT_HEADERS) - 2))

    return output.getvalue()
