from datetime import datetime, timedelta, timezone as dt_timezone
from types import SimpleNamespace

from django.core.exceptions import PermissionDenied, ValidationError
from django.test import TestCase
from django.contrib.auth import get_user_model
from django.utils import timezone

from accounts.mixins import Actor
from accounts.models import Department, ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_STAFF
from audit.models import ActivityLog
from .exceptions import (
    InvalidStatusTransition, SeriesError, DepartmentResolutionError,
    LegacyParticipantError, ParticipantNotFound, ProgramError,
)
from .forms import RegistrationSettingsForm
from .models import Program, FormField, Participant, RosterEntry
from . import services
from .utils import roster
from .utils.csv_io import parse_participant_csv, export_participants_csv, EXPORT_HEADERS
from .utils.registration import (
    FieldDef, DEFAULT_SCHEMA, get_effective_schema, is_registration_open,
    serialize_schema, deserialize_schema, validate_submission, split_submission,
    with_unique_names,
)
from .utils.series import (
    MASTER, VERSION, STANDARD, classify, display_name, resolve_department, children,
)
from .utils.status_guard import VALID_TRANSITIONS, allowed_targets, can_transition, set_status

User = get_user_model()


def make_user(email, role=ROLE_STAFF, departments=()):
    user = User.objects.create_user(email=email, password='testpass123', status=User.Status.ACTIVE)
    user.assign_role(role)
    for department in departments:
        user.departments.add(department)
    return user


class ProgramTestMixin:
    def setUp(self):
        self.ict = Department.objects.create(name='ICT', description='ICT Department')
        self.finance = Department.objects.create(name='Finance', description='Finance Department')
        self.super_admin = make_user('super@test.com', ROLE_SUPER_ADMIN)
        self.admin = make_user('admin@test.com', ROLE_ADMIN, [self.ict])
        self.staff = make_user('staff@test.com', ROLE_STAFF, [self.ict])

    def make_program(self, name='Tech Bootcamp', structure=Program.Structure.ONE_TIME, **kwargs):
        kwargs.setdefault('department', self.ict)
        kwargs.setdefault('created_by', self.staff)
        return Program.objects.create(name=name, structure=structure, **kwargs)


class StatusGuardTest(ProgramTestMixin, TestCase):
    def test_pending_can_be_approved(self):
        program = self.make_program()
        set_status(program, Program.Status.APPROVED, Actor(self.admin))

        program.refresh_from_db()
        self.assertEqual(program.status, Program.Status.APPROVED)
        self.assertIsNotNone(program.approved_at)

    def test_terminal_states_have_no_exits(self):
        for status in (Program.Status.REJECTED, Program.Status.COMPLETED, Program.Status.CANCELLED):
            self.assertEqual(allowed_targets(status), [])
            for target in Program.Status.values:
                self.assertFalse(can_transition(status, target))

    def test_completed_cannot_return_to_pending(self):
        program = self.make_program(status=Program.Status.COMPLETED)
        with self.assertRaises(InvalidStatusTransition):
            program.set_status(Program.Status.PENDING)

        program.refresh_from_db()
        self.assertEqual(program.status, Program.Status.COMPLETED)

    def test_pending_cannot_skip_to_completed(self):
        program = self.make_program()
        with self.assertRaises(InvalidStatusTransition) as ctx:
            set_status(program, Program.Status.COMPLETED)
        self.assertIn('Approved', ctx.exception.message)

        program.refresh_from_db()
        self.assertEqual(program.status, Program.Status.PENDING)

    def test_ongoing_can_complete_or_cancel(self):
        self.assertTrue(can_transition(Program.Status.ONGOING, Program.Status.COMPLETED))
        self.assertTrue(can_transition(Program.Status.ONGOING, Program.Status.CANCELLED))
        self.assertFalse(can_transition(Program.Status.ONGOING, Program.Status.APPROVED))

    def test_transitions_only_move_forward(self):
        order = [
            Program.Status.PENDING, Program.Status.APPROVED, Program.Status.ONGOING,
        ]
        for source, targets in VALID_TRANSITIONS.items():
            for target in targets:
                if source in order and target in order:
                    self.assertGreater(order.index(target), order.index(source))


class SeriesResolverTest(ProgramTestMixin, TestCase):
    def test_classify_is_pure(self):
        """Classification reads only structure and parent reference."""
        self.assertEqual(classify(SimpleNamespace(structure='Recurring', parent_program_id=None)), MASTER)
        self.assertEqual(classify(SimpleNamespace(structure='Numerical', parent_program_id=None)), MASTER)
        self.assertEqual(classify(SimpleNamespace(structure='One-Time', parent_program_id=None)), STANDARD)
        self.assertEqual(classify(SimpleNamespace(structure='Recurring', parent_program_id=4)), VERSION)
        self.assertEqual(classify(SimpleNamespace(structure='One-Time', parent_program_id=4)), VERSION)

    def test_master_and_version_are_exclusive(self):
        for structure in Program.Structure.values:
            for parent in (None, 7):
                kind = classify(SimpleNamespace(structure=structure, parent_program_id=parent))
                self.assertIn(kind, (MASTER, VERSION, STANDARD))
                if parent:
                    self.assertEqual(kind, VERSION)

    def test_version_name_with_custom_suffix(self):
        master = self.make_program('Innovation Hub', Program.Structure.RECURRING)
        version = self.make_program('Innovation Hub', Program.Structure.RECURRING,
                                    parent_program=master, custom_suffix='Batch 5')
        self.assertEqual(display_name(version), 'Innovation Hub - Batch 5')
        self.assertEqual(version.display_name, 'Innovation Hub - Batch 5')

    def test_version_name_falls_back_to_date(self):
        master = self.make_program('Innovation Hub', Program.Structure.RECURRING)
        version = self.make_program(
            'Innovation Hub', Program.Structure.RECURRING, parent_program=master,
            date=datetime(2025, 3, 7, 10, 0, tzinfo=dt_timezone.utc),
        )
        self.assertEqual(version.display_name, 'Innovation Hub - 3/7/2025')

    def test_numerical_versions_are_numbered(self):
        master = self.make_program('Coding Class', Program.Structure.NUMERICAL)
        actor = Actor(self.admin)

        first = services.create_version(master, actor, {})
        second = services.create_version(master, actor, {})

        self.assertEqual(first.batch_number, 1)
        self.assertEqual(second.batch_number, 2)
        self.assertEqual(second.display_name, 'Coding Class - Batch 2')
        self.assertEqual(second.structure, Program.Structure.NUMERICAL)
        self.assertEqual(second.status, Program.Status.PENDING)
        self.assertTrue(second.link_slug.startswith('coding-class-batch-2-'))

    def test_recurring_version_label_from_date(self):
        master = self.make_program('Town Hall', Program.Structure.RECURRING)
        version = services.create_version(
            master, Actor(self.admin),
            {'date': datetime(2025, 11, 2, 9, 0, tzinfo=dt_timezone.utc)},
        )
        self.assertEqual(version.version_label, '11/2/2025')
        self.assertIsNone(version.batch_number)

    def test_version_requires_master(self):
        standard = self.make_program('One Off')
        with self.assertRaises(SeriesError):
            services.create_version(standard, Actor(self.admin), {})
        self.assertEqual(Program.objects.filter(parent_program=standard).count(), 0)

    def test_version_does_not_copy_form_fields(self):
        master = self.make_program('Town Hall', Program.Structure.RECURRING)
        FormField.objects.create(program=master, label='Company', field_type='text')
        version = services.create_version(master, Actor(self.admin), {'custom_suffix': 'June'})
        self.assertEqual(version.form_fields.count(), 0)

    def test_department_fallback_order(self):
        master = self.make_program('Town Hall', Program.Structure.RECURRING, department=self.finance)
        actor = Actor(self.staff)

        self.assertEqual(resolve_department(actor, explicit=self.ict.pk, parent=master), self.ict)
        self.assertEqual(resolve_department(actor, parent=master), self.finance)
        self.assertEqual(resolve_department(actor), self.ict)

    def test_department_resolution_failure(self):
        loner = make_user('loner@test.com')
        with self.assertRaises(DepartmentResolutionError):
            resolve_department(Actor(loner))
        with self.assertRaises(DepartmentResolutionError):
            resolve_department(Actor(loner), explicit=999999)

    def test_children_newest_first(self):
        master = self.make_program('Town Hall', Program.Structure.RECURRING)
        older = self.make_program('Town Hall', Program.Structure.RECURRING, parent_program=master)
        newer = self.make_program('Town Hall', Program.Structure.RECURRING, parent_program=master)
        Program.objects.filter(pk=older.pk).update(created_at=timezone.now() - timedelta(days=3))

        self.assertEqual(list(children(master)), [newer, older])
        self.assertEqual(list(children(older)), [])


class RegistrationGateTest(ProgramTestMixin, TestCase):
    def test_open_by_default(self):
        self.assertTrue(is_registration_open(self.make_program()))

    def test_toggle_closes_registration(self):
        program = self.make_program(registration_open=False)
        self.assertFalse(is_registration_open(program))

    def test_past_deadline_closes_even_when_toggled_open(self):
        program = self.make_program(
            registration_open=True,
            registration_deadline=datetime(2020, 1, 1, tzinfo=dt_timezone.utc),
        )
        now = datetime(2025, 6, 1, tzinfo=dt_timezone.utc)
        self.assertFalse(is_registration_open(program, now=now))

    def test_closing_is_permanent_for_a_fixed_deadline(self):
        deadline = datetime(2025, 6, 1, 12, 0, tzinfo=dt_timezone.utc)
        program = self.make_program(registration_deadline=deadline)
        times = [deadline - timedelta(days=1), deadline, deadline + timedelta(seconds=1), deadline + timedelta(days=30)]
        results = [is_registration_open(program, now=moment) for moment in times]
        self.assertEqual(results, [True, True, False, False])


class EffectiveSchemaTest(ProgramTestMixin, TestCase):
    def test_default_schema_without_fields(self):
        schema = get_effective_schema(self.make_program())
        self.assertEqual([field.name for field in schema], ['gender', 'state', 'organization'])
        self.assertEqual(schema[0].options, ['Male', 'Female'])

    def test_own_fields_win(self):
        program = self.make_program()
        FormField.objects.create(program=program, label='Company Name', field_type='text', required=True)
        schema = get_effective_schema(program)
        self.assertEqual(len(schema), 1)
        self.assertEqual(schema[0].name, 'company_name')
        self.assertTrue(schema[0].required)

    def test_version_inherits_master_fields(self):
        master = self.make_program('Town Hall', Program.Structure.RECURRING)
        FormField.objects.create(program=master, label='Track', field_type='select', options=['Web', 'Data'])
        version = self.make_program('Town Hall', Program.Structure.RECURRING, parent_program=master)

        self.assertEqual([field.label for field in get_effective_schema(version)], ['Track'])

        FormField.objects.create(program=version, label='Laptop?', field_type='text')
        self.assertEqual([field.label for field in get_effective_schema(version)], ['Laptop?'])

    def test_serialized_schema_validates_required_fields(self):
        schema = deserialize_schema(serialize_schema([
            FieldDef('Company Name', 'text', required=True),
            FieldDef('Team Size', 'number', required=True),
            FieldDef('Track', 'select', required=False, options=['Web', 'Data']),
        ]))
        complete = {'full_name': 'Jane Doe', 'email': 'jane@test.com', 'company_name': 'Acme', 'team_size': '4'}
        self.assertEqual(validate_submission(schema, complete), {})

        for missing in ('company_name', 'team_size'):
            data = dict(complete)
            del data[missing]
            self.assertIn(missing, validate_submission(schema, data))

    def test_select_value_must_be_an_option(self):
        schema = [FieldDef('Track', 'select', options=['Web', 'Data'])]
        errors = validate_submission(schema, {'full_name': 'Jane', 'phone': '0801', 'track': 'Design'})
        self.assertIn('track', errors)

    def test_number_and_date_types(self):
        schema = [FieldDef('Age', 'number'), FieldDef('Start', 'date')]
        errors = validate_submission(schema, {'full_name': 'Jane', 'phone': '0801', 'age': 'ten', 'start': 'soon'})
        self.assertIn('age', errors)
        self.assertIn('start', errors)

    def test_contact_required(self):
        errors = validate_submission(list(DEFAULT_SCHEMA), {'full_name': 'Jane'})
        self.assertIn('non_field_errors', errors)

    def test_full_name_required(self):
        errors = validate_submission(list(DEFAULT_SCHEMA), {'email': 'jane@test.com'})
        self.assertIn('full_name', errors)

    def test_answers_keyed_by_label(self):
        schema = [FieldDef('Company Name', 'text', required=True)]
        data = {'full_name': 'Jane', 'email': 'jane@test.com', 'Company Name': 'Acme'}
        self.assertEqual(validate_submission(schema, data), {})

    def test_parent_chain_is_one_level(self):
        master = self.make_program('Town Hall', Program.Structure.RECURRING)
        version = self.make_program('Town Hall', Program.Structure.RECURRING, parent_program=master)

        master.parent_program = version
        with self.assertRaises(ValidationError):
            master.clean()

        other = self.make_program('Other Hall', Program.Structure.RECURRING)
        master.parent_program = other
        with self.assertRaises(ValidationError):
            master.clean()

        nested = Program(name='Nested', department=self.ict, created_by=self.staff, parent_program=version)
        with self.assertRaises(ValidationError):
            nested.clean()

    def test_schema_lookup_stops_on_a_cycle(self):
        first = self.make_program('First', Program.Structure.RECURRING)
        second = self.make_program('Second', Program.Structure.RECURRING, parent_program=first)
        Program.objects.filter(pk=first.pk).update(parent_program=second)
        first.refresh_from_db()
        self.assertEqual(get_effective_schema(first), list(DEFAULT_SCHEMA))

    def test_labels_that_slugify_alike_stay_separate(self):
        schema = [FieldDef('Company', required=True), FieldDef('Company?', required=True)]
        self.assertEqual([field.name for field in with_unique_names(schema)], ['company', 'company_2'])

        data = {'full_name': 'Jane', 'phone': '0801', 'Company': 'Acme'}
        self.assertIn('company_2', validate_submission(schema, data))
        data['Company?'] = 'Yes'
        self.assertEqual(validate_submission(schema, data), {})

    def test_non_ascii_labels_each_required(self):
        schema = [FieldDef('年龄', required=True), FieldDef('城市', required=True)]
        errors = validate_submission(schema, {'full_name': 'Jane', 'phone': '0801', '年龄': '30'})
        self.assertEqual(list(errors), ['field_2'])

    def test_effective_schema_names_are_unique(self):
        program = self.make_program()
        FormField.objects.create(program=program, label='Company', order=0)
        FormField.objects.create(program=program, label='Company?', order=1)
        schema = get_effective_schema(program)
        self.assertEqual([field.name for field in schema], ['company', 'company_2'])

        _, responses = split_submission(schema, {
            'full_name': 'Jane', 'phone': '0801', 'company': 'Acme', 'company_2': 'Yes',
        })
        self.assertEqual(responses, {'Company': 'Acme', 'Company?': 'Yes'})

    def test_split_submission(self):
        schema = list(DEFAULT_SCHEMA) + [FieldDef('Company Name')]
        cleaned = {
            'full_name': 'Jane', 'email': 'jane@test.com', 'phone': '', 'gender': 'Female',
            'state': 'Kano', 'organization': '', 'company_name': 'Acme', 'consent': True,
        }
        participant_data, responses = split_submission(schema, cleaned)
        self.assertEqual(participant_data['gender'], 'Female')
        self.assertEqual(participant_data['state'], 'Kano')
        self.assertTrue(participant_data['consent'])
        self.assertEqual(responses, {'Gender': 'Female', 'State of Residence': 'Kano', 'Company Name': 'Acme'})

    def test_select_field_requires_options(self):
        field = FormField(program=self.make_program(), label='Track', field_type='select', options=[])
        with self.assertRaises(ValidationError):
            field.full_clean()


class RosterTest(ProgramTestMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.program = self.make_program()

    def test_add_requires_contact(self):
        with self.assertRaises(ValidationError):
            roster.add(self.program, {'full_name': 'Nobody'})
        self.assertEqual(self.program.participants.count(), 0)

    def test_add_does_not_dedupe(self):
        roster.add(self.program, {'full_name': 'Jane', 'email': 'jane@test.com'})
        roster.add(self.program, {'full_name': 'Jane', 'email': 'jane@test.com'})
        self.assertEqual(self.program.participants.count(), 2)

    def test_import_drops_rows_without_contact(self):
        rows = [
            {'full_name': 'Jane', 'email': 'jane@test.com'},
            {'full_name': 'No Contact'},
            {'full_name': 'Phone Only', 'phone': '08011112222'},
        ]
        self.assertEqual(roster.import_batch(self.program, rows), 2)
        self.assertEqual(
            [entry.participant.full_name for entry in self.program.roster()],
            ['Jane', 'Phone Only'],
        )

    def build_mixed_roster(self):
        missing = RosterEntry.objects.create(program=self.program, position=0)
        structured = roster.add(self.program, {'full_name': 'A', 'email': 'a@x.com'})
        legacy = RosterEntry.objects.create(program=self.program, legacy_email='legacy@x.com', position=5)
        return missing, structured, legacy

    def test_entry_kinds(self):
        missing, structured, legacy = self.build_mixed_roster()
        self.assertEqual(missing.kind, RosterEntry.MISSING)
        self.assertEqual(structured.kind, RosterEntry.STRUCTURED)
        self.assertEqual(legacy.kind, RosterEntry.LEGACY)

    def test_remove_rejects_missing_and_legacy_entries(self):
        missing, structured, legacy = self.build_mixed_roster()

        for target in (None, missing, legacy, 'legacy@x.com'):
            with self.assertRaises(LegacyParticipantError):
                roster.remove(self.program, target)
        self.assertEqual(self.program.participants.count(), 3)

        removed = roster.remove(self.program, structured.participant_id)
        self.assertEqual(removed.email, 'a@x.com')
        self.assertEqual(self.program.participants.count(), 2)

    def test_remove_unknown_id(self):
        with self.assertRaises(ParticipantNotFound):
            roster.remove(self.program, {'_id': 999999})

    def test_deleted_participant_leaves_missing_entry(self):
        entry = roster.add(self.program, {'full_name': 'Gone', 'email': 'gone@test.com'})
        entry.participant.delete()
        entry.refresh_from_db()
        self.assertEqual(entry.kind, RosterEntry.MISSING)
        self.assertEqual(roster.roster_emails(self.program), [])

    def test_roster_emails_match_on_kind(self):
        self.build_mixed_roster()
        self.assertEqual(roster.roster_emails(self.program), ['a@x.com', 'legacy@x.com'])

    def test_serialize_entry_marks_removable(self):
        missing, structured, legacy = self.build_mixed_roster()
        self.assertTrue(roster.serialize_entry(structured)['removable'])
        self.assertFalse(roster.serialize_entry(legacy)['removable'])
        self.assertEqual(roster.serialize_entry(missing), {'kind': 'missing', 'entry_id': missing.pk, 'removable': False})


class ParticipantCsvTest(ProgramTestMixin, TestCase):
    def test_phone_only_row_accepted(self):
        rows = parse_participant_csv('Jane Doe,,08011112222')
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]['full_name'], 'Jane Doe')
        self.assertEqual(rows[0]['email'], '')
        self.assertEqual(rows[0]['phone'], '08011112222')
        self.assertEqual(rows[0]['state'], '')

    def test_row_without_contact_dropped(self):
        self.assertEqual(parse_participant_csv(',,'), [])

    def test_header_detected_and_quotes_stripped(self):
        text = 'Full Name,Email,Phone,Gender,Organization,State\n"Ada Obi","ada@test.com",,Female,"Acme, Ltd",Lagos\n'
        rows = parse_participant_csv(text)
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]['organization'], 'Acme, Ltd')
        self.assertEqual(rows[0]['state'], 'Lagos')

    def test_header_after_blank_lines(self):
        rows = parse_participant_csv('\n,,\nFull Name,Email,Phone\nJane,,0801\n')
        self.assertEqual([row['full_name'] for row in rows], ['Jane'])

    def test_header_only_checked_on_first_row(self):
        rows = parse_participant_csv('Jane,,0801\nName,,0802\n')
        self.assertEqual(len(rows), 2)

    def test_bytes_with_bom(self):
        rows = parse_participant_csv('\ufeffName,Email\nJane,jane@test.com\n'.encode('utf-8'))
        self.assertEqual([row['email'] for row in rows], ['jane@test.com'])

    def test_export_matches_on_kind(self):
        program = self.make_program()
        RosterEntry.objects.create(program=program, position=0)
        roster.add(program, {'full_name': 'Jane', 'email': 'jane@test.com', 'state': 'Kano'})
        RosterEntry.objects.create(program=program, legacy_email='old@test.com', position=9)

        lines = export_participants_csv(program).strip().splitlines()
        self.assertEqual(lines[0], ','.join(EXPORT_HEADERS))
        self.assertEqual(len(lines), 3)
        self.assertTrue(lines[1].startswith('Jane,jane@test.com'))
        self.assertTrue(lines[2].startswith(',old@test.com'))


class ProgramServicesTest(ProgramTestMixin, TestCase):
    def test_super_admin_programs_are_auto_approved(self):
        program = services.create_program(
            Actor(self.super_admin), {'name': 'Summit'}, department=self.ict.pk,
        )
        self.assertEqual(program.status, Program.Status.APPROVED)
        self.assertIsNotNone(program.approved_at)
        self.assertTrue(program.link_slug.startswith('summit-'))
        self.assertTrue(ActivityLog.objects.filter(action=ActivityLog.Action.CREATE_PROGRAM).exists())

    def test_staff_programs_start_pending(self):
        program = services.create_program(Actor(self.staff), {'name': 'Workshop'})
        self.assertEqual(program.status, Program.Status.PENDING)
        self.assertEqual(program.department, self.ict)

    def test_staff_cannot_create_for_other_department(self):
        with self.assertRaises(PermissionDenied):
            services.create_program(Actor(self.staff), {'name': 'Workshop'}, department=self.finance.pk)
        self.assertFalse(Program.objects.filter(name='Workshop').exists())

    def test_create_with_form_fields(self):
        program = services.create_program(
            Actor(self.staff), {'name': 'Workshop'},
            form_fields=[{'label': 'Track', 'fieldType': 'select', 'options': ['Web', 'Data'], 'required': True}],
        )
        field = program.form_fields.get()
        self.assertEqual(field.options, ['Web', 'Data'])
        self.assertTrue(field.required)

    def test_invalid_form_fields_roll_back(self):
        with self.assertRaises(ValidationError) as ctx:
            services.create_program(
                Actor(self.staff), {'name': 'Workshop'},
                form_fields=[{'label': 'Track', 'field_type': 'select', 'options': []}],
            )
        self.assertEqual(
            ctx.exception.message_dict,
            {'form_fields[0]': ['options: Options are required for select questions.']},
        )
        self.assertFalse(Program.objects.filter(name='Workshop').exists())

    def test_status_change_requires_department_admin(self):
        program = self.make_program()
        with self.assertRaises(PermissionDenied):
            services.change_status(program, Actor(self.staff), Program.Status.APPROVED)

        outsider = make_user('outsider@test.com', ROLE_ADMIN, [self.finance])
        with self.assertRaises(PermissionDenied):
            services.change_status(program, Actor(outsider), Program.Status.APPROVED)

        services.change_status(program, Actor(self.admin), Program.Status.APPROVED)
        self.assertEqual(program.status, Program.Status.APPROVED)

    def test_status_endpoint_cannot_complete(self):
        program = self.make_program(status=Program.Status.APPROVED)
        with self.assertRaises(ProgramError):
            services.change_status(program, Actor(self.admin), Program.Status.COMPLETED)

    def test_complete_records_report(self):
        program = self.make_program(status=Program.Status.ONGOING)
        start = timezone.now() - timedelta(hours=5)
        services.complete_program(program, Actor(self.admin), {
            'actual_attendance': 42,
            'start_date': start,
            'end_date': start + timedelta(hours=3),
            'drive_link': 'https://drive.example.com/folder',
            'final_document': '',
        })
        program.refresh_from_db()
        self.assertEqual(program.status, Program.Status.COMPLETED)
        self.assertEqual(program.actual_attendance, 42)

    def test_complete_from_pending_is_rejected(self):
        program = self.make_program()
        with self.assertRaises(InvalidStatusTransition):
            services.complete_program(program, Actor(self.admin), {
                'actual_attendance': 1,
                'start_date': timezone.now(),
                'end_date': timezone.now(),
                'drive_link': 'https://drive.example.com/x',
            })
        program.refresh_from_db()
        self.assertIsNone(program.actual_attendance)

    def test_structure_is_immutable(self):
        program = self.make_program(structure=Program.Structure.RECURRING)
        with self.assertRaises(ValidationError):
            services.check_structure_unchanged(program, {'structure': Program.Structure.ONE_TIME})
        services.check_structure_unchanged(program, {'structure': Program.Structure.RECURRING})

    def test_creator_loses_edit_rights_after_completion(self):
        program = self.make_program(status=Program.Status.COMPLETED)
        with self.assertRaises(PermissionDenied):
            services.set_registration_open(program, Actor(self.staff), False)
        services.set_registration_open(program, Actor(self.admin), False)
        self.assertFalse(program.registration_open)

    def test_deadline_and_toggle_are_independent(self):
        program = self.make_program(registration_open=False)
        deadline = timezone.now() + timedelta(days=3)
        services.set_registration_deadline(program, Actor(self.staff), deadline)
        program.refresh_from_db()
        self.assertEqual(program.registration_deadline, deadline)
        self.assertFalse(program.registration_open)

        services.set_registration_deadline(program, Actor(self.staff), None)
        program.refresh_from_db()
        self.assertIsNone(program.registration_deadline)
        self.assertFalse(program.registration_open)
        self.assertEqual(
            ActivityLog.objects.filter(action=ActivityLog.Action.UPDATE_REGISTRATION).count(), 2
        )

    def test_registration_settings_apply_only_given_keys(self):
        program = self.make_program(registration_deadline=timezone.now() + timedelta(days=1))
        form = RegistrationSettingsForm(data={'registration_open': False})
        self.assertTrue(form.is_valid(), form.errors)
        services.update_registration_settings(program, Actor(self.staff), form)
        program.refresh_from_db()
        self.assertFalse(program.registration_open)
        self.assertIsNotNone(program.registration_deadline)

    def test_add_update_requires_text(self):
        program = self.make_program()
        with self.assertRaises(ValidationError):
            services.add_update(program, Actor(self.staff), '   ')
        update = services.add_update(program, Actor(self.staff), 'Venue confirmed')
        self.assertEqual(update.user, self.staff)

    def test_remove_participant_logs_activity(self):
        program = self.make_program()
        entry = roster.add(program, {'full_name': 'Jane', 'email': 'jane@test.com'})
        services.remove_participant(program, Actor(self.admin), entry.participant_id)
        self.assertTrue(ActivityLog.objects.filter(action=ActivityLog.Action.REMOVE_PARTICIPANT).exists())
        self.assertTrue(Participant.objects.filter(pk=entry.participant_id).exists())
