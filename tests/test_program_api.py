from datetime import timedelta

from django.test import TestCase, Client
from django.urls import reverse
from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.utils import timezone

from accounts.models import Department, ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_STAFF
from programs.models import Program, FormField, RosterEntry
from programs.utils import roster

User = get_user_model()


class ProgramApiTests(TestCase):
    def setUp(self):
        self.client = Client()
        self.ict = Department.objects.create(name='ICT')
        self.finance = Department.objects.create(name='Finance')

        self.super_admin = self._user('super@test.com', ROLE_SUPER_ADMIN)
        self.admin = self._user('admin@test.com', ROLE_ADMIN, self.ict)
        self.staff = self._user('staff@test.com', ROLE_STAFF, self.ict)
        self.finance_staff = self._user('fin@test.com', ROLE_STAFF, self.finance)

    def _user(self, email, role, department=None):
        user = User.objects.create_user(email=email, password='testpass123', status=User.Status.ACTIVE)
        user.assign_role(role)
        if department is not None:
            user.departments.add(department)
        return user

    def _program(self, **kwargs):
        kwargs.setdefault('name', 'Tech Bootcamp')
        kwargs.setdefault('department', self.ict)
        kwargs.setdefault('created_by', self.staff)
        return Program.objects.create(**kwargs)

    def _post(self, url, data):
        return self.client.post(url, data, content_type='application/json')

    def test_anonymous_requests_are_rejected(self):
        resp = self.client.get(reverse('programs:program_list'))
        self.assertEqual(resp.status_code, 401)

    def test_suspended_user_is_rejected(self):
        self.staff.status = User.Status.SUSPENDED
        self.staff.save()
        self.client.force_login(self.staff)
        resp = self.client.get(reverse('programs:program_list'))
        self.assertEqual(resp.status_code, 403)

    def test_staff_creates_pending_program(self):
        self.client.force_login(self.staff)
        resp = self._post(reverse('programs:program_list'), {
            'name': 'Data Workshop',
            'program_type': 'Training',
            'form_fields': [{'label': 'Laptop', 'fieldType': 'select', 'options': ['Yes', 'No']}],
        })
        self.assertEqual(resp.status_code, 201)
        data = resp.json()
        self.assertEqual(data['status'], 'Pending')
        self.assertEqual(data['department']['id'], self.ict.pk)
        self.assertEqual(data['series_kind'], 'Standard')
        self.assertEqual([field['label'] for field in data['form_fields']], ['Laptop'])

    def test_super_admin_program_is_approved(self):
        self.client.force_login(self.super_admin)
        resp = self._post(reverse('programs:program_list'), {
            'name': 'Summit', 'structure': 'Recurring', 'department': self.finance.pk,
        })
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()['status'], 'Approved')
        self.assertEqual(resp.json()['series_kind'], 'Master')

    def test_create_without_department_fails(self):
        loner = self._user('loner@test.com', ROLE_STAFF)
        self.client.force_login(loner)
        resp = self._post(reverse('programs:program_list'), {'name': 'Orphan'})
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(Program.objects.filter(name='Orphan').exists())

    def test_staff_cannot_create_for_other_department(self):
        self.client.force_login(self.staff)
        resp = self._post(reverse('programs:program_list'), {'name': 'Budget Day', 'department': self.finance.pk})
        self.assertEqual(resp.status_code, 403)

    def test_create_rejects_malformed_json(self):
        self.client.force_login(self.staff)
        resp = self.client.post(reverse('programs:program_list'), '{not json', content_type='application/json')
        self.assertEqual(resp.status_code, 400)

    def test_list_is_scoped_to_department(self):
        mine = self._program(name='Mine')
        self._program(name='Theirs', department=self.finance, created_by=self.finance_staff)

        self.client.force_login(self.staff)
        names = [item['name'] for item in self.client.get(reverse('programs:program_list')).json()['results']]
        self.assertEqual(names, [mine.name])

        self.client.force_login(self.super_admin)
        results = self.client.get(reverse('programs:program_list')).json()['results']
        self.assertEqual(len(results), 2)

    def test_masters_filter(self):
        master = self._program(name='Town Hall', structure='Recurring')
        self._program(name='Town Hall', structure='Recurring', parent_program=master)
        self._program(name='One Off')

        self.client.force_login(self.staff)
        resp = self.client.get(reverse('programs:program_list'), {'masters': 'true'})
        self.assertEqual([item['id'] for item in resp.json()['results']], [master.pk])

    def test_other_department_program_is_forbidden(self):
        program = self._program(department=self.finance, created_by=self.finance_staff)
        self.client.force_login(self.staff)
        resp = self.client.get(reverse('programs:program_detail', args=[program.pk]))
        self.assertEqual(resp.status_code, 403)

    def test_detail_includes_roster_and_children(self):
        master = self._program(name='Town Hall', structure='Numerical')
        version = self._program(name='Town Hall', structure='Numerical', parent_program=master,
                                batch_number=1, custom_suffix='Batch 1')
        roster.add(master, {'full_name': 'Jane', 'email': 'jane@test.com'})
        RosterEntry.objects.create(program=master, legacy_email='old@test.com', position=4)

        self.client.force_login(self.staff)
        data = self.client.get(reverse('programs:program_detail', args=[master.pk])).json()
        self.assertEqual([child['id'] for child in data['children']], [version.pk])
        self.assertEqual(data['children'][0]['display_name'], 'Town Hall - Batch 1')
        self.assertEqual([entry['kind'] for entry in data['participants']], ['structured', 'legacy'])

    def test_patch_keeps_other_fields(self):
        program = self._program(venue='Main Hall', description='Original')
        self.client.force_login(self.staff)
        resp = self.client.patch(
            reverse('programs:program_detail', args=[program.pk]),
            {'venue': 'Annex'},
            content_type='application/json',
        )
        self.assertEqual(resp.status_code, 200)
        program.refresh_from_db()
        self.assertEqual(program.venue, 'Annex')
        self.assertEqual(program.description, 'Original')

    def test_structure_cannot_change(self):
        program = self._program(structure='Recurring')
        self.client.force_login(self.admin)
        resp = self.client.patch(
            reverse('programs:program_detail', args=[program.pk]),
            {'structure': 'One-Time'},
            content_type='application/json',
        )
        self.assertEqual(resp.status_code, 400)
        self.assertIn('structure', resp.json()['errors'])
        program.refresh_from_db()
        self.assertEqual(program.structure, 'Recurring')

    def test_create_version_endpoint(self):
        master = self._program(name='Coding Class', structure='Numerical')
        self.client.force_login(self.staff)
        resp = self._post(reverse('programs:create_version', args=[master.pk]), {'venue': 'Lab 2'})
        self.assertEqual(resp.status_code, 201)
        data = resp.json()
        self.assertEqual(data['display_name'], 'Coding Class - Batch 1')
        self.assertEqual(data['parent_program'], master.pk)
        self.assertEqual(data['series_kind'], 'Version')
        self.assertEqual(data['department']['id'], self.ict.pk)

    def test_version_of_standard_program_fails(self):
        program = self._program()
        self.client.force_login(self.staff)
        resp = self._post(reverse('programs:create_version', args=[program.pk]), {})
        self.assertEqual(resp.status_code, 400)

    def test_admin_approves_program(self):
        program = self._program()
        self.client.force_login(self.admin)
        resp = self._post(reverse('programs:update_status', args=[program.pk]), {'status': 'Approved'})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()['status'], 'Approved')

    def test_staff_cannot_change_status(self):
        program = self._program()
        self.client.force_login(self.staff)
        resp = self._post(reverse('programs:update_status', args=[program.pk]), {'status': 'Approved'})
        self.assertEqual(resp.status_code, 403)
        program.refresh_from_db()
        self.assertEqual(program.status, 'Pending')

    def test_invalid_transition_returns_400(self):
        program = self._program(status='Rejected')
        self.client.force_login(self.admin)
        resp = self._post(reverse('programs:update_status', args=[program.pk]), {'status': 'Approved'})
        self.assertEqual(resp.status_code, 400)
        self.assertIn('Rejected', resp.json()['message'])

    def test_unknown_status_returns_400(self):
        program = self._program()
        self.client.force_login(self.admin)
        resp = self._post(reverse('programs:update_status', args=[program.pk]), {'status': 'Archived'})
        self.assertEqual(resp.status_code, 400)

    def test_complete_program_with_report(self):
        program = self._program(status='Approved')
        start = timezone.now() - timedelta(hours=4)
        self.client.force_login(self.admin)
        resp = self._post(reverse('programs:complete_program', args=[program.pk]), {
            'actual_attendance': 30,
            'start_date': start.isoformat(),
            'end_date': (start + timedelta(hours=2)).isoformat(),
            'drive_link': 'https://drive.example.com/report',
        })
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()['status'], 'Completed')
        self.assertEqual(resp.json()['actual_attendance'], 30)

    def test_complete_requires_document_or_link(self):
        program = self._program(status='Ongoing')
        start = timezone.now()
        self.client.force_login(self.admin)
        resp = self._post(reverse('programs:complete_program', args=[program.pk]), {
            'actual_attendance': 30,
            'start_date': start.isoformat(),
            'end_date': start.isoformat(),
        })
        self.assertEqual(resp.status_code, 400)
        self.assertIn('non_field_errors', resp.json()['errors'])

    def test_registration_settings_are_independent(self):
        deadline = timezone.now() + timedelta(days=3)
        program = self._program(registration_deadline=deadline)
        self.client.force_login(self.staff)

        resp = self._post(reverse('programs:registration_settings', args=[program.pk]), {'registration_open': False})
        self.assertEqual(resp.status_code, 200)
        program.refresh_from_db()
        self.assertFalse(program.registration_open)
        self.assertEqual(program.registration_deadline, deadline)

        resp = self._post(reverse('programs:registration_settings', args=[program.pk]),
                          {'registration_deadline': None})
        self.assertEqual(resp.status_code, 200)
        program.refresh_from_db()
        self.assertIsNone(program.registration_deadline)
        self.assertFalse(program.registration_open)

    def test_replace_form_fields(self):
        program = self._program()
        FormField.objects.create(program=program, label='Old Question')
        self.client.force_login(self.staff)
        resp = self.client.put(
            reverse('programs:form_fields', args=[program.pk]),
            {'form_fields': [
                {'label': 'Track', 'fieldType': 'select', 'options': ['Web', 'Data'], 'required': True},
                {'label': 'Bio', 'fieldType': 'textarea'},
            ]},
            content_type='application/json',
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([field['label'] for field in resp.json()['form_fields']], ['Track', 'Bio'])
        self.assertFalse(program.form_fields.filter(label='Old Question').exists())

    def test_select_question_without_options_is_400(self):
        program = self._program()
        FormField.objects.create(program=program, label='Old Question')
        self.client.force_login(self.staff)
        resp = self.client.put(
            reverse('programs:form_fields', args=[program.pk]),
            {'form_fields': [{'label': 'Track', 'fieldType': 'select', 'options': []}]},
            content_type='application/json',
        )
        self.assertEqual(resp.status_code, 400)
        self.assertIn('form_fields[0]', resp.json()['errors'])
        self.assertTrue(program.form_fields.filter(label='Old Question').exists())

    def test_create_with_invalid_form_fields_is_400(self):
        self.client.force_login(self.staff)
        resp = self._post(reverse('programs:program_list'), {
            'name': 'Workshop',
            'form_fields': [{'label': 'Track', 'fieldType': 'select'}],
        })
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(Program.objects.filter(name='Workshop').exists())

    def test_program_updates_thread(self):
        program = self._program()
        self.client.force_login(self.staff)
        resp = self._post(reverse('programs:program_updates', args=[program.pk]), {'text': 'Venue booked'})
        self.assertEqual(resp.status_code, 201)
        resp = self.client.get(reverse('programs:program_updates', args=[program.pk]))
        self.assertEqual([update['text'] for update in resp.json()['results']], ['Venue booked'])

    def test_admin_adds_participant(self):
        program = self._program()
        self.client.force_login(self.admin)
        resp = self._post(reverse('programs:participants', args=[program.pk]),
                          {'full_name': 'Ada', 'phone': '08012345678'})
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()['kind'], 'structured')
        self.assertEqual(resp.json()['referral_source'], 'Admin Manual Add')

    def test_participant_needs_contact(self):
        program = self._program()
        self.client.force_login(self.admin)
        resp = self._post(reverse('programs:participants', args=[program.pk]), {'full_name': 'Ada'})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(program.participants.count(), 0)

    def test_staff_cannot_manage_participants(self):
        program = self._program()
        self.client.force_login(self.staff)
        resp = self._post(reverse('programs:participants', args=[program.pk]),
                          {'full_name': 'Ada', 'email': 'ada@test.com'})
        self.assertEqual(resp.status_code, 403)

    def test_import_csv_upload(self):
        program = self._program()
        upload = SimpleUploadedFile(
            'roster.csv',
            b'Full Name,Email,Phone\nJane,jane@test.com,\nNo Contact,,\nSam,,0803\n',
            content_type='text/csv',
        )
        self.client.force_login(self.admin)
        resp = self.client.post(reverse('programs:import_participants', args=[program.pk]), {'file': upload})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()['added'], 2)
        self.assertEqual(resp.json()['total'], 2)

    def test_import_rows(self):
        program = self._program()
        self.client.force_login(self.admin)
        resp = self._post(reverse('programs:import_participants', args=[program.pk]), {
            'rows': [{'full_name': 'Jane', 'email': 'jane@test.com'}, {'full_name': 'Nobody'}],
        })
        self.assertEqual(resp.json()['added'], 1)

    def test_remove_legacy_entry_is_refused(self):
        program = self._program()
        legacy = RosterEntry.objects.create(program=program, legacy_email='old@test.com')
        self.client.force_login(self.admin)

        resp = self._post(reverse('programs:remove_participant', args=[program.pk]), {'entry_id': legacy.pk})
        self.assertEqual(resp.status_code, 400)
        resp = self._post(reverse('programs:remove_participant', args=[program.pk]), {'target': 'old@test.com'})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(program.participants.count(), 1)

    def test_remove_structured_participant(self):
        program = self._program()
        entry = roster.add(program, {'full_name': 'Jane', 'email': 'jane@test.com'})
        self.client.force_login(self.admin)

        resp = self._post(reverse('programs:remove_participant', args=[program.pk]),
                          {'participant_id': entry.participant_id})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(program.participants.count(), 0)

        resp = self._post(reverse('programs:remove_participant', args=[program.pk]),
                          {'participant_id': entry.participant_id})
        self.assertEqual(resp.status_code, 404)

    def test_export_csv(self):
        program = self._program(link_slug='tech-bootcamp-abc')
        roster.add(program, {'full_name': 'Jane', 'email': 'jane@test.com'})
        self.client.force_login(self.admin)
        resp = self.client.get(reverse('programs:export_participants', args=[program.pk]))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp['Content-Type'], 'text/csv')
        self.assertIn('tech-bootcamp-abc-participants-', resp['Content-Disposition'])
        self.assertIn('jane@test.com', resp.content.decode())

    def test_pending_approvals(self):
        pending = self._program(name='Waiting')
        self._program(name='Done', status='Approved')

        self.client.force_login(self.admin)
        resp = self.client.get(reverse('programs:pending_approvals'))
        self.assertEqual([item['id'] for item in resp.json()['results']], [pending.pk])

        self.client.force_login(self.staff)
        resp = self.client.get(reverse('programs:pending_approvals'))
        self.assertEqual(resp.json()['results'], [])
