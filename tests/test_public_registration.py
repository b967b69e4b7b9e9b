from datetime import timedelta
from unittest import mock

from django.test import TestCase, Client
from django.urls import reverse
from django.contrib.auth import get_user_model
from django.utils import timezone

from accounts.models import Department
from programs.models import Program, FormField, Participant

User = get_user_model()


class PublicRegistrationTests(TestCase):
    def setUp(self):
        self.client = Client()
        self.department = Department.objects.create(name='Innovation')
        self.creator = User.objects.create_user(email='creator@test.com', password='testpass123')
        self.program = Program.objects.create(
            name='Pitch Night',
            department=self.department,
            created_by=self.creator,
            status=Program.Status.APPROVED,
            link_slug='pitch-night-x1y2z3',
        )
        self.url = reverse('public_register', args=[self.program.link_slug])

    def _register(self, data, url=None):
        return self.client.post(url or self.url, data, content_type='application/json')

    def test_detail_by_slug_and_id(self):
        for identifier in (self.program.link_slug, str(self.program.pk)):
            resp = self.client.get(reverse('public_program_detail', args=[identifier]))
            self.assertEqual(resp.status_code, 200)
            data = resp.json()
            self.assertEqual(data['name'], 'Pitch Night')
            self.assertTrue(data['registration_open'])
            self.assertEqual([field['name'] for field in data['form_fields']], ['gender', 'state', 'organization'])

    def test_detail_hides_pending_programs(self):
        self.program.status = Program.Status.PENDING
        self.program.save()
        resp = self.client.get(reverse('public_program_detail', args=[self.program.link_slug]))
        self.assertEqual(resp.status_code, 404)

    def test_detail_does_not_expose_internal_fields(self):
        data = self.client.get(reverse('public_program_detail', args=[self.program.link_slug])).json()
        for key in ('cost', 'amount_disbursed', 'created_by', 'participants'):
            self.assertNotIn(key, data)

    @mock.patch('communications.services.EmailService')
    def test_successful_registration_sends_ticket(self, mock_email_service):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            resp = self._register({
                'full_name': 'Ada Obi',
                'email': 'Ada@Test.com',
                'gender': 'Female',
                'state': 'Lagos',
            })

        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()['message'], 'Registration successful')
        self.assertEqual(len(callbacks), 1)

        participant = Participant.objects.get(pk=resp.json()['participant_id'])
        self.assertEqual(participant.email, 'ada@test.com')
        self.assertEqual(participant.gender, 'Female')
        self.assertEqual(participant.referral_source, 'Public Registration')

        entry = self.program.participants.get()
        self.assertEqual(entry.participant, participant)
        self.assertEqual(entry.responses, {'Gender': 'Female', 'State of Residence': 'Lagos'})

        send = mock_email_service.return_value.send_templated_email
        send.assert_called_once()
        self.assertEqual(send.call_args[0][0], 'ada@test.com')
        self.assertIn('Pitch Night', send.call_args[0][1])

    @mock.patch('communications.services.EmailService')
    def test_email_failure_does_not_undo_registration(self, mock_email_service):
        mock_email_service.return_value.send_templated_email.side_effect = Exception('SMTP down')
        with self.captureOnCommitCallbacks(execute=True):
            resp = self._register({'full_name': 'Ada Obi', 'email': 'ada@test.com'})

        self.assertEqual(resp.status_code, 201)
        self.assertEqual(self.program.participants.count(), 1)

    @mock.patch('communications.services.EmailService')
    def test_phone_only_registration_skips_ticket(self, mock_email_service):
        with self.captureOnCommitCallbacks(execute=True):
            resp = self._register({'full_name': 'Sam', 'phone': '08031234567'})
        self.assertEqual(resp.status_code, 201)
        mock_email_service.return_value.send_templated_email.assert_not_called()

    def test_unknown_program_is_404(self):
        resp = self._register({'full_name': 'Ada', 'email': 'ada@test.com'},
                              url=reverse('public_register', args=['no-such-program']))
        self.assertEqual(resp.status_code, 404)

    def test_closed_registration_is_403(self):
        self.program.registration_open = False
        self.program.save()
        resp = self._register({'full_name': 'Ada', 'email': 'ada@test.com'})
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json()['message'], 'Registration for this program is currently closed.')
        self.assertEqual(self.program.participants.count(), 0)

    def test_past_deadline_is_403_even_when_open(self):
        self.program.registration_open = True
        self.program.registration_deadline = timezone.now() - timedelta(minutes=1)
        self.program.save()
        resp = self._register({'full_name': 'Ada', 'email': 'ada@test.com'})
        self.assertEqual(resp.status_code, 403)
        closed_at = timezone.localtime(self.program.registration_deadline).strftime('%Y-%m-%d %H:%M')
        self.assertEqual(resp.json()['message'], f'Registration closed on {closed_at}.')

    def test_unpublished_program_is_404(self):
        for status in (Program.Status.PENDING, Program.Status.REJECTED, Program.Status.CANCELLED):
            self.program.status = status
            self.program.save()
            resp = self._register({'full_name': 'Ada', 'email': 'ada@test.com'})
            self.assertEqual(resp.status_code, 404)
        self.assertEqual(self.program.participants.count(), 0)

    def test_closed_check_runs_before_validation(self):
        self.program.registration_open = False
        self.program.save()
        resp = self._register({})
        self.assertEqual(resp.status_code, 403)

    def test_missing_contact_is_400(self):
        resp = self._register({'full_name': 'Ada'})
        self.assertEqual(resp.status_code, 400)
        self.assertIn('non_field_errors', resp.json()['errors'])
        self.assertEqual(Participant.objects.count(), 0)

    def test_custom_required_field(self):
        FormField.objects.create(program=self.program, label='Startup Name', field_type='text', required=True)

        resp = self._register({'full_name': 'Ada', 'email': 'ada@test.com'})
        self.assertEqual(resp.status_code, 400)
        self.assertIn('startup_name', resp.json()['errors'])

        with self.captureOnCommitCallbacks(execute=False):
            resp = self._register({'full_name': 'Ada', 'email': 'ada@test.com', 'Startup Name': 'Acme'})
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(self.program.participants.get().responses, {'Startup Name': 'Acme'})

    def test_version_uses_master_form(self):
        master = Program.objects.create(
            name='Demo Day', structure=Program.Structure.RECURRING, department=self.department,
            created_by=self.creator, status=Program.Status.APPROVED,
        )
        FormField.objects.create(program=master, label='Track', field_type='select',
                                 options=['Web', 'Data'], required=True)
        version = Program.objects.create(
            name='Demo Day', structure=Program.Structure.RECURRING, department=self.department,
            created_by=self.creator, status=Program.Status.APPROVED, parent_program=master,
            custom_suffix='June', link_slug='demo-day-june-abc',
        )
        url = reverse('public_register', args=[version.link_slug])

        resp = self._register({'full_name': 'Ada', 'email': 'ada@test.com', 'track': 'Design'}, url=url)
        self.assertEqual(resp.status_code, 400)

        with self.captureOnCommitCallbacks(execute=False):
            resp = self._register({'full_name': 'Ada', 'email': 'ada@test.com', 'track': 'Data'}, url=url)
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(version.participants.count(), 1)
        self.assertEqual(master.participants.count(), 0)
        self.assertEqual(version.form_fields.count(), 0)

    def test_form_encoded_submission(self):
        with self.captureOnCommitCallbacks(execute=False):
            resp = self.client.post(self.url, {'full_name': 'Ada', 'phone': '0803'})
        self.assertEqual(resp.status_code, 201)
