from unittest import mock

from django.core import mail
from django.test import TestCase, override_settings
from django.urls import reverse
from django.contrib.auth import get_user_model

from accounts.mixins import Actor
from accounts.models import Department, ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_STAFF
from audit.models import ActivityLog
from programs.models import Program, RosterEntry
from programs.utils import roster
from .broadcast import ALL_PROGRAMS, clean_recipients, resolve_audience
from .models import BroadcastLog
from .services import EmailService, send_registration_ticket

User = get_user_model()


class CommunicationsTestMixin:
    def setUp(self):
        self.ict = Department.objects.create(name='ICT')
        self.finance = Department.objects.create(name='Finance')
        self.super_admin = self.make_user('super@test.com', ROLE_SUPER_ADMIN)
        self.admin = self.make_user('admin@test.com', ROLE_ADMIN, self.ict)
        self.staff = self.make_user('staff@test.com', ROLE_STAFF, self.ict)
        self.finance_staff = self.make_user('fin@test.com', ROLE_STAFF, self.finance)

        self.program = Program.objects.create(name='Bootcamp', department=self.ict, created_by=self.staff)
        roster.add(self.program, {'full_name': 'Jane', 'email': 'jane@test.com'})
        roster.add(self.program, {'full_name': 'Sam', 'phone': '0803'})
        RosterEntry.objects.create(program=self.program, legacy_email='old@test.com', position=10)
        RosterEntry.objects.create(program=self.program, position=11)

        self.other_program = Program.objects.create(name='Audit Day', department=self.finance, created_by=self.finance_staff)
        roster.add(self.other_program, {'full_name': 'Zed', 'email': 'zed@test.com'})

    def make_user(self, email, role, department=None):
        user = User.objects.create_user(email=email, password='testpass123', status=User.Status.ACTIVE)
        user.assign_role(role)
        if department is not None:
            user.departments.add(department)
        return user


class AudienceResolutionTests(CommunicationsTestMixin, TestCase):
    def test_clean_recipients(self):
        self.assertEqual(
            clean_recipients([' a@x.com', 'A@X.com', 'not-an-email', '', None, 'b@x.com']),
            ['a@x.com', 'b@x.com'],
        )

    def test_manual_audience_accepts_text(self):
        recipients, _ = resolve_audience(Actor(self.admin), 'manual', {'emails': 'a@x.com; b@x.com\nbad'})
        self.assertEqual(recipients, ['a@x.com', 'b@x.com'])

    def test_csv_audience(self):
        recipients, _ = resolve_audience(Actor(self.admin), 'csv', {
            'recipients': [{'email': 'a@x.com'}, {'Email': 'b@x.com'}, {'name': 'no email'}],
        })
        self.assertEqual(recipients, ['a@x.com', 'b@x.com'])

    def test_general_audience_scoped_for_admins(self):
        recipients, _ = resolve_audience(Actor(self.admin), 'general', {})
        self.assertEqual(sorted(recipients), ['admin@test.com', 'staff@test.com'])

        recipients, _ = resolve_audience(Actor(self.super_admin), 'general', {})
        self.assertIn('fin@test.com', recipients)

    def test_program_audience_skips_missing_entries(self):
        recipients, names = resolve_audience(Actor(self.admin), 'program', {'programs': [self.program.pk]})
        self.assertEqual(recipients, ['jane@test.com', 'old@test.com'])
        self.assertEqual(names, ['Bootcamp'])

    def test_all_programs_limited_to_own_departments(self):
        recipients, _ = resolve_audience(Actor(self.admin), 'program', {'programs': ALL_PROGRAMS})
        self.assertNotIn('zed@test.com', recipients)

        recipients, _ = resolve_audience(Actor(self.super_admin), 'program', {'programs': [ALL_PROGRAMS]})
        self.assertIn('zed@test.com', recipients)

    def test_unknown_audience(self):
        with self.assertRaises(ValueError):
            resolve_audience(Actor(self.admin), 'everyone', {})


class BroadcastApiTests(CommunicationsTestMixin, TestCase):
    def _send(self, data):
        return self.client.post(reverse('communications:send_broadcast'), data, content_type='application/json')

    def test_broadcast_goes_out_in_bcc(self):
        self.client.force_login(self.admin)
        resp = self._send({
            'audience_type': 'program',
            'programs': [self.program.pk],
            'subject': 'Venue change',
            'message': 'We moved to Hall B.',
        })
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()['recipient_count'], 2)

        self.assertEqual(len(mail.outbox), 1)
        sent = mail.outbox[0]
        self.assertEqual(sent.to, ['admin@test.com'])
        self.assertEqual(sent.bcc, ['jane@test.com', 'old@test.com'])
        self.assertEqual(sent.subject, 'Venue change')

        log = BroadcastLog.objects.get()
        self.assertEqual(log.target_programs, ['Bootcamp'])
        self.assertEqual(log.recipient_count, 2)
        self.assertTrue(ActivityLog.objects.filter(action=ActivityLog.Action.SEND_BROADCAST).exists())

    def test_empty_audience_is_400(self):
        self.client.force_login(self.admin)
        resp = self._send({'audience_type': 'manual', 'emails': 'nobody', 'subject': 'Hi', 'message': 'Hello'})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(len(mail.outbox), 0)
        self.assertFalse(BroadcastLog.objects.exists())

    @mock.patch('communications.views.EmailService')
    def test_send_failure_is_502(self, mock_email_service):
        mock_email_service.return_value.send_templated_email.side_effect = Exception('relay refused')
        self.client.force_login(self.admin)
        resp = self._send({'audience_type': 'manual', 'emails': 'a@x.com', 'subject': 'Hi', 'message': 'Hello'})
        self.assertEqual(resp.status_code, 502)
        self.assertIn('relay refused', resp.json()['message'])
        self.assertFalse(BroadcastLog.objects.exists())

    def test_staff_cannot_broadcast(self):
        self.client.force_login(self.staff)
        resp = self._send({'audience_type': 'manual', 'emails': 'a@x.com', 'subject': 'Hi', 'message': 'Hello'})
        self.assertEqual(resp.status_code, 403)

    def test_missing_subject(self):
        self.client.force_login(self.admin)
        resp = self._send({'audience_type': 'manual', 'emails': 'a@x.com', 'message': 'Hello'})
        self.assertEqual(resp.status_code, 400)
        self.assertIn('subject', resp.json()['errors'])

    def test_history_scoped_to_sender(self):
        BroadcastLog.objects.create(sender=self.admin, audience_type='manual', subject='Mine', message='x')
        BroadcastLog.objects.create(sender=self.super_admin, audience_type='general', subject='Theirs', message='x')

        self.client.force_login(self.admin)
        resp = self.client.get(reverse('communications:broadcast_history'))
        self.assertEqual([item['subject'] for item in resp.json()['results']], ['Mine'])


class EmailServiceTests(CommunicationsTestMixin, TestCase):
    def test_falls_back_to_django_backend(self):
        service = EmailService()
        self.assertIsNone(service.client)
        service.send_email('a@x.com', 'Hello', '<p>Hi there</p>')
        self.assertEqual(mail.outbox[0].body, 'Hi there')

    @override_settings(
        AZURE_COMMUNICATION_CONNECTION_STRING='endpoint=https://example.communication.azure.com/;accesskey=abc',
        AZURE_COMMUNICATION_SENDER_ADDRESS='noreply@example.com',
    )
    @mock.patch('communications.services.EmailClient')
    def test_azure_failure_falls_back(self, mock_email_client):
        mock_email_client.from_connection_string.return_value.begin_send.side_effect = Exception('throttled')
        EmailService().send_email('a@x.com', 'Hello', '<p>Hi</p>', bcc=['b@x.com'])
        self.assertEqual(mail.outbox[0].bcc, ['b@x.com'])

    def test_registration_ticket(self):
        participant = self.program.participants.first().participant
        self.assertTrue(send_registration_ticket(participant.pk, self.program.pk))
        self.assertEqual(mail.outbox[0].to, ['jane@test.com'])
        self.assertIn('Bootcamp', mail.outbox[0].subject)

    def test_registration_ticket_for_unknown_participant(self):
        self.assertFalse(send_registration_ticket(999999, self.program.pk))
        self.assertEqual(len(mail.outbox), 0)
