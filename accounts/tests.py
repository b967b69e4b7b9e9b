from io import StringIO
from unittest import mock

from django.core.management import call_command
from django.test import TestCase
from django.urls import reverse
from django.contrib.auth import get_user_model

from audit.models import ActivityLog
from programs.models import Program
from .mixins import Actor
from .models import Department, ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_STAFF
from .permissions import (
    can_create_program_in, can_review_program, can_edit_program,
    can_manage_participants, can_view_program,
)

User = get_user_model()


class AccountsTestMixin:
    def setUp(self):
        self.ict = Department.objects.create(name='ICT')
        self.finance = Department.objects.create(name='Finance')
        self.super_admin = self.make_user('super@test.com', ROLE_SUPER_ADMIN)
        self.admin = self.make_user('admin@test.com', ROLE_ADMIN, self.ict)
        self.staff = self.make_user('staff@test.com', ROLE_STAFF, self.ict)

    def make_user(self, email, role, *departments):
        user = User.objects.create_user(email=email, password='testpass123', status=User.Status.ACTIVE)
        user.assign_role(role)
        for department in departments:
            user.departments.add(department)
        return user

    def post_json(self, url, data):
        return self.client.post(url, data, content_type='application/json')


class ActorPermissionTests(AccountsTestMixin, TestCase):
    def test_actor_role_is_highest_held(self):
        self.assertEqual(Actor(self.super_admin).role, ROLE_SUPER_ADMIN)
        self.assertEqual(Actor(self.admin).role, ROLE_ADMIN)
        self.assertEqual(Actor(self.staff).role, ROLE_STAFF)

    def test_superuser_flag_counts_as_super_admin(self):
        root = User.objects.create_superuser(email='root@test.com', password='testpass123')
        self.assertTrue(Actor(root).is_super_admin)

    def test_actor_from_explicit_context(self):
        """Permission checks work on a context built without database lookups."""
        actor = Actor(self.staff, role_names=[ROLE_ADMIN], department_ids=[self.finance.pk])
        program = Program(department=self.finance, created_by=self.super_admin)
        self.assertTrue(can_review_program(actor, program))
        self.assertEqual(actor.first_department_id, self.finance.pk)

    def test_program_permissions(self):
        program = Program.objects.create(name='Bootcamp', department=self.ict, created_by=self.staff)
        outsider = self.make_user('outsider@test.com', ROLE_ADMIN, self.finance)

        self.assertTrue(can_review_program(Actor(self.admin), program))
        self.assertFalse(can_review_program(Actor(self.staff), program))
        self.assertFalse(can_review_program(Actor(outsider), program))
        self.assertTrue(can_review_program(Actor(self.super_admin), program))

        self.assertTrue(can_edit_program(Actor(self.staff), program))
        self.assertFalse(can_manage_participants(Actor(self.staff), program))
        self.assertFalse(can_view_program(Actor(outsider), program))

        self.assertTrue(can_create_program_in(Actor(self.staff), self.ict.pk))
        self.assertFalse(can_create_program_in(Actor(self.staff), self.finance.pk))


class DepartmentApiTests(AccountsTestMixin, TestCase):
    def test_me(self):
        self.client.force_login(self.admin)
        resp = self.client.get(reverse('accounts:me'))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()['role'], ROLE_ADMIN)
        self.assertEqual(resp.json()['departments'], [{'id': self.ict.pk, 'name': 'ICT'}])

    def test_department_list_is_scoped(self):
        self.client.force_login(self.staff)
        resp = self.client.get(reverse('accounts:department_list'))
        self.assertEqual([dept['name'] for dept in resp.json()['results']], ['ICT'])

        self.client.force_login(self.super_admin)
        resp = self.client.get(reverse('accounts:department_list'))
        self.assertEqual(len(resp.json()['results']), 2)

    def test_super_admin_creates_department(self):
        head = self.make_user('head@test.com', ROLE_ADMIN)
        self.client.force_login(self.super_admin)
        resp = self.post_json(reverse('accounts:department_list'), {'name': 'Media', 'admin': head.pk})
        self.assertEqual(resp.status_code, 201)

        department = Department.objects.get(name='Media')
        self.assertEqual(department.admin, head)
        self.assertTrue(head.departments.filter(pk=department.pk).exists())
        self.assertTrue(ActivityLog.objects.filter(action=ActivityLog.Action.CREATE_DEPARTMENT).exists())

    def test_admin_cannot_create_department(self):
        self.client.force_login(self.admin)
        resp = self.post_json(reverse('accounts:department_list'), {'name': 'Media'})
        self.assertEqual(resp.status_code, 403)

    def test_delete_blocked_while_staff_remain(self):
        self.client.force_login(self.super_admin)
        resp = self.client.delete(reverse('accounts:department_detail', args=[self.ict.pk]))
        self.assertEqual(resp.status_code, 400)
        self.assertIn('Active Staff', resp.json()['message'])
        self.assertTrue(Department.objects.filter(pk=self.ict.pk).exists())

    def test_delete_empty_department(self):
        self.client.force_login(self.super_admin)
        resp = self.client.delete(reverse('accounts:department_detail', args=[self.finance.pk]))
        self.assertEqual(resp.status_code, 200)
        self.assertFalse(Department.objects.filter(pk=self.finance.pk).exists())

    def test_department_detail_requires_membership(self):
        self.client.force_login(self.staff)
        resp = self.client.get(reverse('accounts:department_detail', args=[self.finance.pk]))
        self.assertEqual(resp.status_code, 403)

        resp = self.client.get(reverse('accounts:department_detail', args=[self.ict.pk]))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(len(resp.json()['staff']), 2)

    def test_add_and_remove_members(self):
        newcomer = self.make_user('new@test.com', ROLE_STAFF)
        self.client.force_login(self.admin)

        resp = self.post_json(reverse('accounts:department_members', args=[self.ict.pk]), {'user_ids': [newcomer.pk]})
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(newcomer.departments.filter(pk=self.ict.pk).exists())

        resp = self.post_json(reverse('accounts:department_members', args=[self.ict.pk]), {'remove': newcomer.pk})
        self.assertEqual(resp.status_code, 200)
        self.assertFalse(newcomer.departments.filter(pk=self.ict.pk).exists())

    def test_admin_cannot_manage_other_department_members(self):
        self.client.force_login(self.admin)
        resp = self.post_json(reverse('accounts:department_members', args=[self.finance.pk]),
                              {'user_ids': [self.staff.pk]})
        self.assertEqual(resp.status_code, 403)


class StaffManagementTests(AccountsTestMixin, TestCase):
    @mock.patch('accounts.views.EmailService')
    def test_admin_invites_staff(self, mock_email_service):
        self.client.force_login(self.admin)
        resp = self.post_json(reverse('accounts:invite_staff'), {
            'email': 'newhire@test.com',
            'first_name': 'New',
            'departments': [self.ict.pk],
        })
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()['message'], 'User created and credentials sent to email!')

        user = User.objects.get(email='newhire@test.com')
        self.assertEqual(user.get_role_names(), [ROLE_STAFF])
        self.assertEqual(user.position, 'Staff Member')
        send = mock_email_service.return_value.send_templated_email
        self.assertEqual(send.call_args[0][0], 'newhire@test.com')
        self.assertEqual(send.call_args[0][2], 'accounts/emails/welcome.html')

    @mock.patch('accounts.views.EmailService')
    def test_invite_survives_email_failure(self, mock_email_service):
        mock_email_service.return_value.send_templated_email.side_effect = Exception('SMTP down')
        self.client.force_login(self.super_admin)
        resp = self.post_json(reverse('accounts:invite_staff'), {
            'email': 'newhire@test.com',
            'departments': [self.finance.pk],
        })
        self.assertEqual(resp.status_code, 201)
        self.assertIn('Copy password', resp.json()['message'])

    def test_cannot_invite_super_admin(self):
        self.client.force_login(self.super_admin)
        resp = self.post_json(reverse('accounts:invite_staff'), {
            'email': 'boss@test.com', 'role': ROLE_SUPER_ADMIN, 'departments': [self.ict.pk],
        })
        self.assertEqual(resp.status_code, 403)

    def test_admin_limited_to_own_departments(self):
        self.client.force_login(self.admin)
        resp = self.post_json(reverse('accounts:invite_staff'), {
            'email': 'newhire@test.com', 'departments': [self.finance.pk],
        })
        self.assertEqual(resp.status_code, 403)
        self.assertFalse(User.objects.filter(email='newhire@test.com').exists())

    def test_one_admin_per_department(self):
        self.client.force_login(self.super_admin)
        resp = self.post_json(reverse('accounts:invite_staff'), {
            'email': 'second@test.com', 'role': ROLE_ADMIN, 'departments': [self.ict.pk],
        })
        self.assertEqual(resp.status_code, 400)

    def test_duplicate_email_rejected(self):
        self.client.force_login(self.super_admin)
        resp = self.post_json(reverse('accounts:invite_staff'), {
            'email': 'STAFF@test.com', 'departments': [self.ict.pk],
        })
        self.assertEqual(resp.status_code, 400)
        self.assertIn('email', resp.json()['errors'])

    def test_staff_cannot_list_users(self):
        self.client.force_login(self.staff)
        resp = self.client.get(reverse('accounts:staff_list'))
        self.assertEqual(resp.status_code, 403)

    def test_toggle_user_status(self):
        self.client.force_login(self.admin)
        url = reverse('accounts:toggle_user_status', args=[self.staff.pk])

        resp = self.client.post(url)
        self.assertEqual(resp.json()['status'], User.Status.SUSPENDED)
        self.staff.refresh_from_db()
        self.assertEqual(self.staff.status, User.Status.SUSPENDED)

        resp = self.client.post(url)
        self.assertEqual(resp.json()['status'], User.Status.ACTIVE)

    def test_suspended_user_loses_api_access(self):
        self.staff.status = User.Status.SUSPENDED
        self.staff.save()
        self.client.force_login(self.staff)
        resp = self.client.get(reverse('accounts:me'))
        self.assertEqual(resp.status_code, 403)

    def test_admin_cannot_suspend_admins_or_self(self):
        other_admin = self.make_user('admin2@test.com', ROLE_ADMIN, self.ict)
        self.client.force_login(self.admin)
        resp = self.client.post(reverse('accounts:toggle_user_status', args=[other_admin.pk]))
        self.assertEqual(resp.status_code, 403)
        resp = self.client.post(reverse('accounts:toggle_user_status', args=[self.admin.pk]))
        self.assertEqual(resp.status_code, 400)


class SeedDepartmentsCommandTests(TestCase):
    def test_creates_departments_and_super_admin(self):
        out = StringIO()
        call_command('seed_departments', admin_email='root@test.com', admin_password='testpass123', stdout=out)

        self.assertTrue(Department.objects.filter(name='Directorate').exists())
        user = User.objects.get(email='root@test.com')
        self.assertTrue(user.is_super_admin)
        self.assertTrue(user.departments.filter(name='Directorate').exists())

        call_command('seed_departments', stdout=out)
        self.assertEqual(Department.objects.filter(name='ICT').count(), 1)

    def test_dry_run_changes_nothing(self):
        call_command('seed_departments', dry_run=True, stdout=StringIO())
        self.assertEqual(Department.objects.count(), 0)


class ProfileTests(AccountsTestMixin, TestCase):
    def put_json(self, url, data):
        return self.client.put(url, data, content_type='application/json')

    def test_update_profile_keeps_omitted_fields(self):
        self.staff.first_name = 'Sam'
        self.staff.save()
        self.client.force_login(self.staff)
        resp = self.put_json(reverse('accounts:me'), {'phone': '08030000000', 'gender': 'Male'})
        self.assertEqual(resp.status_code, 200)
        self.staff.refresh_from_db()
        self.assertEqual(self.staff.phone, '08030000000')
        self.assertEqual(self.staff.first_name, 'Sam')
        self.assertEqual(self.staff.email, 'staff@test.com')

    def test_email_must_stay_unique(self):
        self.client.force_login(self.staff)
        resp = self.put_json(reverse('accounts:me'), {'email': 'ADMIN@test.com'})
        self.assertEqual(resp.status_code, 400)
        self.assertIn('email', resp.json()['errors'])

    def test_completing_profile_activates_pending_account(self):
        newcomer = User.objects.create_user(email='new@test.com', password='testpass123')
        newcomer.assign_role(ROLE_STAFF)
        self.assertEqual(newcomer.status, User.Status.PENDING)
        self.client.force_login(newcomer)
        resp = self.put_json(reverse('accounts:me'), {'first_name': 'New', 'profile_complete': True})
        self.assertEqual(resp.json()['status'], User.Status.ACTIVE)

    def test_change_password(self):
        self.client.force_login(self.staff)
        resp = self.post_json(reverse('accounts:change_password'), {
            'old_password': 'wrong',
            'new_password1': 'n3w-Passw0rd!',
            'new_password2': 'n3w-Passw0rd!',
        })
        self.assertEqual(resp.status_code, 400)
        self.assertIn('old_password', resp.json()['errors'])

        resp = self.post_json(reverse('accounts:change_password'), {
            'old_password': 'testpass123',
            'new_password1': 'n3w-Passw0rd!',
            'new_password2': 'n3w-Passw0rd!',
        })
        self.assertEqual(resp.status_code, 200)
        self.staff.refresh_from_db()
        self.assertTrue(self.staff.check_password('n3w-Passw0rd!'))


class UserLifecycleTests(AccountsTestMixin, TestCase):
    def test_admin_deletes_own_staff(self):
        self.client.force_login(self.admin)
        resp = self.client.delete(reverse('accounts:delete_user', args=[self.staff.pk]))
        self.assertEqual(resp.status_code, 200)
        self.assertFalse(User.objects.filter(pk=self.staff.pk).exists())
        self.assertTrue(ActivityLog.objects.filter(action=ActivityLog.Action.DELETE_USER).exists())

    def test_super_admin_cannot_be_deleted(self):
        self.client.force_login(self.super_admin)
        resp = self.client.delete(reverse('accounts:delete_user', args=[self.super_admin.pk]))
        self.assertEqual(resp.status_code, 400)
        self.assertTrue(User.objects.filter(pk=self.super_admin.pk).exists())

    def test_admin_cannot_delete_outside_department(self):
        outsider = self.make_user('fin@test.com', ROLE_STAFF, self.finance)
        self.client.force_login(self.admin)
        resp = self.client.delete(reverse('accounts:delete_user', args=[outsider.pk]))
        self.assertEqual(resp.status_code, 403)

    def test_program_creator_cannot_be_deleted(self):
        Program.objects.create(name='Bootcamp', department=self.ict, created_by=self.staff)
        self.client.force_login(self.super_admin)
        resp = self.client.delete(reverse('accounts:delete_user', args=[self.staff.pk]))
        self.assertEqual(resp.status_code, 400)

    def test_staff_cannot_delete_users(self):
        other = self.make_user('other@test.com', ROLE_STAFF, self.ict)
        self.client.force_login(self.staff)
        resp = self.client.delete(reverse('accounts:delete_user', args=[other.pk]))
        self.assertEqual(resp.status_code, 403)

    def test_migrate_staff(self):
        self.client.force_login(self.super_admin)
        resp = self.post_json(reverse('accounts:migrate_staff', args=[self.staff.pk]), {
            'from_department': self.ict.pk, 'to_department': self.finance.pk,
        })
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(list(self.staff.departments.values_list('name', flat=True)), ['Finance'])
        self.assertTrue(ActivityLog.objects.filter(action=ActivityLog.Action.MIGRATE_STAFF).exists())

    def test_migrate_requires_membership_of_source(self):
        self.client.force_login(self.super_admin)
        resp = self.post_json(reverse('accounts:migrate_staff', args=[self.staff.pk]), {
            'from_department': self.finance.pk, 'to_department': self.ict.pk,
        })
        self.assertEqual(resp.status_code, 400)

    def test_admin_cannot_migrate_into_foreign_department(self):
        self.client.force_login(self.admin)
        resp = self.post_json(reverse('accounts:migrate_staff', args=[self.staff.pk]), {
            'from_department': self.ict.pk, 'to_department': self.finance.pk,
        })
        self.assertEqual(resp.status_code, 403)
        self.assertTrue(self.staff.departments.filter(pk=self.ict.pk).exists())


class DepartmentAdminTests(AccountsTestMixin, TestCase):
    def put_json(self, url, data):
        return self.client.put(url, data, content_type='application/json')

    def test_assign_admin(self):
        self.client.force_login(self.super_admin)
        resp = self.put_json(reverse('accounts:department_admin', args=[self.finance.pk]), {'user_id': self.staff.pk})
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()['department']['has_admin'])

        self.finance.refresh_from_db()
        self.assertEqual(self.finance.admin, self.staff)
        self.assertEqual(self.staff.get_role_names(), [ROLE_ADMIN])
        self.assertTrue(self.staff.departments.filter(pk=self.finance.pk).exists())

    def test_one_admin_per_department(self):
        self.client.force_login(self.super_admin)
        resp = self.put_json(reverse('accounts:department_admin', args=[self.ict.pk]), {'user_id': self.staff.pk})
        self.assertEqual(resp.status_code, 400)
        self.assertIn('already the Admin', resp.json()['message'])

    def test_revoke_admin_demotes_to_staff(self):
        self.ict.admin = self.admin
        self.ict.save()
        self.client.force_login(self.super_admin)
        resp = self.client.delete(reverse('accounts:department_admin', args=[self.ict.pk]))
        self.assertEqual(resp.status_code, 200)

        self.ict.refresh_from_db()
        self.assertIsNone(self.ict.admin)
        self.assertEqual(self.admin.get_role_names(), [ROLE_STAFF])
        self.assertTrue(ActivityLog.objects.filter(action=ActivityLog.Action.REVOKE_ADMIN).exists())

    def test_revoke_without_admin(self):
        self.client.force_login(self.super_admin)
        resp = self.client.delete(reverse('accounts:department_admin', args=[self.finance.pk]))
        self.assertEqual(resp.status_code, 400)

    def test_only_super_admin_appoints(self):
        self.client.force_login(self.admin)
        resp = self.put_json(reverse('accounts:department_admin', args=[self.finance.pk]), {'user_id': self.staff.pk})
        self.assertEqual(resp.status_code, 403)
