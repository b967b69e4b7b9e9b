from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

from django.test import TestCase
from django.urls import reverse
from django.contrib.auth import get_user_model
from django.utils import timezone

from accounts.models import Department, ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_STAFF
from programs.models import Program
from programs.utils import roster
from .kpis import DOWN, UP, KPI_WEIGHT_SUM, kpi_actuals, parse_range, score_department, score_kpi

User = get_user_model()


class KpiScoringTests(TestCase):
    def test_weights_sum_to_hundred(self):
        self.assertEqual(KPI_WEIGHT_SUM, 100)

    def test_score_kpi_up(self):
        self.assertEqual(score_kpi(3, 6, UP), 50)
        self.assertEqual(score_kpi(12, 6, UP), 100)
        self.assertEqual(score_kpi(5, 0, UP), 0)

    def test_score_kpi_down(self):
        self.assertEqual(score_kpi(0, 2, DOWN), 100)
        self.assertEqual(score_kpi(4, 2, DOWN), 50)

    def test_parse_range(self):
        now = datetime(2025, 5, 31, tzinfo=dt_timezone.utc)
        self.assertEqual(parse_range('3m', now=now)[0], datetime(2025, 2, 28, tzinfo=dt_timezone.utc))
        self.assertEqual(parse_range('2w', now=now)[0], now - timedelta(days=14))
        self.assertEqual(parse_range('garbage', now=now)[0], now - timedelta(days=30))

    def test_kpi_actuals(self):
        created = timezone.now() - timedelta(days=4)
        programs = [
            Program(status='Completed', drive_link='https://x', participants_count=10,
                    actual_attendance=8, created_at=created, approved_at=created + timedelta(days=2)),
            Program(status='Cancelled', participants_count=10, created_at=created),
            Program(status='Pending', participants_count=0, created_at=created),
        ]
        actuals = kpi_actuals(programs)
        self.assertEqual(actuals['programs_delivered'], 1)
        self.assertEqual(actuals['pending_backlog'], 1)
        self.assertEqual(actuals['completion_rate'], 0.5)
        self.assertEqual(actuals['documentation_compliance'], 1)
        self.assertEqual(actuals['reach_rate'], 0.4)
        self.assertEqual(actuals['approval_lead_time_days'], 2)

    def test_score_department_empty(self):
        kpis, overall = score_department([])
        self.assertEqual(len(kpis), 6)
        # Only the two "lower is better" KPIs score with no programs
        self.assertEqual(overall, 30.0)


class DashboardApiTests(TestCase):
    def setUp(self):
        self.ict = Department.objects.create(name='ICT')
        self.finance = Department.objects.create(name='Finance')
        self.super_admin = self._user('super@test.com', ROLE_SUPER_ADMIN)
        self.admin = self._user('admin@test.com', ROLE_ADMIN, self.ict)
        self.staff = self._user('staff@test.com', ROLE_STAFF, self.ict)

        this_year = timezone.now().year
        self.bootcamp = Program.objects.create(
            name='Bootcamp', department=self.ict, created_by=self.staff, status='Completed',
            participants_count=40, startups_count=3, cost=Decimal('500.00'),
            amount_disbursed=Decimal('450.00'), drive_link='https://drive.example.com/r',
            date=datetime(this_year, 3, 10, tzinfo=dt_timezone.utc),
        )
        Program.objects.create(
            name='Audit Day', department=self.finance, created_by=self.super_admin, status='Pending',
            participants_count=10, date=datetime(this_year, 3, 12, tzinfo=dt_timezone.utc),
        )
        roster.add(self.bootcamp, {'full_name': 'Jane', 'email': 'jane@test.com', 'gender': 'Female'})

    def _user(self, email, role, department=None):
        user = User.objects.create_user(email=email, password='testpass123', status=User.Status.ACTIVE)
        user.assign_role(role)
        if department is not None:
            user.departments.add(department)
        return user

    def _cards(self, user):
        self.client.force_login(user)
        resp = self.client.get(reverse('dashboard:stats'))
        return {card['key']: card['value'] for card in resp.json()['cards']}

    def test_cards_per_role(self):
        cards = self._cards(self.super_admin)
        self.assertEqual(cards['departments'], 2)
        self.assertEqual(cards['programs'], 2)
        self.assertEqual(cards['impact'], 50)
        self.assertEqual(cards['pending'], 1)

        cards = self._cards(self.admin)
        self.assertEqual(cards['programs'], 1)
        self.assertEqual(cards['staff'], 2)
        self.assertEqual(cards['pending'], 0)

        cards = self._cards(self.staff)
        self.assertEqual(cards['completed'], 1)

    def test_charts_scoped(self):
        self.client.force_login(self.admin)
        data = self.client.get(reverse('dashboard:charts')).json()
        self.assertEqual(data['programs_per_department'], [{'name': 'ICT', 'value': 1}])

    def test_impact_analytics(self):
        self.client.force_login(self.admin)
        data = self.client.get(reverse('dashboard:impact')).json()
        self.assertEqual(len(data['months']), 12)
        march = data['months'][2]
        self.assertEqual(march['name'], 'Mar')
        self.assertEqual(march['program_count'], 1)
        self.assertEqual(march['participants'], 1)
        self.assertEqual(march['startups'], 3)
        self.assertEqual(march['budget'], 500.0)

    def test_impact_hides_finance_from_staff(self):
        self.client.force_login(self.staff)
        march = self.client.get(reverse('dashboard:impact')).json()['months'][2]
        self.assertEqual(march['budget'], 0)
        self.assertEqual(march['program_count'], 1)

    def test_impact_rejects_bad_year(self):
        self.client.force_login(self.admin)
        resp = self.client.get(reverse('dashboard:impact'), {'year': 'last'})
        self.assertEqual(resp.status_code, 400)

    def test_reports_require_admin(self):
        self.client.force_login(self.staff)
        self.assertEqual(self.client.get(reverse('dashboard:reports')).status_code, 403)

        self.client.force_login(self.super_admin)
        data = self.client.get(reverse('dashboard:reports')).json()
        self.assertEqual(data['financials']['total_disbursed'], 450.0)
        self.assertEqual([program['name'] for program in data['completed_programs']], ['Bootcamp'])

    def test_department_overview(self):
        self.client.force_login(self.admin)
        resp = self.client.get(reverse('dashboard:department_overview', args=[self.ict.pk]), {'range': '1y'})
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(data['counts']['programs_total'], 1)
        self.assertEqual(data['counts']['staff_total'], 2)
        delivered = next(kpi for kpi in data['kpis'] if kpi['key'] == 'programs_delivered')
        self.assertEqual(delivered['actual'], 1)

        resp = self.client.get(reverse('dashboard:department_overview', args=[self.finance.pk]))
        self.assertEqual(resp.status_code, 403)
