"""
Aggregations behind the dashboard cards, charts, impact analytics and reports.

Super admins see every department; everyone else is scoped to the
departments in their session context.
"""

import calendar

from django.contrib.auth import get_user_model
from django.db.models import Count, Q, Sum
from django.db.models.functions import ExtractMonth

from accounts.models import Department, ROLE_SUPER_ADMIN
from accounts.permissions import can_view_finance
from programs.models import Program, Participant, RosterEntry
from .kpis import parse_range, score_department

User = get_user_model()

MONTHS = [calendar.month_abbr[month] for month in range(1, 13)]


def _number(value):
    return float(value) if value is not None else 0


def scoped_programs(actor):
    programs = Program.objects.all()
    if actor.is_super_admin:
        return programs
    if actor.is_admin:
        return programs.filter(department_id__in=actor.department_ids)
    return programs.filter(Q(department_id__in=actor.department_ids) | Q(created_by_id=actor.id))


def card_stats(actor):
    """Summary cards for the dashboard header, depending on the actor's role."""
    if actor.is_super_admin:
        programs = Program.objects.all()
        return [
            {'key': 'departments', 'label': 'Total Departments', 'value': Department.objects.count()},
            {'key': 'programs', 'label': 'Total Programs Created', 'value': programs.count()},
            {'key': 'staff', 'label': 'Total Staff',
             'value': User.objects.exclude(is_superuser=True).exclude(groups__name=ROLE_SUPER_ADMIN).count()},
            {'key': 'impact', 'label': 'People Impacted',
             'value': programs.aggregate(total=Sum('participants_count'))['total'] or 0},
            {'key': 'pending', 'label': 'Pending Approvals',
             'value': programs.filter(status=Program.Status.PENDING).count()},
        ]

    if actor.is_admin:
        programs = Program.objects.filter(department_id__in=actor.department_ids)
        staff = User.objects.filter(departments__in=actor.department_ids).distinct()
        return [
            {'key': 'programs', 'label': 'My Programs', 'value': programs.count()},
            {'key': 'staff', 'label': 'My Staff', 'value': staff.count()},
            {'key': 'impact', 'label': 'People Impacted',
             'value': programs.aggregate(total=Sum('participants_count'))['total'] or 0},
            {'key': 'pending', 'label': 'Pending Requests',
             'value': programs.filter(status=Program.Status.PENDING).count()},
        ]

    programs = Program.objects.filter(created_by_id=actor.id)
    return [
        {'key': 'programs', 'label': 'My Programs', 'value': programs.count()},
        {'key': 'active', 'label': 'Active Programs',
         'value': programs.filter(status__in=[Program.Status.APPROVED, Program.Status.ONGOING]).count()},
        {'key': 'completed', 'label': 'Completed',
         'value': programs.filter(status=Program.Status.COMPLETED).count()},
        {'key': 'pending', 'label': 'Pending',
         'value': programs.filter(status=Program.Status.PENDING).count()},
    ]


def chart_data(actor):
    """Programs per month of creation and programs per department."""
    programs = scoped_programs(actor)

    by_month = (
        programs.annotate(month=ExtractMonth('created_at'))
        .values('month')
        .annotate(count=Count('id'))
        .order_by('month')
    )
    by_department = (
        programs.values('department__name')
        .annotate(value=Count('id'))
        .order_by('-value')
    )
    return {
        'programs_per_month': [
            {'name': MONTHS[row['month'] - 1], 'programs': row['count']} for row in by_month
        ],
        'programs_per_department': [
            {'name': row['department__name'], 'value': row['value']} for row in by_department
        ],
    }


def impact_analytics(actor, year):
    """
    Per-month participants, startups, program count, budget and gender split.

    Programs are bucketed by their own date; rejected programs are left out.
    Budget figures are zero for actors without finance access.
    """
    programs = scoped_programs(actor).filter(date__year=year).exclude(status=Program.Status.REJECTED)
    show_finance = can_view_finance(actor)

    growth = {
        row['month']: row
        for row in programs.annotate(month=ExtractMonth('date')).values('month').annotate(
            startups=Sum('startups_count'),
            program_count=Count('id'),
            budget=Sum('cost'),
            disbursed=Sum('amount_disbursed'),
        )
    }
    roster_sizes = {
        row['month']: row['participants']
        for row in RosterEntry.objects.filter(program__in=programs)
        .annotate(month=ExtractMonth('program__date'))
        .values('month')
        .annotate(participants=Count('id'))
    }

    participants = Participant.objects.filter(created_at__year=year)
    if not actor.is_super_admin:
        participants = participants.filter(roster_entries__program__in=scoped_programs(actor))
    demographics = {
        row['month']: row
        for row in participants.annotate(month=ExtractMonth('created_at')).values('month').annotate(
            male=Count('id', filter=Q(gender='Male'), distinct=True),
            female=Count('id', filter=Q(gender='Female'), distinct=True),
        )
    }

    results = []
    for index, name in enumerate(MONTHS, start=1):
        g = growth.get(index, {})
        d = demographics.get(index, {})
        results.append({
            'name': name,
            'participants': roster_sizes.get(index, 0),
            'startups': g.get('startups') or 0,
            'program_count': g.get('program_count') or 0,
            'budget': _number(g.get('budget')) if show_finance else 0,
            'disbursed': _number(g.get('disbursed')) if show_finance else 0,
            'male': d.get('male') or 0,
            'female': d.get('female') or 0,
        })
    return results


def report_stats(actor):
    """Financial totals and activity over completed programs, plus status counts."""
    programs = scoped_programs(actor)
    completed = programs.filter(status=Program.Status.COMPLETED)

    totals = completed.aggregate(requested=Sum('cost'), disbursed=Sum('amount_disbursed'))
    status_counts = programs.values('status').annotate(count=Count('id')).order_by('status')
    department_activity = (
        completed.values('department__name')
        .annotate(program_count=Count('id'), total_spent=Sum('cost'))
        .order_by('-total_spent')
    )

    return {
        'financials': {
            'total_requested': _number(totals['requested']),
            'total_approved': _number(totals['requested']),
            'total_disbursed': _number(totals['disbursed']),
        },
        'status_counts': [{'status': row['status'], 'count': row['count']} for row in status_counts],
        'department_activity': [
            {
                'name': row['department__name'],
                'program_count': row['program_count'],
                'total_spent': _number(row['total_spent']),
            }
            for row in department_activity
        ],
        'completed_programs': completed.select_related('department', 'created_by', 'parent_program').order_by('-date'),
    }


def department_overview(department, range_value='30d'):
    """Staff counts, period program stats, KPI scores and monthly status trend for one department."""
    start, end = parse_range(range_value)
    programs = list(
        Program.objects.filter(department=department, created_at__gte=start, created_at__lte=end)
        .order_by('-created_at')
    )

    status_counts = {}
    trend = {}
    for program in programs:
        status_counts[program.status] = status_counts.get(program.status, 0) + 1
        label = f"{program.created_at.year}-{program.created_at.month:02d}"
        bucket = trend.setdefault(label, {'label': label})
        bucket[program.status] = bucket.get(program.status, 0) + 1

    kpis, score = score_department(programs)
    staff = department.staff.all()
    return {
        'department': {'id': department.pk, 'name': department.name, 'description': department.description},
        'range': {'start': start.isoformat(), 'end': end.isoformat(), 'range': range_value},
        'counts': {
            'staff_total': staff.count(),
            'staff_active': staff.filter(status=User.Status.ACTIVE).count(),
            'programs_total': len(programs),
            'cost_total': _number(sum((program.cost for program in programs), 0)),
        },
        'kpis': kpis,
        'kpi_score': score,
        'programs_by_status': [{'status': status, 'count': count} for status, count in status_counts.items()],
        'programs_trend': [trend[label] for label in sorted(trend)],
        'recent_programs': [
            {
                'id': program.pk,
                'name': program.name,
                'status': program.status,
                'program_type': program.program_type,
                'date': program.date.isoformat() if program.date else None,
                'cost': _number(program.cost),
                'participants_count': program.participants_count,
                'actual_attendance': program.actual_attendance,
            }
            for program in programs[:8]
        ],
    }
