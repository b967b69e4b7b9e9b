"""
Department KPI definitions and scoring.

Each KPI scores 0-100 against its target; the department score is the
weight-averaged KPI score.
"""

import re

from dateutil.relativedelta import relativedelta
from django.utils import timezone

UP = 'up'
DOWN = 'down'

KPI_DEFS = [
    {
        'key': 'programs_delivered',
        'label': 'Programs Delivered',
        'unit': 'count',
        'direction': UP,
        'weight': 18,
        'target_default': 6,
        'description': 'Completed programs in the selected period.',
    },
    {
        'key': 'pending_backlog',
        'label': 'Pending Backlog',
        'unit': 'count',
        'direction': DOWN,
        'weight': 14,
        'target_default': 2,
        'description': 'Programs still pending approval.',
    },
    {
        'key': 'completion_rate',
        'label': 'Completion Rate',
        'unit': '%',
        'direction': UP,
        'weight': 18,
        'target_default': 0.85,
        'description': 'Completed / (Completed + Cancelled + Rejected) in the period.',
    },
    {
        'key': 'documentation_compliance',
        'label': 'Documentation Compliance',
        'unit': '%',
        'direction': UP,
        'weight': 16,
        'target_default': 0.8,
        'description': 'Completed programs with a final report or media link.',
    },
    {
        'key': 'reach_rate',
        'label': 'Reach Rate',
        'unit': '%',
        'direction': UP,
        'weight': 18,
        'target_default': 0.75,
        'description': 'Actual attendance / expected participants.',
    },
    {
        'key': 'approval_lead_time_days',
        'label': 'Approval Lead Time',
        'unit': 'days',
        'direction': DOWN,
        'weight': 16,
        'target_default': 3,
        'description': 'Average days from creation to approval.',
    },
]

KPI_WEIGHT_SUM = sum(kpi['weight'] for kpi in KPI_DEFS)

RANGE_PATTERN = re.compile(r'^(\d+)([dwmy])$', re.IGNORECASE)


def parse_range(value='30d', now=None):
    """
    Turn a range such as ``30d``, ``6w``, ``3m`` or ``1y`` into ``(start, end)``.

    Anything unparseable means the last 30 days.
    """
    end = now or timezone.now()
    match = RANGE_PATTERN.match(str(value or ''))
    if not match:
        return end - relativedelta(days=30), end

    count = int(match.group(1))
    unit = match.group(2).lower()
    if unit == 'd':
        delta = relativedelta(days=count)
    elif unit == 'w':
        delta = relativedelta(weeks=count)
    elif unit == 'm':
        delta = relativedelta(months=count)
    else:
        delta = relativedelta(years=count)
    return end - delta, end


def safe_div(numerator, denominator):
    return numerator / denominator if denominator else 0


def score_kpi(actual, target, direction):
    """Score from 0 to 100; for DOWN KPIs lower actuals score higher."""
    if target is None or target <= 0:
        return 0
    if direction == DOWN:
        if not actual or actual <= 0:
            return 100
        return max(0, min(100, (target / actual) * 100))
    return max(0, min(100, (actual / target) * 100))


def kpi_actuals(programs):
    """Compute raw KPI values from an iterable of programs in the period."""
    completed = cancelled = rejected = pending = documented = 0
    expected_total = actual_total = 0
    lead_time_days = []

    for program in programs:
        status = program.status
        if status == 'Completed':
            completed += 1
            if program.final_document or program.drive_link:
                documented += 1
        elif status == 'Cancelled':
            cancelled += 1
        elif status == 'Rejected':
            rejected += 1
        elif status == 'Pending':
            pending += 1

        expected_total += program.participants_count or 0
        actual_total += program.actual_attendance or 0
        if program.approved_at and program.created_at:
            lead_time_days.append((program.approved_at - program.created_at).total_seconds() / 86400)

    return {
        'programs_delivered': completed,
        'pending_backlog': pending,
        'completion_rate': safe_div(completed, completed + cancelled + rejected),
        'documentation_compliance': safe_div(documented, completed),
        'reach_rate': safe_div(actual_total, expected_total),
        'approval_lead_time_days': safe_div(sum(lead_time_days), len(lead_time_days)),
    }


def score_department(programs, targets=None, weights=None):
    """
    Score a department's programs against the KPI definitions.

    Returns ``(kpis, overall_score)`` where every KPI carries its target,
    weight, actual value and score.
    """
    targets = targets or {}
    weights = weights or {}
    actuals = kpi_actuals(programs)

    kpis = []
    for definition in KPI_DEFS:
        target = targets.get(definition['key'], definition['target_default'])
        weight = weights.get(definition['key'], definition['weight'])
        actual = actuals.get(definition['key'], 0)
        kpis.append(dict(
            definition,
            target=target,
            weight=weight,
            actual=round(actual, 4),
            score=round(score_kpi(actual, target, definition['direction']), 2),
        ))

    weight_sum = sum(kpi['weight'] for kpi in kpis) or 1
    overall = sum(kpi['score'] * kpi['weight'] for kpi in kpis) / weight_sum
    return kpis, round(overall, 2)
