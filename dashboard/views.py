from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.views.decorators.http import require_GET

from accounts.mixins import api_login_required, role_required
from accounts.models import Department, ROLE_ADMIN
from accounts.permissions import can_view_department
from programs.views import serialize_program
from . import analytics


@require_GET
@api_login_required
def dashboard_stats(request):
    """Header cards for the signed-in user's role."""
    actor = request.actor
    return JsonResponse({'role': actor.role, 'cards': analytics.card_stats(actor)})


@require_GET
@api_login_required
def dashboard_charts(request):
    return JsonResponse(analytics.chart_data(request.actor))


@require_GET
@api_login_required
def impact_analytics(request):
    """Monthly impact figures for ``?year=`` (default: this year)."""
    year = request.GET.get('year', '')
    if year and not year.isdigit():
        return JsonResponse({'message': 'year must be a number'}, status=400)
    year = int(year) if year else timezone.now().year
    return JsonResponse({'year': year, 'months': analytics.impact_analytics(request.actor, year)})


@require_GET
@role_required([ROLE_ADMIN])
def report_stats(request):
    stats = analytics.report_stats(request.actor)
    stats['completed_programs'] = [serialize_program(program) for program in stats['completed_programs']]
    return JsonResponse(stats)


@require_GET
@api_login_required
def department_overview(request, pk):
    """KPI scorecard for one department over ``?range=`` (e.g. 30d, 12w, 6m, 1y)."""
    actor = request.actor
    department = get_object_or_404(Department, pk=pk)
    if not can_view_department(actor, department):
        return JsonResponse({'message': 'Access denied: You are not a member of this department'}, status=403)
    return JsonResponse(analytics.department_overview(department, request.GET.get('range', '30d')))
