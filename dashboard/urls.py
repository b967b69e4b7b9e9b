from django.urls import path
from . import views

app_name = 'dashboard'

urlpatterns = [
    path('stats/', views.dashboard_stats, name='stats'),
    path('charts/', views.dashboard_charts, name='charts'),
    path('impact/', views.impact_analytics, name='impact'),
    path('reports/', views.report_stats, name='reports'),
    path('departments/<int:pk>/overview/', views.department_overview, name='department_overview'),
]
