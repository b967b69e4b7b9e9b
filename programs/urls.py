from django.urls import path
from . import views

app_name = 'programs'

urlpatterns = [
    path('', views.program_list, name='program_list'),
    path('pending/', views.pending_approvals, name='pending_approvals'),
    path('<int:pk>/', views.program_detail, name='program_detail'),
    path('<int:pk>/versions/', views.create_version, name='create_version'),
    path('<int:pk>/status/', views.update_status, name='update_status'),
    path('<int:pk>/complete/', views.complete_program, name='complete_program'),
    path('<int:pk>/registration/', views.registration_settings, name='registration_settings'),
    path('<int:pk>/form-fields/', views.form_fields, name='form_fields'),
    path('<int:pk>/updates/', views.program_updates, name='program_updates'),

    # Participant roster
    path('<int:pk>/participants/', views.participants, name='participants'),
    path('<int:pk>/participants/import/', views.import_participants, name='import_participants'),
    path('<int:pk>/participants/remove/', views.remove_participant, name='remove_participant'),
    path('<int:pk>/participants/export/', views.export_participants, name='export_participants'),
]
