from django.urls import path
from . import views

app_name = 'accounts'

urlpatterns = [
    path('me/', views.me, name='me'),
    path('me/password/', views.change_password, name='change_password'),
    path('departments/', views.department_list, name='department_list'),
    path('departments/<int:pk>/', views.department_detail, name='department_detail'),
    path('departments/<int:pk>/members/', views.department_members, name='department_members'),
    path('departments/<int:pk>/admin/', views.department_admin, name='department_admin'),
    path('users/', views.staff_list, name='staff_list'),
    path('users/invite/', views.invite_staff, name='invite_staff'),
    path('users/<int:pk>/', views.delete_user, name='delete_user'),
    path('users/<int:pk>/toggle-status/', views.toggle_user_status, name='toggle_user_status'),
    path('users/<int:pk>/migrate/', views.migrate_staff, name='migrate_staff'),
]
