"""
URL configuration for the operations desk project.

The `urlpatterns` list routes URLs to views. The admin SPA talks to the JSON
endpoints under /api/; anonymous registrants use /public/.
"""

from django.contrib import admin
from django.urls import path, include

from programs import public_views

urlpatterns = [
    path('admin/', admin.site.urls),
    path('auth/', include('allauth.urls')),  # django-allauth login/logout under /auth/
    path('api/accounts/', include('accounts.urls')),
    path('api/programs/', include('programs.urls')),
    path('api/broadcast/', include('communications.urls')),
    path('api/activity/', include('audit.urls')),
    path('api/dashboard/', include('dashboard.urls')),
    path('public/program/<str:identifier>/', public_views.public_program_detail, name='public_program_detail'),
    path('public/register/<str:identifier>/', public_views.public_register, name='public_register'),
]
