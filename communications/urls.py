from django.urls import path
from . import views

app_name = 'communications'

urlpatterns = [
    path('send/', views.send_broadcast, name='send_broadcast'),
    path('history/', views.broadcast_history, name='broadcast_history'),
]
