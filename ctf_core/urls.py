"""
Platform-level routes (health checks). Mounted at the site root.
"""
from django.urls import path
from .health import health_check, detailed_health_check

app_name = 'ctf_core'

urlpatterns = [
    path('health/', health_check, name='health'),
    path('health/detailed/', detailed_health_check, name='health-detailed'),
]
