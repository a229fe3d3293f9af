"""
Celery application for background reward distribution and periodic jobs.
"""
import os
from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'ctnft.settings')

app = Celery('ctnft')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
