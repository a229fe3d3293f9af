"""
WSGI config for the ctnft project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'ctnft.settings')

application = get_wsgi_application()
