"""
WSGI config for the Athena Scout backend.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'athena_scout.settings')

application = get_wsgi_application()
