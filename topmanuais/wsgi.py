"""
WSGI config para o projeto TopManuais.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'topmanuais.settings')

application = get_wsgi_application()
