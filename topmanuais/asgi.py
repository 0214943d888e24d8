"""
ASGI config para o projeto TopManuais.
"""
import os

from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'topmanuais.settings')

application = get_asgi_application()
