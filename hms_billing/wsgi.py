"""
WSGI config for the hospital billing project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'hms_billing.settings')

application = get_wsgi_application()
