"""
WSGI config for the clinicdesk project.

It exposes the WSGI callable as a module-level variable named ``application``.
Deployments should set DJANGO_SETTINGS_MODULE explicitly
(e.g. ``clinicdesk.settings_prod``).
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "clinicdesk.settings_dev")

application = get_wsgi_application()
