import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'ledger_api.settings')

application = get_wsgi_application()

from transactions.database import create_tables  # noqa: E402

create_tables()
