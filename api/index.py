"""
Root-level Vercel entrypoint for the Django backend.
Ensures MongoDB indexes once per cold start before serving requests.
"""

import os
import sys
from pathlib import Path


REPO_ROOT = Path(__file__).resolve().parent.parent

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "mentormatch_backend.settings")

_STARTUP_INDEXES_CREATED = False


def _should_create_startup_indexes() -> bool:
    if os.environ.get("VERCEL", "").strip() == "":
        return False
    disabled = os.environ.get("DISABLE_STARTUP_INDEXES", "").strip().lower()
    return disabled not in {"1", "true", "yes"}


def _create_startup_indexes() -> None:
    global _STARTUP_INDEXES_CREATED
    if _STARTUP_INDEXES_CREATED or not _should_create_startup_indexes():
        return

    import django
    from django.core.management import call_command

    django.setup()
    call_command("setup_database", verbosity=0)
    _STARTUP_INDEXES_CREATED = True


_create_startup_indexes()

from django.core.wsgi import get_wsgi_application  # noqa: E402


app = get_wsgi_application()
