"""
Pytest configuration for djlive tests.
"""

import django
import pytest
from django.conf import settings

if not settings.configured:
    settings.configure(
        DEBUG=True,
        SECRET_KEY="test-secret-key-for-djlive-tests",
        DATABASES={
            "default": {
                "ENGINE": "django.db.backends.sqlite3",
                "NAME": ":memory:",
            }
        },
        INSTALLED_APPS=[
            "django.contrib.contenttypes",
            "django.contrib.sessions",
            "channels",
            "djlive",
        ],
        MIDDLEWARE=[
            "django.contrib.sessions.middleware.SessionMiddleware",
        ],
        SESSION_ENGINE="django.contrib.sessions.backends.signed_cookies",
        CHANNEL_LAYERS={"default": {"BACKEND": "channels.layers.InMemoryChannelLayer"}},
        TEMPLATES=[
            {
                "BACKEND": "django.template.backends.django.DjangoTemplates",
                "DIRS": [],
                "APP_DIRS": True,
            }
        ],
        USE_TZ=True,
        DJLIVE_CONFIG={},
    )
    django.setup()


@pytest.fixture(autouse=True)
def reset_djlive_config(tmp_path):
    """Fresh config per test with uploads written under tmp_path."""
    from djlive.config import config

    config.reset()
    config.set("upload_temp_dir", str(tmp_path))
    yield config
    config.reset()
