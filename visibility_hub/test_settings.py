"""
Settings used by the test suite: in-memory SQLite and a fixed scheduler token.
"""
from .settings import *  # noqa: F401,F403

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.MD5PasswordHasher',
]

STORAGES = {
    'default': {
        'BACKEND': 'django.core.files.storage.FileSystemStorage',
    },
    'staticfiles': {
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}

OPENAI_API_KEY = ''
WEBFLOW_CLIENT_ID = 'test-webflow-client'
WEBFLOW_CLIENT_SECRET = 'test-webflow-secret'
AUTOPILOT_SCHEDULER_TOKEN = 'test-scheduler-token'

REST_FRAMEWORK = {
    **REST_FRAMEWORK,  # noqa: F405
    'TEST_REQUEST_DEFAULT_FORMAT': 'json',
}
