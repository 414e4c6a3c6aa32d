"""
Django settings for the dwsync replication project.

Everything replication-specific is read from the environment so the same
settings module serves the management command and the Celery worker.
"""
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'dwsync-insecure-development-key')

DEBUG = os.environ.get('DJANGO_DEBUG', 'false').lower() == 'true'

ALLOWED_HOSTS = []

INSTALLED_APPS = [
    'replicator',
]

DATABASES = {}

USE_TZ = True
TIME_ZONE = 'UTC'

# ==========================================
# Replication
# ==========================================
REPLICATION_CONFIG = {
    # Root of the durable workspace; markers live under it
    'STORAGE_URI': os.environ.get('REPLICATION_STORAGE_URI', ''),
    'SNAPSHOT_CONCURRENCY': int(os.environ.get('REPLICATION_SNAPSHOT_CONCURRENCY', '8')),
    'TIMEZONE': os.environ.get('REPLICATION_TIMEZONE', 'UTC'),
    'TARGET': os.environ.get('REPLICATION_TARGET', 'databricks'),
    'TARGET_URL': os.environ.get('REPLICATION_TARGET_URL', ''),
    'STORAGE_OPTIONS': {
        'key': os.environ.get('AWS_ACCESS_KEY_ID'),
        'secret': os.environ.get('AWS_SECRET_ACCESS_KEY'),
    },
}

SOURCE_DATABASE = {
    'HOST': os.environ.get('SOURCE_DB_HOST', '127.0.0.1'),
    'PORT': int(os.environ.get('SOURCE_DB_PORT', '4000')),
    'USER': os.environ.get('SOURCE_DB_USER', 'root'),
    'PASSWORD': os.environ.get('SOURCE_DB_PASSWORD', ''),
}

CHANGEFEED_CONFIG = {
    'CDC_HOST': os.environ.get('CDC_HOST', '127.0.0.1'),
    'CDC_PORT': int(os.environ.get('CDC_PORT', '8300')),
    'FLUSH_INTERVAL_SECONDS': int(os.environ.get('CDC_FLUSH_INTERVAL_SECONDS', '60')),
    'FILE_SIZE': int(os.environ.get('CDC_FILE_SIZE', str(64 * 1024 * 1024))),
    'REQUEST_TIMEOUT': 30,
}

DUMPLING_CONFIG = {
    'BINARY': os.environ.get('DUMPLING_BINARY', 'dumpling'),
}

# ==========================================
# Celery
# ==========================================
CELERY_BROKER_URL = os.environ.get('CELERY_BROKER_URL', 'redis://localhost:6379/0')
CELERY_RESULT_BACKEND = os.environ.get('CELERY_RESULT_BACKEND', 'redis://localhost:6379/0')
CELERY_TASK_SERIALIZER = 'json'
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_TRACK_STARTED = True

# ==========================================
# Logging
# ==========================================
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '[{asctime}] {levelname} {name} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'loggers': {
        'replicator': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'dwsync': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'celery': {
            'handlers': ['console'],
            'level': 'INFO',
        },
    },
}
