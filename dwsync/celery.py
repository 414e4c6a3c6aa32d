"""
Celery configuration for Django project
"""
import os
from celery import Celery

# Set default Django settings
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'dwsync.settings')

app = Celery('dwsync')

# Load config from Django settings with CELERY_ prefix
app.config_from_object('django.conf:settings', namespace='CELERY')

# Auto-discover tasks from all installed apps
app.autodiscover_tasks()

# One long-running replication body per table; never share a worker slot
app.conf.task_routes = {
    'replicator.tasks.run_table_replication': {'queue': 'replication'},
}
app.conf.worker_prefetch_multiplier = 1
