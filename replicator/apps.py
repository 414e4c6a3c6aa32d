from django.apps import AppConfig


class ReplicatorConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'replicator'
    verbose_name = 'Warehouse Replicator'
