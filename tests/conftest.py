"""Shared fixtures: Django settings, workspace storage and sample schema versions."""

from unittest.mock import MagicMock

import django
import pytest
from django.conf import settings

if not settings.configured:
    settings.configure(
        INSTALLED_APPS=['replicator'],
        DATABASES={},
        USE_TZ=True,
        REPLICATION_CONFIG={
            'STORAGE_URI': '',
            'SNAPSHOT_CONCURRENCY': 4,
            'TIMEZONE': 'UTC',
            'TARGET': 'databricks',
            'TARGET_URL': '',
            'STORAGE_OPTIONS': {},
        },
        CHANGEFEED_CONFIG={
            'CDC_HOST': 'cdc.test',
            'CDC_PORT': 8300,
            'FLUSH_INTERVAL_SECONDS': 60,
            'FILE_SIZE': 1024,
            'REQUEST_TIMEOUT': 5,
        },
        DUMPLING_CONFIG={'BINARY': 'dumpling'},
        SOURCE_DATABASE={
            'HOST': 'source.test',
            'PORT': 4000,
            'USER': 'root',
            'PASSWORD': '',
        },
    )
    django.setup()

from replicator.connectors.databricks import DatabricksConnector  # noqa: E402
from replicator.exceptions import LoadError  # noqa: E402
from replicator.utils.ddl.table_definition import Column, TableDefinition  # noqa: E402
from replicator.utils.storage import ReplicationStorage  # noqa: E402


class RecordingConnector(DatabricksConnector):
    """Databricks connector that records statements instead of executing them."""

    def __init__(self, schema=None, fail_on=None):
        super().__init__(engine=MagicMock(), schema=schema)
        self.executed = []
        self.fail_on = fail_on

    def execute_multiple_sql(self, statements, error_class=LoadError):
        for sql in statements:
            if self.fail_on and self.fail_on in sql:
                raise error_class(f"rejected: {sql[:40]}")
        self.executed.append(list(statements))

    @property
    def statements(self):
        return [sql for batch in self.executed for sql in batch]


@pytest.fixture
def storage(tmp_path):
    """Workspace on the local filesystem."""
    return ReplicationStorage(str(tmp_path / "workspace"))


@pytest.fixture
def orders_columns():
    return (
        Column('id', 'INT', nullable=False, is_pk=True, column_id=1),
        Column('name', 'VARCHAR', precision=32, column_id=2),
        Column('amount', 'DECIMAL', precision=10, scale=2, column_id=3),
    )


@pytest.fixture
def orders_def(orders_columns):
    return TableDefinition(schema='test', table='orders', columns=orders_columns)


@pytest.fixture
def recording_connector():
    return RecordingConnector()
