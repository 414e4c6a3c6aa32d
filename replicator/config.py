"""
Replication run configuration.

A ReplicationContext carries everything one replication run needs, so
several orchestrators can run side by side without sharing state.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from django.conf import settings

logger = logging.getLogger(__name__)


class RunMode(str, Enum):
    """User-selected restriction on which stages execute."""
    FULL = 'full'
    SNAPSHOT_ONLY = 'snapshot-only'
    INCREMENTAL_ONLY = 'incremental-only'
    CLOUD = 'cloud'


DEFAULT_REPLICATION_CONFIG = {
    'STORAGE_URI': '',
    'SNAPSHOT_CONCURRENCY': 8,
    'TIMEZONE': 'UTC',
    'TARGET': 'databricks',
    'TARGET_URL': '',
    'STORAGE_OPTIONS': {},
}

DEFAULT_CHANGEFEED_CONFIG = {
    'CDC_HOST': '127.0.0.1',
    'CDC_PORT': 8300,
    'FLUSH_INTERVAL_SECONDS': 60,
    'FILE_SIZE': 64 * 1024 * 1024,
    'REQUEST_TIMEOUT': 30,
}

DEFAULT_SOURCE_DATABASE = {
    'HOST': '127.0.0.1',
    'PORT': 4000,
    'USER': 'root',
    'PASSWORD': '',
}


def _merged(setting_name: str, defaults: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(defaults)
    merged.update(getattr(settings, setting_name, {}) or {})
    return merged


def get_replication_settings() -> Dict[str, Any]:
    """Replication settings merged over defaults."""
    return _merged('REPLICATION_CONFIG', DEFAULT_REPLICATION_CONFIG)


def get_changefeed_settings() -> Dict[str, Any]:
    """Change-capture service settings merged over defaults."""
    return _merged('CHANGEFEED_CONFIG', DEFAULT_CHANGEFEED_CONFIG)


def get_source_settings() -> Dict[str, Any]:
    """Source database connection settings merged over defaults."""
    return _merged('SOURCE_DATABASE', DEFAULT_SOURCE_DATABASE)


@dataclass(frozen=True)
class SourceConfig:
    """Connection details of the source database."""
    host: str
    port: int
    user: str
    password: str = ''

    @property
    def sqlalchemy_url(self) -> str:
        return f"mysql+pymysql://{self.user}:{self.password}@{self.host}:{self.port}/"

    @classmethod
    def from_settings(cls) -> 'SourceConfig':
        source = get_source_settings()
        return cls(
            host=source['HOST'],
            port=int(source['PORT']),
            user=source['USER'],
            password=source['PASSWORD'] or '',
        )


@dataclass(frozen=True)
class ReplicationContext:
    """
    Everything one replication run of one table needs.

    Attributes:
        source: Source database connection details
        table_name: Fully qualified source table, "<schema>.<table>"
        storage_uri: Root of the durable workspace (markers, snapshot, increment)
        mode: Which stages to execute
        snapshot_concurrency: Parallelism handed to the dump tool
        cdc_host: Change-capture service host
        cdc_port: Change-capture service port
        cdc_flush_interval: Change-capture flush interval in seconds
        cdc_file_size: Change-capture file size threshold in bytes
        timezone: Timezone the warehouse uses to interpret change-log values
        storage_options: fsspec storage options (credentials)
    """
    source: SourceConfig
    table_name: str
    storage_uri: str
    mode: RunMode = RunMode.FULL
    snapshot_concurrency: int = 8
    cdc_host: str = '127.0.0.1'
    cdc_port: int = 8300
    cdc_flush_interval: int = 60
    cdc_file_size: int = 64 * 1024 * 1024
    timezone: str = 'UTC'
    storage_options: Dict[str, Any] = field(default_factory=dict)

    @property
    def schema_name(self) -> str:
        return self.table_name.split('.', 1)[0]

    @property
    def bare_table_name(self) -> str:
        return self.table_name.split('.', 1)[1]

    @property
    def increment_poll_interval(self) -> float:
        """Polling interval for incremental replay, shorter than the flush interval."""
        return self.cdc_flush_interval / 5

    @classmethod
    def from_settings(
        cls,
        table_name: str,
        mode: RunMode = RunMode.FULL,
        storage_uri: Optional[str] = None,
    ) -> 'ReplicationContext':
        """Build a context from Django settings, overriding per-run values."""
        if '.' not in table_name:
            raise ValueError(f"Table name must be '<schema>.<table>', got: {table_name}")

        replication = get_replication_settings()
        changefeed = get_changefeed_settings()
        storage_options = {
            k: v for k, v in (replication['STORAGE_OPTIONS'] or {}).items() if v is not None
        }

        storage_uri = storage_uri or replication['STORAGE_URI']
        if not storage_uri:
            raise ValueError("No storage URI configured (REPLICATION_CONFIG['STORAGE_URI'])")

        return cls(
            source=SourceConfig.from_settings(),
            table_name=table_name,
            storage_uri=storage_uri,
            mode=RunMode(mode),
            snapshot_concurrency=int(replication['SNAPSHOT_CONCURRENCY']),
            cdc_host=changefeed['CDC_HOST'],
            cdc_port=int(changefeed['CDC_PORT']),
            cdc_flush_interval=int(changefeed['FLUSH_INTERVAL_SECONDS']),
            cdc_file_size=int(changefeed['FILE_SIZE']),
            timezone=replication['TIMEZONE'],
            storage_options=storage_options,
        )
