"""
Incremental replay of the change log written by the change-capture service.

Layout under the increment root, per table:

    <schema>/<table>/meta/schema_<table_version>_<checksum>.json
    <schema>/<table>/<table_version>/[<partition or date>/]CDC<n>.csv

Schema versions are applied in order: the DDL taking the warehouse table
from the previous version to the next one runs before any data file of the
next version is merged. Each data directory numbers its files on its own,
so progress (current table version and the last merged file per data
directory) is kept in ``increment/loadprogress`` and a restart resumes after
the last merged file of every directory.
"""

import logging
import posixpath
import re
import threading
from typing import Dict, List, Optional, Tuple

from replicator.connectors.base_connector import BaseWarehouseConnector
from replicator.exceptions import IncrementLoadError
from replicator.utils.ddl.column_diff import TABLE_LEVEL_ACTIONS
from replicator.utils.ddl.table_definition import TableDefinition
from replicator.utils.storage import ReplicationStorage
from .stage import INCREMENT_DIR

logger = logging.getLogger(__name__)

LOAD_PROGRESS_FILE = 'loadprogress'

SCHEMA_FILE_RE = re.compile(r'/meta/schema_(\d+)_\d+\.json$')
DATA_FILE_RE = re.compile(r'^[^/]+/[^/]+/(\d+)/(?:.+/)?CDC\d+\.csv$')


class IncrementalReplicator:
    """Applies schema versions and merges change-log files for one table."""

    def __init__(
        self,
        connector: BaseWarehouseConnector,
        storage: ReplicationStorage,
        table_name: str,
        poll_interval: float = 12,
        timezone: str = 'UTC',
    ):
        """
        Args:
            connector: Warehouse connector receiving DDL and merges
            storage: Workspace root (the increment directory is derived from it)
            table_name: Fully qualified source table, "<schema>.<table>"
            poll_interval: Seconds between scans of the change log
            timezone: Timezone the warehouse uses to interpret change-log values
        """
        self.connector = connector
        self.storage = storage.child(INCREMENT_DIR)
        self.table_name = table_name
        self.schema, self.table = table_name.split('.', 1)
        self.poll_interval = poll_interval
        self.timezone = timezone
        self.table_prefix = f"{self.schema}/{self.table}"

    # ==========================================
    # Progress
    # ==========================================

    def load_progress(self) -> Dict:
        if not self.storage.exists(LOAD_PROGRESS_FILE):
            return {'table_version': None, 'last_files': {}}
        return self.storage.read_json(LOAD_PROGRESS_FILE)

    def save_progress(self, table_version: int, last_files: Dict[str, str]):
        """
        Args:
            table_version: Table version whose DDL has been applied
            last_files: Data directory -> last merged file in it
        """
        self.storage.write_json(LOAD_PROGRESS_FILE, {
            'table': self.table_name,
            'table_version': table_version,
            'last_files': last_files,
        })

    # ==========================================
    # Change log listing
    # ==========================================

    def list_schema_files(self) -> List[Tuple[int, str]]:
        """(table_version, path) of every schema file, ascending."""
        files = []
        for path in self.storage.list_files(f"{self.table_prefix}/meta"):
            match = SCHEMA_FILE_RE.search(path)
            if match:
                files.append((int(match.group(1)), path))
        return sorted(files)

    def list_data_files(self) -> Dict[int, List[str]]:
        """Data files grouped by table version, each group in write order."""
        grouped: Dict[int, List[str]] = {}
        for path in self.storage.list_files(self.table_prefix):
            match = DATA_FILE_RE.match(path)
            if match:
                grouped.setdefault(int(match.group(1)), []).append(path)
        for paths in grouped.values():
            paths.sort()
        return grouped

    def read_table_definition(self, path: str) -> TableDefinition:
        try:
            return TableDefinition.from_dict(self.storage.read_json(path))
        except (OSError, ValueError, KeyError) as e:
            raise IncrementLoadError(f"Failed to read schema file {self.storage.uri(path)}: {str(e)}") from e

    # ==========================================
    # Replay
    # ==========================================

    def run_once(self) -> int:
        """
        Apply every pending schema version and data file.

        Returns:
            Number of data files merged
        """
        progress = self.load_progress()
        current_version = progress['table_version']
        last_files: Dict[str, str] = dict(progress.get('last_files') or {})

        schema_files = self.list_schema_files()
        data_files = self.list_data_files()

        for version in sorted(set(data_files) - {v for v, _ in schema_files}):
            logger.warning(f"No schema file for table version {version} of {self.table_name}, skipping its data")

        prev_def: Optional[TableDefinition] = None
        merged = 0
        for version, schema_path in schema_files:
            if current_version is not None and version < current_version:
                continue

            table_def = self.read_table_definition(schema_path)

            if current_version is None or version > current_version:
                self._apply_schema_version(prev_def, table_def, version)
                current_version, last_files = version, {}
                self.save_progress(current_version, last_files)

            for path in data_files.get(version, []):
                data_dir = posixpath.dirname(path)
                last_file = last_files.get(data_dir)
                if last_file is not None and path <= last_file:
                    continue
                self.connector.load_increment(table_def, self.storage.uri(path), self.timezone)
                last_files[data_dir] = path
                self.save_progress(current_version, last_files)
                merged += 1

            prev_def = table_def

        if merged:
            logger.info(f"Merged {merged} change-log files into {self.table_name}")
        return merged

    def _apply_schema_version(self, prev_def: Optional[TableDefinition], table_def: TableDefinition, version: int):
        if prev_def is None:
            # First version seen: the warehouse table already matches it
            if table_def.change_type in TABLE_LEVEL_ACTIONS:
                self.connector.exec_ddl([], table_def)
            logger.info(f"Baseline schema of {self.table_name} at table version {version}")
            return

        logger.info(f"Applying schema version {version} of {self.table_name}: {table_def.query or table_def.change_type.value}")
        self.connector.exec_ddl(prev_def.columns, table_def)

    def run(self, stop_event: Optional[threading.Event] = None):
        """
        Replay the change log until ``stop_event`` is set or a failure occurs.
        """
        stop_event = stop_event or threading.Event()
        logger.info(f"Start incremental replication of {self.table_name}, polling every {self.poll_interval}s")
        while not stop_event.is_set():
            self.run_once()
            stop_event.wait(self.poll_interval)
        logger.info(f"Stopped incremental replication of {self.table_name}")


def replicate_increment(
    connector: BaseWarehouseConnector,
    storage: ReplicationStorage,
    table_name: str,
    poll_interval: float,
    timezone: str,
    stop_event: Optional[threading.Event] = None,
):
    """Run the incremental replay loop for one table."""
    replicator = IncrementalReplicator(connector, storage, table_name, poll_interval, timezone)
    replicator.run(stop_event)
