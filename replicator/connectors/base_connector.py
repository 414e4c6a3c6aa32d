"""
Base connector for warehouse targets.

A connector executes what a dialect renders against one warehouse through a
SQLAlchemy engine, and knows how that warehouse bulk-loads CSV files from
object storage.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence, Type

from sqlalchemy import text
from sqlalchemy.engine import Engine

from replicator import metrics
from replicator.exceptions import IncrementLoadError, LoadError, SnapshotLoadError
from replicator.logging_utils import log_ddl_executed
from replicator.utils.ddl.dialects.base_dialect import BaseDialect
from replicator.utils.ddl.merge import (
    CDC_COMMIT_TS_COLUMN,
    CDC_FLAG_COLUMN,
    CDC_SCHEMA_COLUMN,
    CDC_TABLE_COLUMN,
    generate_merge_into,
)
from replicator.utils.ddl.table_definition import Column, TableDefinition
from replicator.utils.storage import ReplicationStorage

logger = logging.getLogger(__name__)

# Null marker written by the dump tool and the change-capture service, as a SQL literal
NULL_MARKER_SQL = r"'\\N'"

# Source types of the change-log metadata columns
CDC_METADATA_SOURCE_COLUMNS = (
    Column(CDC_FLAG_COLUMN, 'VARCHAR', precision=1),
    Column(CDC_TABLE_COLUMN, 'VARCHAR', precision=64),
    Column(CDC_SCHEMA_COLUMN, 'VARCHAR', precision=64),
    Column(CDC_COMMIT_TS_COLUMN, 'BIGINT UNSIGNED'),
)


class BaseWarehouseConnector(ABC):
    """
    Abstract base class for warehouse connectors.

    Subclasses provide the dialect and the bulk-load statement for their
    warehouse; table setup, DDL application and merging are shared.
    """

    dialect_class: Type[BaseDialect] = None

    def __init__(
        self,
        engine: Engine,
        schema: Optional[str] = None,
        storage_options: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize the connector.

        Args:
            engine: SQLAlchemy engine for the warehouse
            schema: Target schema/dataset (defaults to the source schema name)
            storage_options: Object storage credentials ('key', 'secret', 'token')
        """
        self.engine = engine
        self.dialect = self.dialect_class(schema=schema)
        self.storage_options = storage_options or {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.dialect!r})"

    @property
    def dialect_name(self) -> str:
        return self.dialect.dialect_name

    @abstractmethod
    def generate_copy_into(self, table_name: str, columns: Sequence[Column], file_uri: str) -> str:
        """
        Generate the statement bulk-loading one headerless CSV file into a table.

        Args:
            table_name: Fully qualified table to load into
            columns: Columns of the file, in file order
            file_uri: Location of the CSV file
        """
        pass

    # ==========================================
    # Execution
    # ==========================================

    def execute_sql(self, sql: str, error_class: Type[LoadError] = LoadError):
        """
        Execute raw SQL statement.

        Raises:
            error_class: wrapping the driver error
        """
        self.execute_multiple_sql([sql], error_class)

    def execute_multiple_sql(self, statements: List[str], error_class: Type[LoadError] = LoadError):
        """
        Execute multiple SQL statements in a transaction.

        Raises:
            error_class: wrapping the driver error
        """
        try:
            with self.engine.begin() as conn:
                for sql in statements:
                    conn.execute(text(sql))
                    logger.info(f"   Executed: {sql[:100]}{'...' if len(sql) > 100 else ''}")
        except Exception as e:
            error_msg = str(e)
            logger.error(f"   Failed to execute SQL statements: {error_msg}")
            raise error_class(f"{self.dialect_name} rejected statement: {error_msg}") from e

    def close(self):
        self.engine.dispose()

    # ==========================================
    # Snapshot
    # ==========================================

    def setup_table(self, table_def: TableDefinition):
        """(Re)create the target table from the source definition."""
        sql = self.dialect.generate_create_table(table_def)
        logger.info(f"Creating table {self.dialect.full_table_name(table_def)}")
        self.execute_sql(sql, SnapshotLoadError)

    def snapshot_files(self, table_def: TableDefinition, snapshot_storage: ReplicationStorage) -> List[str]:
        """Data files the dump tool wrote for this table, in index order."""
        pattern = re.compile(
            rf"^{re.escape(table_def.schema)}\.{re.escape(table_def.table)}\.(\d+)\.csv$"
        )
        matched = []
        for path in snapshot_storage.list_files():
            match = pattern.match(path.rsplit('/', 1)[-1])
            if match:
                matched.append((int(match.group(1)), path))
        return [path for _, path in sorted(matched)]

    def load_snapshot(self, table_def: TableDefinition, snapshot_storage: ReplicationStorage):
        """
        Load every dumped data file of the table into the target table.

        Raises:
            SnapshotLoadError: if a file cannot be loaded
        """
        files = self.snapshot_files(table_def, snapshot_storage)
        if not files:
            logger.warning(f"No snapshot files found for {table_def.full_name} in {snapshot_storage.root_uri}")
            return

        target = self.dialect.full_table_name(table_def)
        for path in files:
            sql = self.generate_copy_into(target, table_def.columns, snapshot_storage.uri(path))
            self.execute_sql(sql, SnapshotLoadError)
            logger.info(f"Loaded snapshot file {path} into {target}")

    # ==========================================
    # Incremental
    # ==========================================

    def exec_ddl(self, prev_columns: Sequence[Column], table_def: TableDefinition):
        """
        Apply the DDL moving the target from ``prev_columns`` to ``table_def``.

        Raises:
            UnsupportedDDLError / UnsupportedSchemaChangeError: before anything runs
            IncrementLoadError: if the warehouse rejects a statement
        """
        statements = self.dialect.generate_ddl(prev_columns, table_def)
        for sql in statements:
            try:
                self.execute_sql(sql, IncrementLoadError)
            except IncrementLoadError:
                metrics.ddl_statements_total.labels(dialect=self.dialect_name, status='failed').inc()
                raise
            metrics.ddl_statements_total.labels(dialect=self.dialect_name, status='success').inc()
            log_ddl_executed(table_def.full_name, sql, self.dialect_name)

    def staging_table_name(self, table_def: TableDefinition) -> str:
        return self.dialect.full_table_name(table_def, f"{table_def.table}_cdc_staging")

    def generate_create_staging_table(self, table_def: TableDefinition) -> str:
        """Staging table shaped like a change-log file; every column nullable."""
        columns = list(CDC_METADATA_SOURCE_COLUMNS) + [replace(c, nullable=True) for c in table_def.columns]
        col_defs = ',\n    '.join(self.dialect.column_to_sql(c) for c in columns)
        return f"CREATE OR REPLACE TABLE {self.staging_table_name(table_def)} (\n    {col_defs}\n)"

    def load_increment(self, table_def: TableDefinition, file_uri: str, timezone: str = 'UTC'):
        """
        Merge one change-log file into the target table.

        The file is bulk-loaded into a staging table, deduplicated per key and
        merged, all in one transaction.

        Raises:
            IncrementLoadError: if any statement fails
        """
        staging = self.staging_table_name(table_def)
        staging_columns = list(CDC_METADATA_SOURCE_COLUMNS) + list(table_def.columns)

        statements = [
            self.dialect.generate_set_timezone(timezone),
            self.generate_create_staging_table(table_def),
            self.generate_copy_into(staging, staging_columns, file_uri),
            generate_merge_into(self.dialect, table_def, staging),
            f"DROP TABLE IF EXISTS {staging}",
        ]
        self.execute_multiple_sql(statements, IncrementLoadError)
        metrics.merged_batches_total.labels(dialect=self.dialect_name, table_name=table_def.full_name).inc()
        logger.info(f"Merged {file_uri} into {self.dialect.full_table_name(table_def)}")
