"""
Base dialect for warehouse DDL/DML rendering.

A dialect turns captured schema versions into SQL text for one warehouse.
It is pure: no connection, no I/O. Executing the SQL is the connector's job.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from replicator.exceptions import UnsupportedSchemaChangeError, UnsupportedTypeError
from ..column_diff import ColumnAction, ColumnDiffItem, diff_table_definition
from ..table_definition import ChangeType, Column, TableDefinition
from ..type_maps import get_type_mapper

logger = logging.getLogger(__name__)


class BaseDialect(ABC):
    """
    Abstract base class for warehouse SQL rendering.

    Implementations handle Databricks, BigQuery and Snowflake syntax and
    decide which column modifications the warehouse can express.
    """

    def __init__(self, schema: Optional[str] = None):
        """
        Args:
            schema: Target schema/dataset; defaults to the source schema name
        """
        self.schema = schema

    def __repr__(self) -> str:
        return f"{type(self).__name__}(schema={self.schema!r})"

    @property
    @abstractmethod
    def dialect_name(self) -> str:
        """Return dialect identifier."""
        pass

    @abstractmethod
    def quote_identifier(self, name: str) -> str:
        pass

    @abstractmethod
    def generate_modify_column(self, table_def: TableDefinition, before: Column, after: Column) -> List[str]:
        """
        Generate the statements changing a column's type or nullability.

        Raises:
            UnsupportedModifyError: if the warehouse cannot express the change
        """
        pass

    @abstractmethod
    def generate_set_timezone(self, timezone: str) -> str:
        """Generate the session statement fixing the timezone for value interpretation."""
        pass

    # ==========================================
    # Names and columns
    # ==========================================

    def target_schema(self, table_def: TableDefinition) -> str:
        return self.schema or table_def.schema

    def full_table_name(self, table_def: TableDefinition, table: Optional[str] = None) -> str:
        """Fully qualified target table name, optionally for a sibling table."""
        schema = self.target_schema(table_def)
        table = table or table_def.table
        if schema:
            return f"{self.quote_identifier(schema)}.{self.quote_identifier(table)}"
        return self.quote_identifier(table)

    def map_type(self, column: Column) -> str:
        mapper = get_type_mapper(self.dialect_name)
        if mapper is None:
            raise UnsupportedTypeError(f"No type mapping for dialect {self.dialect_name}")
        return mapper(column)

    def column_to_sql(self, column: Column) -> str:
        """
        Render a column definition, e.g. "`id` INT NOT NULL".

        Default values are not rendered.
        """
        parts = [self.quote_identifier(column.name), self.map_type(column)]
        if not column.nullable:
            parts.append('NOT NULL')
        return ' '.join(parts)

    def primary_key_clause(self, primary_keys: Sequence[str]) -> str:
        pk_cols = ', '.join(self.quote_identifier(pk) for pk in primary_keys)
        return f"PRIMARY KEY ({pk_cols})"

    # ==========================================
    # Table creation (snapshot load only)
    # ==========================================

    def generate_create_table(self, table_def: TableDefinition) -> str:
        """Generate CREATE OR REPLACE TABLE; the only place a primary key is declared."""
        col_defs = [self.column_to_sql(col) for col in table_def.columns]
        if table_def.primary_keys:
            col_defs.append(self.primary_key_clause(table_def.primary_keys))

        columns_sql = ',\n    '.join(col_defs)
        return f"CREATE OR REPLACE TABLE {self.full_table_name(table_def)} (\n    {columns_sql}\n)"

    # ==========================================
    # Incremental DDL
    # ==========================================

    def generate_ddl(self, prev_columns: Sequence[Column], table_def: TableDefinition) -> List[str]:
        """
        Generate the DDL moving the target from ``prev_columns`` to ``table_def``.

        Raises:
            UnsupportedDDLError: create/rename table or schema, or a modify
                the warehouse cannot express
            UnsupportedSchemaChangeError: primary key changes
        """
        diff = diff_table_definition(prev_columns, table_def)

        if diff.table_action is not None:
            return [self.generate_table_action(table_def, diff.table_action)]

        handlers = {
            ColumnAction.ADD: self._handle_add_column,
            ColumnAction.DROP: self._handle_drop_column,
            ColumnAction.MODIFY: self._handle_modify_column,
            ColumnAction.RENAME: self._handle_rename_column,
        }

        statements = []
        for item in diff.changes:
            statements.extend(handlers[item.action](table_def, item))
        return statements

    def generate_table_action(self, table_def: TableDefinition, action: ChangeType) -> str:
        if action == ChangeType.TRUNCATE_TABLE:
            return f"TRUNCATE TABLE {self.full_table_name(table_def)}"
        if action == ChangeType.DROP_TABLE:
            return f"DROP TABLE {self.full_table_name(table_def)}"
        if action == ChangeType.DROP_SCHEMA:
            return f"DROP SCHEMA {self.quote_identifier(self.target_schema(table_def))} CASCADE"
        raise ValueError(f"Not a table-level action: {action}")

    def generate_add_column(self, table_def: TableDefinition, column: Column) -> str:
        return f"ALTER TABLE {self.full_table_name(table_def)} ADD COLUMN {self.column_to_sql(column)}"

    def generate_drop_column(self, table_def: TableDefinition, column_name: str) -> str:
        return f"ALTER TABLE {self.full_table_name(table_def)} DROP COLUMN {self.quote_identifier(column_name)}"

    def generate_rename_column(self, table_def: TableDefinition, old_name: str, new_name: str) -> str:
        return (
            f"ALTER TABLE {self.full_table_name(table_def)} "
            f"RENAME COLUMN {self.quote_identifier(old_name)} TO {self.quote_identifier(new_name)}"
        )

    def _handle_add_column(self, table_def: TableDefinition, item: ColumnDiffItem) -> List[str]:
        if item.after.is_pk:
            raise UnsupportedSchemaChangeError(
                f"Adding primary key column {item.after.name} to {table_def.full_name} is not supported"
            )
        return [self.generate_add_column(table_def, item.after)]

    def _handle_drop_column(self, table_def: TableDefinition, item: ColumnDiffItem) -> List[str]:
        if item.before.is_pk:
            raise UnsupportedSchemaChangeError(
                f"Dropping primary key column {item.before.name} from {table_def.full_name} is not supported"
            )
        return [self.generate_drop_column(table_def, item.before.name)]

    def _handle_modify_column(self, table_def: TableDefinition, item: ColumnDiffItem) -> List[str]:
        if item.before.is_pk != item.after.is_pk:
            raise UnsupportedSchemaChangeError(
                f"Changing the primary key of {table_def.full_name} is not supported"
            )
        return self.generate_modify_column(table_def, item.before, item.after)

    def _handle_rename_column(self, table_def: TableDefinition, item: ColumnDiffItem) -> List[str]:
        statements = [self.generate_rename_column(table_def, item.before.name, item.after.name)]

        # Renamed and redefined in the same version
        if not item.before.same_definition(item.after):
            renamed = ColumnDiffItem(
                ColumnAction.MODIFY,
                before=Column(
                    name=item.after.name,
                    type=item.before.type,
                    nullable=item.before.nullable,
                    is_pk=item.before.is_pk,
                    precision=item.before.precision,
                    scale=item.before.scale,
                    column_id=item.before.column_id,
                ),
                after=item.after,
            )
            statements.extend(self._handle_modify_column(table_def, renamed))
        return statements

    # ==========================================
    # Change-log dedup
    # ==========================================

    def generate_dedup_select(
        self,
        source_table: str,
        columns: Sequence[str],
        partition_by: Sequence[str],
        order_by: str,
    ) -> str:
        """
        Keep only the latest change per key from a change-log table.

        Args:
            source_table: Fully qualified change-log (staging) table
            columns: Columns to project (data + change-log metadata)
            partition_by: Primary key columns
            order_by: Monotonic commit-order column, latest first
        """
        projection = ', '.join(self.quote_identifier(c) for c in columns)
        partition = ', '.join(self.quote_identifier(c) for c in partition_by)
        return (
            f"SELECT {projection}\n"
            f"FROM (\n"
            f"    SELECT *, row_number() OVER (PARTITION BY {partition} "
            f"ORDER BY {self.quote_identifier(order_by)} DESC) AS row_num\n"
            f"    FROM {source_table}\n"
            f") AS ranked\n"
            f"WHERE row_num = 1"
        )
