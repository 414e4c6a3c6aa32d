"""
BigQuery dialect.

Handles BigQuery-specific syntax: backtick identifiers, NOT ENFORCED primary
keys, limited column alteration (widening types and relaxing NOT NULL only).
"""

from typing import List, Sequence

from replicator.exceptions import UnsupportedModifyError
from .base_dialect import BaseDialect
from ..table_definition import Column, TableDefinition


class BigQueryDialect(BaseDialect):
    """BigQuery SQL rendering."""

    @property
    def dialect_name(self) -> str:
        return 'bigquery'

    def quote_identifier(self, name: str) -> str:
        return f"`{name}`"

    def primary_key_clause(self, primary_keys: Sequence[str]) -> str:
        # BigQuery only accepts informational primary keys
        return f"{super().primary_key_clause(primary_keys)} NOT ENFORCED"

    def generate_modify_column(self, table_def: TableDefinition, before: Column, after: Column) -> List[str]:
        """
        Generate ALTER COLUMN statements for BigQuery.

        BigQuery can widen a type (SET DATA TYPE) and relax a column to
        nullable, but cannot make an existing column NOT NULL.
        """
        full_table = self.full_table_name(table_def)
        column = self.quote_identifier(after.name)
        statements = []

        if before.nullable and not after.nullable:
            raise UnsupportedModifyError(
                f"Received modify column ddl setting {table_def.full_name}.{after.name} NOT NULL, "
                f"which is not supported by BigQuery"
            )

        new_type = self.map_type(after)
        if self.map_type(before) != new_type:
            statements.append(f"ALTER TABLE {full_table} ALTER COLUMN {column} SET DATA TYPE {new_type}")

        if not before.nullable and after.nullable:
            statements.append(f"ALTER TABLE {full_table} ALTER COLUMN {column} DROP NOT NULL")

        return statements

    def generate_set_timezone(self, timezone: str) -> str:
        return f"SET @@time_zone = '{timezone}'"

    def generate_dedup_select(self, source_table, columns, partition_by, order_by) -> str:
        partition = ', '.join(self.quote_identifier(c) for c in partition_by)
        return (
            f"SELECT * EXCEPT(row_num)\n"
            f"FROM (\n"
            f"    SELECT *, row_number() OVER (PARTITION BY {partition} "
            f"ORDER BY {self.quote_identifier(order_by)} DESC) AS row_num\n"
            f"    FROM {source_table}\n"
            f")\n"
            f"WHERE row_num = 1"
        )
