"""
Snowflake dialect.

Snowflake identifiers are double-quoted so source column case survives.
"""

from typing import List

from .base_dialect import BaseDialect
from ..table_definition import Column, TableDefinition


class SnowflakeDialect(BaseDialect):
    """Snowflake SQL rendering."""

    @property
    def dialect_name(self) -> str:
        return 'snowflake'

    def quote_identifier(self, name: str) -> str:
        return f'"{name}"'

    def generate_modify_column(self, table_def: TableDefinition, before: Column, after: Column) -> List[str]:
        """
        Generate ALTER COLUMN statements for Snowflake.

        Type and nullability changes are separate statements.
        """
        full_table = self.full_table_name(table_def)
        column = self.quote_identifier(after.name)
        statements = []

        new_type = self.map_type(after)
        if self.map_type(before) != new_type:
            statements.append(f"ALTER TABLE {full_table} ALTER COLUMN {column} SET DATA TYPE {new_type}")

        if before.nullable and not after.nullable:
            statements.append(f"ALTER TABLE {full_table} ALTER COLUMN {column} SET NOT NULL")
        elif not before.nullable and after.nullable:
            statements.append(f"ALTER TABLE {full_table} ALTER COLUMN {column} DROP NOT NULL")

        return statements

    def generate_set_timezone(self, timezone: str) -> str:
        return f"ALTER SESSION SET TIMEZONE = '{timezone}'"

    def generate_dedup_select(self, source_table, columns, partition_by, order_by) -> str:
        projection = ', '.join(self.quote_identifier(c) for c in columns)
        partition = ', '.join(self.quote_identifier(c) for c in partition_by)
        return (
            f"SELECT {projection}\n"
            f"FROM {source_table}\n"
            f"QUALIFY row_number() OVER (PARTITION BY {partition} "
            f"ORDER BY {self.quote_identifier(order_by)} DESC) = 1"
        )
