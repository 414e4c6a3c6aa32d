"""
Databricks dialect.

Delta tables have no column type alteration and no native default values.
"""

from typing import List

from replicator.exceptions import UnsupportedModifyError
from .base_dialect import BaseDialect
from ..table_definition import Column, TableDefinition


class DatabricksDialect(BaseDialect):
    """Databricks SQL rendering."""

    @property
    def dialect_name(self) -> str:
        return 'databricks'

    def quote_identifier(self, name: str) -> str:
        """Quote identifier for Databricks (uses backticks)."""
        return f"`{name}`"

    def generate_modify_column(self, table_def: TableDefinition, before: Column, after: Column) -> List[str]:
        # Databricks does not support direct data type modify
        raise UnsupportedModifyError(
            f"Received modify column ddl on {table_def.full_name}.{after.name}, "
            f"which is not supported by Databricks yet"
        )

    def generate_set_timezone(self, timezone: str) -> str:
        return f"SET TIME ZONE '{timezone}'"
