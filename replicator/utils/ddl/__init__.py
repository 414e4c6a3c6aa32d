"""
Schema diffing and warehouse SQL synthesis for CDC replication.

Targets:
- Databricks
- BigQuery
- Snowflake
"""

from .table_definition import ChangeType, Column, TableDefinition
from .column_diff import ColumnAction, ColumnDiffItem, TableDiff, diff_table_definition, get_column_diff
from .dialects import BaseDialect, BigQueryDialect, DatabricksDialect, SnowflakeDialect, get_dialect
from .merge import CDC_COMMIT_TS_COLUMN, CDC_FLAG_COLUMN, change_log_columns, generate_merge_into

__all__ = [
    'ChangeType',
    'Column',
    'TableDefinition',
    'ColumnAction',
    'ColumnDiffItem',
    'TableDiff',
    'diff_table_definition',
    'get_column_diff',
    'BaseDialect',
    'BigQueryDialect',
    'DatabricksDialect',
    'SnowflakeDialect',
    'get_dialect',
    'CDC_COMMIT_TS_COLUMN',
    'CDC_FLAG_COLUMN',
    'change_log_columns',
    'generate_merge_into',
]
