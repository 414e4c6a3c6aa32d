"""
Warehouse dialects for DDL/DML rendering.
"""

from .base_dialect import BaseDialect
from .bigquery import BigQueryDialect
from .databricks import DatabricksDialect
from .snowflake import SnowflakeDialect

DIALECTS = {
    'databricks': DatabricksDialect,
    'bigquery': BigQueryDialect,
    'snowflake': SnowflakeDialect,
}


def get_dialect(name: str, schema=None) -> BaseDialect:
    """Instantiate the dialect registered under ``name``."""
    try:
        return DIALECTS[name.lower()](schema=schema)
    except KeyError:
        raise ValueError(f"Unsupported warehouse dialect: {name}") from None


__all__ = [
    'BaseDialect',
    'BigQueryDialect',
    'DatabricksDialect',
    'SnowflakeDialect',
    'DIALECTS',
    'get_dialect',
]
