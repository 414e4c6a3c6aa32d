"""
Type mappings from source (MySQL-compatible) column types to warehouse types.

Provides mappings for:
- Databricks (Delta tables)
- BigQuery
- Snowflake
"""

import re
from typing import Callable, Dict, Optional, Tuple

from replicator.exceptions import UnsupportedTypeError
from .table_definition import Column


# Source types that are all represented as free text in warehouses
STRING_TYPES = ('TINYTEXT', 'TEXT', 'MEDIUMTEXT', 'LONGTEXT', 'ENUM', 'SET')
BINARY_TYPES = ('BINARY', 'VARBINARY', 'TINYBLOB', 'BLOB', 'MEDIUMBLOB', 'LONGBLOB')


def parse_source_type(source_type: str) -> Tuple[str, bool]:
    """
    Normalize a source type name.

    Args:
        source_type: e.g. 'INT', 'int(11) unsigned', 'DECIMAL(10,2)'

    Returns:
        (base type upper-cased, is_unsigned)

    Examples:
        >>> parse_source_type('int(11) unsigned')
        ('INT', True)
        >>> parse_source_type('VARCHAR')
        ('VARCHAR', False)
    """
    normalized = source_type.upper().strip()
    unsigned = 'UNSIGNED' in normalized
    normalized = re.sub(r'\bUNSIGNED\b|\bZEROFILL\b', '', normalized)
    normalized = re.sub(r'\(.*?\)', '', normalized)
    return normalized.strip(), unsigned


# Databricks integer types, (signed, unsigned)
DATABRICKS_INTEGER_MAP: Dict[str, Tuple[str, str]] = {
    'TINYINT': ('TINYINT', 'SMALLINT'),
    'SMALLINT': ('SMALLINT', 'INT'),
    'MEDIUMINT': ('INT', 'INT'),
    'INT': ('INT', 'BIGINT'),
    'INTEGER': ('INT', 'BIGINT'),
    'BIGINT': ('BIGINT', 'DECIMAL(20,0)'),
    'YEAR': ('INT', 'INT'),
    'BIT': ('BIGINT', 'BIGINT'),
}

DATABRICKS_TYPE_MAP: Dict[str, str] = {
    'FLOAT': 'FLOAT',
    'DOUBLE': 'DOUBLE',
    'REAL': 'DOUBLE',
    'CHAR': 'STRING',
    'VARCHAR': 'STRING',
    'JSON': 'STRING',
    'TIME': 'STRING',
    'DATE': 'DATE',
    'DATETIME': 'TIMESTAMP',
    'TIMESTAMP': 'TIMESTAMP',
    'BOOL': 'BOOLEAN',
    'BOOLEAN': 'BOOLEAN',
}


def get_databricks_type(column: Column) -> str:
    """
    Map a source column to a Databricks type.

    Refer to:
    https://docs.databricks.com/en/sql/language-manual/sql-ref-datatypes.html
    """
    base, unsigned = parse_source_type(column.type)

    if base in DATABRICKS_INTEGER_MAP:
        return DATABRICKS_INTEGER_MAP[base][1 if unsigned else 0]
    if base in ('DECIMAL', 'NUMERIC', 'DEC'):
        precision, scale = _decimal_params(column, max_precision=38)
        return f"DECIMAL({precision},{scale})"
    if base in STRING_TYPES:
        return 'STRING'
    if base in BINARY_TYPES:
        return 'BINARY'
    if base in DATABRICKS_TYPE_MAP:
        return DATABRICKS_TYPE_MAP[base]

    raise UnsupportedTypeError(f"Unsupported column type for Databricks: {column.type}")


BIGQUERY_TYPE_MAP: Dict[str, str] = {
    'TINYINT': 'INT64',
    'SMALLINT': 'INT64',
    'MEDIUMINT': 'INT64',
    'INT': 'INT64',
    'INTEGER': 'INT64',
    'YEAR': 'INT64',
    'BIT': 'INT64',
    'FLOAT': 'FLOAT64',
    'DOUBLE': 'FLOAT64',
    'REAL': 'FLOAT64',
    'CHAR': 'STRING',
    'VARCHAR': 'STRING',
    'JSON': 'JSON',
    'DATE': 'DATE',
    'DATETIME': 'DATETIME',
    'TIMESTAMP': 'TIMESTAMP',
    'TIME': 'TIME',
    'BOOL': 'BOOL',
    'BOOLEAN': 'BOOL',
}


def get_bigquery_type(column: Column) -> str:
    """
    Map a source column to a BigQuery type.

    Refer to:
    https://cloud.google.com/bigquery/docs/reference/standard-sql/data-types
    """
    base, unsigned = parse_source_type(column.type)

    if base == 'BIGINT':
        return 'NUMERIC(20,0)' if unsigned else 'INT64'
    if base in ('DECIMAL', 'NUMERIC', 'DEC'):
        precision, scale = _decimal_params(column, max_precision=76)
        # NUMERIC holds 29 integer digits and 9 fractional digits
        if precision - scale <= 29 and scale <= 9:
            return f"NUMERIC({precision},{scale})"
        return f"BIGNUMERIC({precision},{scale})"
    if base in STRING_TYPES:
        return 'STRING'
    if base in BINARY_TYPES:
        return 'BYTES'
    if base in BIGQUERY_TYPE_MAP:
        return BIGQUERY_TYPE_MAP[base]

    raise UnsupportedTypeError(f"Unsupported column type for BigQuery: {column.type}")


# Snowflake integer types, (signed, unsigned)
SNOWFLAKE_INTEGER_MAP: Dict[str, Tuple[str, str]] = {
    'TINYINT': ('NUMBER(3,0)', 'NUMBER(3,0)'),
    'SMALLINT': ('NUMBER(5,0)', 'NUMBER(5,0)'),
    'MEDIUMINT': ('NUMBER(7,0)', 'NUMBER(8,0)'),
    'INT': ('NUMBER(10,0)', 'NUMBER(10,0)'),
    'INTEGER': ('NUMBER(10,0)', 'NUMBER(10,0)'),
    'BIGINT': ('NUMBER(19,0)', 'NUMBER(20,0)'),
    'YEAR': ('NUMBER(4,0)', 'NUMBER(4,0)'),
    'BIT': ('NUMBER(20,0)', 'NUMBER(20,0)'),
}

SNOWFLAKE_TYPE_MAP: Dict[str, str] = {
    'FLOAT': 'FLOAT',
    'DOUBLE': 'FLOAT',
    'REAL': 'FLOAT',
    'JSON': 'VARIANT',
    'DATE': 'DATE',
    'DATETIME': 'TIMESTAMP_NTZ',
    'TIMESTAMP': 'TIMESTAMP_TZ',
    'TIME': 'TIME',
    'BOOL': 'BOOLEAN',
    'BOOLEAN': 'BOOLEAN',
}


def get_snowflake_type(column: Column) -> str:
    """
    Map a source column to a Snowflake type.

    Refer to:
    https://docs.snowflake.com/en/sql-reference/intro-summary-data-types
    """
    base, unsigned = parse_source_type(column.type)

    if base in SNOWFLAKE_INTEGER_MAP:
        return SNOWFLAKE_INTEGER_MAP[base][1 if unsigned else 0]
    if base in ('DECIMAL', 'NUMERIC', 'DEC'):
        precision, scale = _decimal_params(column, max_precision=38)
        return f"NUMBER({precision},{scale})"
    if base in ('CHAR', 'VARCHAR'):
        if column.precision:
            return f"{base}({column.precision})"
        return 'VARCHAR'
    if base in STRING_TYPES:
        return 'TEXT'
    if base in BINARY_TYPES:
        return 'BINARY'
    if base in SNOWFLAKE_TYPE_MAP:
        return SNOWFLAKE_TYPE_MAP[base]

    raise UnsupportedTypeError(f"Unsupported column type for Snowflake: {column.type}")


def _decimal_params(column: Column, max_precision: int) -> Tuple[int, int]:
    """Precision and scale of a DECIMAL column, MySQL defaults DECIMAL(10,0)."""
    precision = column.precision or 10
    scale = column.scale or 0
    if precision > max_precision:
        raise UnsupportedTypeError(
            f"DECIMAL({precision},{scale}) exceeds the maximum precision {max_precision}"
        )
    return precision, scale


TYPE_MAPPERS: Dict[str, Callable[[Column], str]] = {
    'databricks': get_databricks_type,
    'bigquery': get_bigquery_type,
    'snowflake': get_snowflake_type,
}


def get_type_mapper(dialect_name: str) -> Optional[Callable[[Column], str]]:
    """Type mapping function for a warehouse dialect, or None if unknown."""
    return TYPE_MAPPERS.get(dialect_name.lower())
