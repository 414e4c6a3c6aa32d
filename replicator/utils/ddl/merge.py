"""
Merge synthesis for append-only change logs.

A change-log batch may hold several events for the same key. The merge
keeps only the latest event per key (by commit order) and then applies it:

    matched,     flag != 'D'  ->  UPDATE non-key columns
    matched,     flag  = 'D'  ->  DELETE
    not matched, flag != 'D'  ->  INSERT
    not matched, flag  = 'D'  ->  ignored (delete of an absent row)
"""

from typing import List

from replicator.exceptions import UnsupportedSchemaChangeError
from .dialects.base_dialect import BaseDialect
from .table_definition import TableDefinition

# Metadata columns the change-capture service writes in front of every row
CDC_FLAG_COLUMN = '_cdc_flag'
CDC_TABLE_COLUMN = '_cdc_table'
CDC_SCHEMA_COLUMN = '_cdc_schema'
CDC_COMMIT_TS_COLUMN = '_cdc_commit_ts'

CDC_METADATA_COLUMNS = (
    CDC_FLAG_COLUMN,
    CDC_TABLE_COLUMN,
    CDC_SCHEMA_COLUMN,
    CDC_COMMIT_TS_COLUMN,
)

DELETE_FLAG = 'D'


def change_log_columns(table_def: TableDefinition) -> List[str]:
    """Column order of a change-log file / staging table."""
    return list(CDC_METADATA_COLUMNS) + table_def.column_names


def generate_dedup_select(dialect: BaseDialect, table_def: TableDefinition, source_table: str) -> str:
    """Latest change per primary key from a change-log table."""
    primary_keys = table_def.primary_keys
    if not primary_keys:
        raise UnsupportedSchemaChangeError(
            f"Table {table_def.full_name} has no primary key, change log cannot be merged"
        )
    return dialect.generate_dedup_select(
        source_table,
        change_log_columns(table_def),
        primary_keys,
        CDC_COMMIT_TS_COLUMN,
    )


def generate_merge_into(
    dialect: BaseDialect,
    table_def: TableDefinition,
    source_table: str,
    target_table: str = None,
) -> str:
    """
    Generate the MERGE applying one change-log batch to the live table.

    Args:
        dialect: Warehouse dialect
        table_def: Schema version the batch was captured under
        source_table: Fully qualified staging table holding the raw batch
        target_table: Fully qualified live table (defaults to the dialect's name for it)

    Raises:
        UnsupportedSchemaChangeError: if the table has no primary key
    """
    q = dialect.quote_identifier
    target_table = target_table or dialect.full_table_name(table_def)
    dedup_sql = generate_dedup_select(dialect, table_def, source_table)

    primary_keys = table_def.primary_keys
    non_keys = [name for name in table_def.column_names if name not in primary_keys]
    all_columns = table_def.column_names

    on_clause = ' AND '.join(f"T.{q(pk)} = S.{q(pk)}" for pk in primary_keys)
    flag = f"S.{q(CDC_FLAG_COLUMN)}"

    clauses = []
    if non_keys:
        update_set = ', '.join(f"{q(c)} = S.{q(c)}" for c in non_keys)
        clauses.append(f"WHEN MATCHED AND {flag} != '{DELETE_FLAG}' THEN UPDATE SET {update_set}")
    clauses.append(f"WHEN MATCHED AND {flag} = '{DELETE_FLAG}' THEN DELETE")

    insert_cols = ', '.join(q(c) for c in all_columns)
    insert_vals = ', '.join(f"S.{q(c)}" for c in all_columns)
    clauses.append(
        f"WHEN NOT MATCHED AND {flag} != '{DELETE_FLAG}' THEN INSERT ({insert_cols}) VALUES ({insert_vals})"
    )

    indented_dedup = '\n'.join(f"    {line}" for line in dedup_sql.splitlines())
    return (
        f"MERGE INTO {target_table} AS T USING (\n"
        f"{indented_dedup}\n"
        f") AS S\n"
        f"ON ({on_clause})\n"
        + '\n'.join(clauses)
    )
