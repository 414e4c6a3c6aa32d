"""Tests for dedup/merge synthesis over change-log batches."""

import pytest
from sqlalchemy import create_engine, text

from replicator.exceptions import UnsupportedSchemaChangeError
from replicator.utils.ddl.dialects import BigQueryDialect, DatabricksDialect, SnowflakeDialect
from replicator.utils.ddl.merge import change_log_columns, generate_dedup_select, generate_merge_into
from replicator.utils.ddl.table_definition import Column, TableDefinition


@pytest.fixture
def items_def():
    return TableDefinition(
        "test",
        "items",
        columns=(
            Column("id", "INT", nullable=False, is_pk=True),
            Column("qty", "INT"),
        ),
    )


def test_change_log_columns(items_def):
    assert change_log_columns(items_def) == [
        "_cdc_flag", "_cdc_table", "_cdc_schema", "_cdc_commit_ts", "id", "qty",
    ]


def test_dedup_keeps_latest_event_per_key(items_def):
    """Test the ANSI dedup sub-select against SQLite."""
    engine = create_engine("sqlite://")
    with engine.begin() as conn:
        conn.execute(text(
            "CREATE TABLE staging (_cdc_flag TEXT, _cdc_table TEXT, _cdc_schema TEXT, "
            "_cdc_commit_ts INTEGER, id INTEGER, qty INTEGER)"
        ))
        conn.execute(
            text("INSERT INTO staging VALUES (:flag, 'items', 'test', :ts, :id, :qty)"),
            [
                {"flag": "U", "ts": 5, "id": 1, "qty": 10},
                {"flag": "D", "ts": 7, "id": 1, "qty": 10},
                {"flag": "I", "ts": 3, "id": 2, "qty": 4},
            ],
        )

        sql = generate_dedup_select(DatabricksDialect(), items_def, "staging")
        rows = conn.execute(text(sql)).mappings().all()

    latest = {row["id"]: (row["_cdc_flag"], row["_cdc_commit_ts"]) for row in rows}
    assert latest == {1: ("D", 7), 2: ("I", 3)}


def test_merge_into_clauses(items_def):
    sql = generate_merge_into(DatabricksDialect(), items_def, "`test`.`items_cdc_staging`")

    assert sql.startswith("MERGE INTO `test`.`items` AS T USING (\n")
    assert "PARTITION BY `id` ORDER BY `_cdc_commit_ts` DESC" in sql
    assert "FROM `test`.`items_cdc_staging`" in sql
    assert "ON (T.`id` = S.`id`)" in sql
    assert "WHEN MATCHED AND S.`_cdc_flag` != 'D' THEN UPDATE SET `qty` = S.`qty`" in sql
    assert "WHEN MATCHED AND S.`_cdc_flag` = 'D' THEN DELETE" in sql
    assert sql.endswith(
        "WHEN NOT MATCHED AND S.`_cdc_flag` != 'D' THEN INSERT (`id`, `qty`) VALUES (S.`id`, S.`qty`)"
    )


def test_merge_on_composite_key():
    table_def = TableDefinition(
        "test",
        "lines",
        columns=(
            Column("order_id", "INT", nullable=False, is_pk=True),
            Column("line_no", "INT", nullable=False, is_pk=True),
            Column("sku", "VARCHAR", precision=16),
        ),
    )

    sql = generate_merge_into(SnowflakeDialect(), table_def, '"test"."lines_cdc_staging"')

    assert 'ON (T."order_id" = S."order_id" AND T."line_no" = S."line_no")' in sql
    assert 'PARTITION BY "order_id", "line_no"' in sql
    assert "QUALIFY row_number()" in sql


def test_merge_without_non_key_columns_has_no_update():
    table_def = TableDefinition("test", "tags", columns=(Column("tag", "VARCHAR", nullable=False, is_pk=True),))

    sql = generate_merge_into(DatabricksDialect(), table_def, "staging")

    assert "UPDATE SET" not in sql
    assert "THEN DELETE" in sql
    assert "THEN INSERT (`tag`)" in sql


def test_bigquery_dedup_excludes_row_number(items_def):
    sql = generate_merge_into(BigQueryDialect(), items_def, "`test`.`items_cdc_staging`")

    assert "SELECT * EXCEPT(row_num)" in sql


def test_merge_requires_primary_key():
    table_def = TableDefinition("test", "log", columns=(Column("msg", "TEXT"),))

    with pytest.raises(UnsupportedSchemaChangeError):
        generate_merge_into(DatabricksDialect(), table_def, "staging")


def test_merge_into_explicit_target(items_def):
    sql = generate_merge_into(DatabricksDialect(), items_def, "staging", target_table="`dw`.`items_live`")

    assert sql.startswith("MERGE INTO `dw`.`items_live` AS T")
