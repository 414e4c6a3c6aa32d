"""Tests for source to warehouse type mapping."""

import pytest

from replicator.exceptions import UnsupportedTypeError
from replicator.utils.ddl.table_definition import Column
from replicator.utils.ddl.type_maps import (
    get_bigquery_type,
    get_databricks_type,
    get_snowflake_type,
    get_type_mapper,
    parse_source_type,
)


def test_parse_source_type():
    assert parse_source_type("int(11) unsigned") == ("INT", True)
    assert parse_source_type("DECIMAL(10,2)") == ("DECIMAL", False)
    assert parse_source_type("bigint unsigned zerofill") == ("BIGINT", True)


@pytest.mark.parametrize("source_type, expected", [
    ("INT", "INT"),
    ("INT UNSIGNED", "BIGINT"),
    ("BIGINT UNSIGNED", "DECIMAL(20,0)"),
    ("VARCHAR", "STRING"),
    ("LONGTEXT", "STRING"),
    ("DATETIME", "TIMESTAMP"),
    ("BLOB", "BINARY"),
])
def test_databricks_types(source_type, expected):
    assert get_databricks_type(Column("c", source_type)) == expected


@pytest.mark.parametrize("source_type, expected", [
    ("TINYINT", "INT64"),
    ("BIGINT", "INT64"),
    ("BIGINT UNSIGNED", "NUMERIC(20,0)"),
    ("VARCHAR", "STRING"),
    ("DATETIME", "DATETIME"),
    ("JSON", "JSON"),
    ("VARBINARY", "BYTES"),
])
def test_bigquery_types(source_type, expected):
    assert get_bigquery_type(Column("c", source_type)) == expected


def test_bigquery_decimal_widens_to_bignumeric():
    assert get_bigquery_type(Column("c", "DECIMAL", precision=12, scale=2)) == "NUMERIC(12,2)"
    assert get_bigquery_type(Column("c", "DECIMAL", precision=40, scale=2)) == "BIGNUMERIC(40,2)"
    assert get_bigquery_type(Column("c", "DECIMAL", precision=20, scale=12)) == "BIGNUMERIC(20,12)"


@pytest.mark.parametrize("column, expected", [
    (Column("c", "VARCHAR", precision=32), "VARCHAR(32)"),
    (Column("c", "VARCHAR"), "VARCHAR"),
    (Column("c", "DATETIME"), "TIMESTAMP_NTZ"),
    (Column("c", "TIMESTAMP"), "TIMESTAMP_TZ"),
    (Column("c", "JSON"), "VARIANT"),
    (Column("c", "BIGINT UNSIGNED"), "NUMBER(20,0)"),
])
def test_snowflake_types(column, expected):
    assert get_snowflake_type(column) == expected


def test_decimal_defaults_to_mysql_default():
    assert get_databricks_type(Column("c", "DECIMAL")) == "DECIMAL(10,0)"


def test_decimal_beyond_max_precision_is_rejected():
    with pytest.raises(UnsupportedTypeError):
        get_databricks_type(Column("c", "DECIMAL", precision=65, scale=0))


def test_unknown_type_is_rejected():
    with pytest.raises(UnsupportedTypeError):
        get_snowflake_type(Column("c", "GEOMETRY"))


def test_get_type_mapper():
    assert get_type_mapper("BigQuery") is get_bigquery_type
    assert get_type_mapper("oracle") is None
