"""Tests for incremental replay of the change log."""

import threading
from unittest.mock import patch

import pytest

from replicator.exceptions import IncrementLoadError, UnsupportedDDLError
from replicator.replication.increment import IncrementalReplicator, replicate_increment
from tests.conftest import RecordingConnector

ORDERS_COLUMNS = [
    {"ColumnId": "1", "ColumnName": "id", "ColumnType": "INT", "ColumnIsPk": "true", "ColumnNullable": "false"},
    {"ColumnId": "2", "ColumnName": "name", "ColumnType": "VARCHAR", "ColumnPrecision": "32"},
]
NOTE_COLUMN = {"ColumnId": "3", "ColumnName": "note", "ColumnType": "TEXT"}


def _write_schema(storage, table_version, columns, action=0, query=""):
    storage.write_json(f"increment/test/orders/meta/schema_{table_version}_1234567890.json", {
        "Table": "orders",
        "Schema": "test",
        "Version": 1,
        "TableVersion": table_version,
        "Query": query,
        "Type": action,
        "TableColumns": columns,
        "TableColumnsTotal": len(columns),
    })


def _write_data(storage, path):
    storage.write_text(f"increment/test/orders/{path}", "I,orders,test,1,1,a\n")


def _merged_files(connector):
    return [batch[2].split("FROM '")[1].split("'")[0].rsplit("/increment/", 1)[1]
            for batch in connector.executed if batch[0].startswith("SET TIME ZONE")]


@pytest.fixture
def workspace(storage):
    storage.write_text("increment/metadata", "{}")
    _write_schema(storage, 100, ORDERS_COLUMNS)
    _write_data(storage, "100/CDC000002.csv")
    _write_data(storage, "100/CDC000001.csv")
    _write_schema(storage, 200, ORDERS_COLUMNS + [NOTE_COLUMN], query="ALTER TABLE orders ADD COLUMN note TEXT")
    _write_data(storage, "200/CDC000001.csv")
    return storage


def test_replay_applies_ddl_between_versions(workspace):
    connector = RecordingConnector()
    replicator = IncrementalReplicator(connector, workspace, "test.orders", timezone="Asia/Tokyo")

    assert replicator.run_once() == 3

    assert _merged_files(connector) == [
        "test/orders/100/CDC000001.csv",
        "test/orders/100/CDC000002.csv",
        "test/orders/200/CDC000001.csv",
    ]
    assert connector.executed[2] == ["ALTER TABLE `test`.`orders` ADD COLUMN `note` STRING"]
    assert connector.executed[0][0] == "SET TIME ZONE 'Asia/Tokyo'"
    assert "`note`" not in connector.executed[1][3]
    assert "`note`" in connector.executed[3][3]
    assert replicator.load_progress() == {
        "table": "test.orders",
        "table_version": 200,
        "last_files": {"test/orders/200": "test/orders/200/CDC000001.csv"},
    }


def test_replay_only_merges_new_files(workspace):
    connector = RecordingConnector()
    replicator = IncrementalReplicator(connector, workspace, "test.orders")
    replicator.run_once()
    connector.executed.clear()

    assert replicator.run_once() == 0

    _write_data(workspace, "200/CDC000002.csv")
    assert replicator.run_once() == 1
    assert _merged_files(connector) == ["test/orders/200/CDC000002.csv"]


def test_restart_resumes_from_progress(workspace):
    """Test that a new replicator diffs against the recorded table version."""
    IncrementalReplicator(RecordingConnector(), workspace, "test.orders").run_once()
    _write_schema(workspace, 300, ORDERS_COLUMNS, query="ALTER TABLE orders DROP COLUMN note")
    _write_data(workspace, "300/CDC000001.csv")

    connector = RecordingConnector()
    assert IncrementalReplicator(connector, workspace, "test.orders").run_once() == 1

    assert connector.executed[0] == ["ALTER TABLE `test`.`orders` DROP COLUMN `note`"]
    assert _merged_files(connector) == ["test/orders/300/CDC000001.csv"]


def test_failed_merge_keeps_progress(workspace):
    replicator = IncrementalReplicator(RecordingConnector(fail_on="200/CDC000001.csv"), workspace, "test.orders")

    with pytest.raises(IncrementLoadError):
        replicator.run_once()

    assert replicator.load_progress()["table_version"] == 200
    assert replicator.load_progress()["last_files"] == {}


def test_unsupported_ddl_stops_replay(workspace):
    _write_schema(workspace, 300, ORDERS_COLUMNS, action=14, query="RENAME TABLE orders TO orders_old")
    connector = RecordingConnector()

    with pytest.raises(UnsupportedDDLError):
        IncrementalReplicator(connector, workspace, "test.orders").run_once()

    assert len(_merged_files(connector)) == 3


def test_baseline_truncate_is_applied(storage):
    _write_schema(storage, 100, ORDERS_COLUMNS, action=11, query="TRUNCATE TABLE orders")
    connector = RecordingConnector()

    IncrementalReplicator(connector, storage, "test.orders").run_once()

    assert connector.executed == [["TRUNCATE TABLE `test`.`orders`"]]


def test_partitioned_data_paths(storage):
    _write_schema(storage, 100, ORDERS_COLUMNS)
    _write_data(storage, "100/2024-01-02/CDC000001.csv")
    _write_data(storage, "100/2024-01-01/CDC000001.csv")
    storage.write_text("increment/test/orders/100/2024-01-01/CDC.index", "CDC000001.csv")

    connector = RecordingConnector()
    IncrementalReplicator(connector, storage, "test.orders").run_once()

    assert _merged_files(connector) == [
        "test/orders/100/2024-01-01/CDC000001.csv",
        "test/orders/100/2024-01-02/CDC000001.csv",
    ]


def test_late_file_in_earlier_partition_is_merged(storage):
    """Test that each data directory keeps its own position."""
    _write_schema(storage, 100, ORDERS_COLUMNS)
    _write_data(storage, "100/1001/CDC000001.csv")
    _write_data(storage, "100/1002/CDC000001.csv")
    connector = RecordingConnector()
    replicator = IncrementalReplicator(connector, storage, "test.orders")
    assert replicator.run_once() == 2
    connector.executed.clear()

    _write_data(storage, "100/1001/CDC000002.csv")
    assert replicator.run_once() == 1

    assert _merged_files(connector) == ["test/orders/100/1001/CDC000002.csv"]
    assert replicator.load_progress()["last_files"] == {
        "test/orders/100/1001": "test/orders/100/1001/CDC000002.csv",
        "test/orders/100/1002": "test/orders/100/1002/CDC000001.csv",
    }


def test_data_without_schema_is_skipped(storage):
    _write_data(storage, "100/CDC000001.csv")

    connector = RecordingConnector()
    assert IncrementalReplicator(connector, storage, "test.orders").run_once() == 0
    assert connector.executed == []


def test_run_stops_on_event(storage):
    stop_event = threading.Event()
    calls = []

    def fake_run_once(self):
        calls.append(1)
        stop_event.set()
        return 0

    with patch.object(IncrementalReplicator, "run_once", fake_run_once):
        replicate_increment(RecordingConnector(), storage, "test.orders", 30, "UTC", stop_event=stop_event)

    assert calls == [1]
