"""Tests for the replication orchestrator stage machine."""

from unittest.mock import MagicMock, patch

import pytest

from dwsync.utils.changefeed import ChangefeedException
from replicator import metrics
from replicator.config import ReplicationContext, RunMode, SourceConfig
from replicator.exceptions import PositionAcquisitionError, SnapshotDumpError
from replicator.replication.orchestrator import STAGE_TRANSITIONS, ReplicationOrchestrator, transitions_from
from replicator.replication.stage import (
    INCREMENT_METADATA_MARKER,
    SNAPSHOT_LOADINFO_MARKER,
    SNAPSHOT_METADATA_MARKER,
    Stage,
)
from tests.conftest import RecordingConnector

TSO = 443852055297916932


@pytest.fixture
def context(tmp_path):
    def make(mode=RunMode.FULL):
        return ReplicationContext(
            source=SourceConfig("source.test", 4000, "root"),
            table_name="test.orders",
            storage_uri=str(tmp_path / "workspace"),
            mode=mode,
            cdc_flush_interval=60,
            timezone="Asia/Tokyo",
        )
    return make


@pytest.fixture
def collaborators(storage, orders_def):
    """Fakes that write the markers the real tools would write."""
    changefeed_manager = MagicMock()
    changefeed_manager.get_start_ts.return_value = None
    changefeed_manager.create_changefeed.side_effect = (
        lambda *args, **kwargs: storage.write_text(INCREMENT_METADATA_MARKER, "{}")
    )

    def run_dump(*args, **kwargs):
        kwargs["on_progress"](10, 20)
        storage.write_text("snapshot/test.orders.000000000.csv", "1,a,2.50\n")
        storage.write_text(SNAPSHOT_METADATA_MARKER, "")

    dump_runner = MagicMock()
    dump_runner.run_dump.side_effect = run_dump

    with patch("replicator.replication.orchestrator.get_current_tso", return_value=TSO) as get_tso, \
            patch("replicator.replication.snapshot.get_table_definition", return_value=orders_def), \
            patch("replicator.replication.orchestrator.replicate_increment") as replicate_increment:
        yield {
            "changefeed_manager": changefeed_manager,
            "dump_runner": dump_runner,
            "get_tso": get_tso,
            "replicate_increment": replicate_increment,
        }


def _orchestrator(context, storage, collaborators, connector=None):
    connector = connector or RecordingConnector()
    return ReplicationOrchestrator(
        context,
        snapshot_connector=connector,
        increment_connector=connector,
        changefeed_manager=collaborators["changefeed_manager"],
        dump_runner=collaborators["dump_runner"],
        source_engine=MagicMock(),
        storage=storage,
    )


def test_transitions_cover_every_stage_in_order():
    assert [t.stage for t in STAGE_TRANSITIONS] == [
        Stage.INIT, Stage.CHANGEFEED_CREATED, Stage.SNAPSHOT_DUMPED, Stage.SNAPSHOT_LOADED,
    ]
    assert [t.action for t in transitions_from(Stage.SNAPSHOT_DUMPED)] == ["load_snapshot", "replicate_increment"]


def test_full_run_from_init(context, storage, collaborators):
    connector = RecordingConnector()

    entered = _orchestrator(context(), storage, collaborators, connector).replicate()

    assert entered == Stage.INIT
    create_kwargs = collaborators["changefeed_manager"].create_changefeed.call_args
    assert create_kwargs.args == ("test.orders", storage.uri("increment"))
    assert create_kwargs.kwargs["start_ts"] == TSO
    dump_call = collaborators["dump_runner"].run_dump.call_args
    assert dump_call.args[2] == storage.uri("snapshot")
    assert dump_call.kwargs["snapshot"] == str(TSO)
    assert dump_call.kwargs["tables"] == ["test.orders"]
    assert [sql.split()[0] for sql in connector.statements] == ["CREATE", "COPY"]
    assert storage.exists(SNAPSHOT_LOADINFO_MARKER)
    increment_call = collaborators["replicate_increment"].call_args
    assert increment_call.args[0] is connector
    assert increment_call.kwargs["poll_interval"] == 12
    assert increment_call.kwargs["timezone"] == "Asia/Tokyo"


def test_snapshot_progress_is_reported(context, storage, collaborators):
    _orchestrator(context(), storage, collaborators).replicate()

    assert metrics.snapshot_rows_dumped.labels(table_name="test.orders")._value.get() == 10


def test_resume_after_dump(context, storage, collaborators):
    """Test that completed stages are not redone."""
    storage.write_text(INCREMENT_METADATA_MARKER, "{}")
    storage.write_text(SNAPSHOT_METADATA_MARKER, "")
    storage.write_text("snapshot/test.orders.000000000.csv", "1,a,2.50\n")

    entered = _orchestrator(context(), storage, collaborators).replicate()

    assert entered == Stage.SNAPSHOT_DUMPED
    collaborators["changefeed_manager"].create_changefeed.assert_not_called()
    collaborators["dump_runner"].run_dump.assert_not_called()
    assert storage.exists(SNAPSHOT_LOADINFO_MARKER)
    collaborators["replicate_increment"].assert_called_once()


def test_resume_after_changefeed_dumps_at_its_start_position(context, storage, collaborators):
    storage.write_text(INCREMENT_METADATA_MARKER, "{}")
    collaborators["changefeed_manager"].get_start_ts.return_value = TSO - 1000

    entered = _orchestrator(context(), storage, collaborators).replicate()

    assert entered == Stage.CHANGEFEED_CREATED
    collaborators["get_tso"].assert_not_called()
    collaborators["changefeed_manager"].get_start_ts.assert_called_once_with("test.orders")
    assert collaborators["dump_runner"].run_dump.call_args.kwargs["snapshot"] == str(TSO - 1000)


def test_resume_after_changefeed_without_start_position_fails(context, storage, collaborators):
    storage.write_text(INCREMENT_METADATA_MARKER, "{}")

    with pytest.raises(PositionAcquisitionError):
        _orchestrator(context(), storage, collaborators).replicate()

    collaborators["dump_runner"].run_dump.assert_not_called()


def test_existing_changefeed_position_is_reused_from_init(context, storage, collaborators):
    """Test that a changefeed created before its marker appeared keeps its position."""
    collaborators["changefeed_manager"].get_start_ts.return_value = TSO - 1000

    _orchestrator(context(), storage, collaborators).replicate()

    collaborators["get_tso"].assert_not_called()
    assert collaborators["changefeed_manager"].create_changefeed.call_args.kwargs["start_ts"] == TSO - 1000
    assert collaborators["dump_runner"].run_dump.call_args.kwargs["snapshot"] == str(TSO - 1000)


def test_changefeed_lookup_failure_is_a_position_failure(context, storage, collaborators):
    storage.write_text(INCREMENT_METADATA_MARKER, "{}")
    collaborators["changefeed_manager"].get_start_ts.side_effect = ChangefeedException("HTTP 500: boom")

    with pytest.raises(PositionAcquisitionError) as exc_info:
        _orchestrator(context(), storage, collaborators).replicate()

    assert isinstance(exc_info.value.__cause__, ChangefeedException)


def test_snapshot_only_resume_reuses_changefeed_position(context, storage, collaborators):
    storage.write_text(INCREMENT_METADATA_MARKER, "{}")
    collaborators["changefeed_manager"].get_start_ts.return_value = TSO

    _orchestrator(context(RunMode.SNAPSHOT_ONLY), storage, collaborators).replicate()

    assert collaborators["dump_runner"].run_dump.call_args.kwargs["snapshot"] == str(TSO)


def test_resume_after_snapshot_load(context, storage, collaborators):
    for marker in (INCREMENT_METADATA_MARKER, SNAPSHOT_METADATA_MARKER, SNAPSHOT_LOADINFO_MARKER):
        storage.write_text(marker, "{}")
    connector = RecordingConnector()

    entered = _orchestrator(context(), storage, collaborators, connector).replicate()

    assert entered == Stage.SNAPSHOT_LOADED
    assert connector.executed == []
    collaborators["replicate_increment"].assert_called_once()


@pytest.mark.parametrize("mode, changefeed, dump, load, increment", [
    (RunMode.SNAPSHOT_ONLY, False, True, True, False),
    (RunMode.INCREMENTAL_ONLY, True, False, False, True),
    (RunMode.CLOUD, False, False, True, True),
])
def test_mode_gating(context, storage, collaborators, mode, changefeed, dump, load, increment):
    _orchestrator(context(mode), storage, collaborators).replicate()

    assert collaborators["changefeed_manager"].create_changefeed.called == changefeed
    assert collaborators["dump_runner"].run_dump.called == dump
    assert storage.exists(SNAPSHOT_LOADINFO_MARKER) == load
    assert collaborators["replicate_increment"].called == increment
    collaborators["get_tso"].assert_not_called()


def test_non_full_modes_let_the_tools_choose_position(context, storage, collaborators):
    _orchestrator(context(RunMode.INCREMENTAL_ONLY), storage, collaborators).replicate()

    assert collaborators["changefeed_manager"].create_changefeed.call_args.kwargs["start_ts"] is None


def test_failure_aborts_remaining_stages(context, storage, collaborators):
    collaborators["dump_runner"].run_dump.side_effect = SnapshotDumpError("dumpling exited with code 1")
    errors = metrics.replication_errors_total.labels(stage="changefeed-created", error_type="SnapshotDumpError")
    before = errors._value.get()

    with pytest.raises(SnapshotDumpError):
        _orchestrator(context(), storage, collaborators).replicate()

    assert storage.exists(INCREMENT_METADATA_MARKER)
    assert not storage.exists(SNAPSHOT_LOADINFO_MARKER)
    collaborators["replicate_increment"].assert_not_called()
    assert errors._value.get() == before + 1


def test_position_failure_runs_nothing(context, storage, collaborators):
    collaborators["get_tso"].side_effect = PositionAcquisitionError("Failed to get current TSO")

    with pytest.raises(PositionAcquisitionError):
        _orchestrator(context(), storage, collaborators).replicate()

    collaborators["changefeed_manager"].create_changefeed.assert_not_called()
