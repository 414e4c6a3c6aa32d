"""
Replication Orchestrator - Main entry point for replicating one table.

Manages the complete lifecycle of a replication run:
- Deriving the stage from the workspace markers
- Creating the changefeed
- Dumping and loading the snapshot
- Replaying the change log

Each stage's action runs once per run, in order, starting from the stage
the workspace is at; stages the run mode excludes are skipped.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, FrozenSet, List, Optional

from sqlalchemy.engine import Engine

from dwsync.utils.changefeed import ChangefeedManager
from dwsync.utils.dumpling import DumplingRunner
from replicator import metrics
from replicator.config import ReplicationContext, RunMode
from replicator.connectors.base_connector import BaseWarehouseConnector
from replicator.exceptions import CaptureSetupError, PositionAcquisitionError
from replicator.logging_utils import (
    log_operation,
    log_snapshot_progress,
    log_stage_entered,
    replication_logger,
)
from replicator.utils.storage import ReplicationStorage
from .increment import replicate_increment
from .snapshot import replicate_snapshot
from .source import get_current_tso, get_source_engine
from .stage import STAGE_ORDER, Stage, check_stage, increment_uri, snapshot_uri

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageTransition:
    """The action run at ``stage``, the stage its marker leads to, and the modes that skip it."""
    stage: Stage
    action: str
    next_stage: Optional[Stage]
    skipped_modes: FrozenSet[RunMode]


STAGE_TRANSITIONS = (
    StageTransition(
        Stage.INIT, 'create_changefeed', Stage.CHANGEFEED_CREATED,
        frozenset({RunMode.SNAPSHOT_ONLY, RunMode.CLOUD}),
    ),
    StageTransition(
        Stage.CHANGEFEED_CREATED, 'dump_snapshot', Stage.SNAPSHOT_DUMPED,
        frozenset({RunMode.INCREMENTAL_ONLY, RunMode.CLOUD}),
    ),
    StageTransition(
        Stage.SNAPSHOT_DUMPED, 'load_snapshot', Stage.SNAPSHOT_LOADED,
        frozenset({RunMode.INCREMENTAL_ONLY}),
    ),
    StageTransition(
        Stage.SNAPSHOT_LOADED, 'replicate_increment', None,
        frozenset({RunMode.SNAPSHOT_ONLY}),
    ),
)


def transitions_from(stage: Stage) -> List[StageTransition]:
    """Transitions still to run for a workspace at ``stage``."""
    entered = STAGE_ORDER.index(stage)
    return [t for t in STAGE_TRANSITIONS if STAGE_ORDER.index(t.stage) >= entered]


class ReplicationOrchestrator:
    """
    Orchestrates one replication run of one table.

    Collaborators not passed in are built from the context on first use.
    """

    def __init__(
        self,
        context: ReplicationContext,
        snapshot_connector: BaseWarehouseConnector,
        increment_connector: BaseWarehouseConnector,
        changefeed_manager: Optional[ChangefeedManager] = None,
        dump_runner: Optional[DumplingRunner] = None,
        source_engine: Optional[Engine] = None,
        storage: Optional[ReplicationStorage] = None,
        stop_event: Optional[threading.Event] = None,
    ):
        """
        Args:
            context: Per-run configuration
            snapshot_connector: Connector loading the snapshot
            increment_connector: Connector receiving DDL and merges
            changefeed_manager: Change-capture service client
            dump_runner: Snapshot dump tool runner
            source_engine: Engine on the source database
            storage: Workspace storage (defaults to context.storage_uri)
            stop_event: Set to stop incremental replay
        """
        self.context = context
        self.snapshot_connector = snapshot_connector
        self.increment_connector = increment_connector
        self._changefeed_manager = changefeed_manager
        self._dump_runner = dump_runner
        self._source_engine = source_engine
        self.storage = storage or ReplicationStorage(context.storage_uri, context.storage_options)
        self.stop_event = stop_event
        self.start_ts: Optional[int] = None

    # ==========================================
    # Collaborators
    # ==========================================

    @property
    def changefeed_manager(self) -> ChangefeedManager:
        if self._changefeed_manager is None:
            self._changefeed_manager = ChangefeedManager(self.context.cdc_host, self.context.cdc_port)
        return self._changefeed_manager

    @property
    def dump_runner(self) -> DumplingRunner:
        if self._dump_runner is None:
            self._dump_runner = DumplingRunner()
        return self._dump_runner

    @property
    def source_engine(self) -> Engine:
        if self._source_engine is None:
            self._source_engine = get_source_engine(self.context.source)
        return self._source_engine

    # ==========================================
    # Main Operation
    # ==========================================

    def replicate(self) -> Stage:
        """
        Run every remaining stage action.

        Returns:
            The stage the run started from

        Raises:
            ReplicationError: the first failure, with its cause chained
        """
        table_name = self.context.table_name
        mode = self.context.mode

        stage = check_stage(self.storage)
        log_stage_entered(table_name, stage.value, mode.value)
        metrics.replication_stage.labels(table_name=table_name).set(STAGE_ORDER.index(stage))

        self.start_ts = self._acquire_position(stage)

        for transition in transitions_from(stage):
            if mode in transition.skipped_modes:
                logger.info(f"Skipping {transition.action} in {mode.value} mode")
                continue
            self._run_transition(transition)

        return stage

    def _acquire_position(self, stage: Stage) -> Optional[int]:
        """
        Consistency point shared by the changefeed and the snapshot dump.

        A full run reuses the start position of an existing changefeed and
        takes a fresh TSO only when none exists yet, so a resumed dump runs
        at the position the change log starts from. Snapshot-only runs reuse
        that position when resuming after the changefeed; other modes let
        the tools choose. No position is needed once the snapshot is dumped.
        """
        mode = self.context.mode
        if STAGE_ORDER.index(stage) > STAGE_ORDER.index(Stage.CHANGEFEED_CREATED):
            return None

        if mode == RunMode.FULL:
            start_ts = self._changefeed_start_ts()
            if start_ts is not None:
                return start_ts
            if stage == Stage.INIT:
                return get_current_tso(self.source_engine)
            raise PositionAcquisitionError(
                f"No changefeed start position found for {self.context.table_name}, "
                f"cannot dump the snapshot at it"
            )

        if mode == RunMode.SNAPSHOT_ONLY and stage == Stage.CHANGEFEED_CREATED:
            return self._changefeed_start_ts()
        return None

    def _changefeed_start_ts(self) -> Optional[int]:
        table_name = self.context.table_name
        try:
            start_ts = self.changefeed_manager.get_start_ts(table_name)
        except CaptureSetupError as e:
            raise PositionAcquisitionError(
                f"Failed to read the changefeed start position of {table_name}: {str(e)}"
            ) from e
        if start_ts is not None:
            logger.info(f"Reusing changefeed start position {start_ts} for {table_name}")
        return start_ts

    def _run_transition(self, transition: StageTransition):
        action: Callable[[], None] = getattr(self, f"_{transition.action}")
        table_name = self.context.table_name
        try:
            with log_operation(replication_logger, transition.action, table_name=table_name, stage=transition.stage.value):
                with metrics.stage_action_duration.labels(stage=transition.stage.value).time():
                    action()
        except Exception as e:
            metrics.replication_errors_total.labels(
                stage=transition.stage.value,
                error_type=type(e).__name__,
            ).inc()
            raise

        if transition.next_stage is not None:
            metrics.replication_stage.labels(table_name=table_name).set(STAGE_ORDER.index(transition.next_stage))

    # ==========================================
    # Stage Actions
    # ==========================================

    def _create_changefeed(self):
        self.changefeed_manager.create_changefeed(
            self.context.table_name,
            increment_uri(self.storage),
            start_ts=self.start_ts,
            flush_interval=self.context.cdc_flush_interval,
            file_size=self.context.cdc_file_size,
            storage_options=self.context.storage_options,
        )

    def _on_snapshot_dump_progress(self, dumped_rows: int, total_rows: int):
        log_snapshot_progress(self.context.table_name, dumped_rows, total_rows)
        metrics.snapshot_rows_dumped.labels(table_name=self.context.table_name).set(dumped_rows)

    def _dump_snapshot(self):
        self.dump_runner.run_dump(
            self.context.source,
            self.context.snapshot_concurrency,
            snapshot_uri(self.storage),
            snapshot=str(self.start_ts) if self.start_ts else None,
            tables=[self.context.table_name],
            on_progress=self._on_snapshot_dump_progress,
            storage_options=self.context.storage_options,
        )

    def _load_snapshot(self):
        replicate_snapshot(
            self.snapshot_connector,
            self.storage,
            self.source_engine,
            self.context.table_name,
        )

    def _replicate_increment(self):
        replicate_increment(
            self.increment_connector,
            self.storage,
            self.context.table_name,
            poll_interval=self.context.increment_poll_interval,
            timezone=self.context.timezone,
            stop_event=self.stop_event,
        )
