"""
Builds and runs a replication from Django settings.

Shared by the ``replicate`` management command and the Celery task.
"""

import logging
import threading
from typing import Optional

from replicator.config import ReplicationContext, RunMode, get_replication_settings
from replicator.connectors import create_connector
from replicator.replication.orchestrator import ReplicationOrchestrator
from replicator.replication.stage import Stage

logger = logging.getLogger(__name__)


def run_replication(
    table_name: str,
    mode: str = RunMode.FULL.value,
    storage_uri: Optional[str] = None,
    target: Optional[str] = None,
    target_url: Optional[str] = None,
    target_schema: Optional[str] = None,
    stop_event: Optional[threading.Event] = None,
) -> Stage:
    """
    Replicate one table with settings-derived defaults.

    Returns:
        The stage the run started from

    Raises:
        ValueError: invalid table name, mode, target or missing configuration
        ReplicationError: any replication failure
    """
    replication = get_replication_settings()
    context = ReplicationContext.from_settings(table_name, RunMode(mode), storage_uri)

    connector = create_connector(
        target or replication['TARGET'],
        target_url or replication['TARGET_URL'],
        schema=target_schema,
        storage_options=context.storage_options,
    )
    logger.info(f"Replicating {table_name} to {connector!r} in {context.mode.value} mode")

    try:
        orchestrator = ReplicationOrchestrator(
            context,
            snapshot_connector=connector,
            increment_connector=connector,
            stop_event=stop_event,
        )
        return orchestrator.replicate()
    finally:
        connector.close()
