"""
Snapshot load: create the warehouse table and load the dumped files.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy.engine import Engine

from replicator.connectors.base_connector import BaseWarehouseConnector
from replicator.exceptions import ReplicationError, SnapshotLoadError
from replicator.utils.storage import ReplicationStorage
from .source import get_table_definition
from .stage import SNAPSHOT_DIR, SNAPSHOT_LOADINFO_MARKER

logger = logging.getLogger(__name__)


def replicate_snapshot(
    connector: BaseWarehouseConnector,
    storage: ReplicationStorage,
    source_engine: Engine,
    table_name: str,
):
    """
    Load the dumped snapshot of one table into the warehouse.

    The target table is created (or replaced) from the source's current
    definition, so a run interrupted mid-load starts over from an empty
    table. The ``snapshot/loadinfo`` marker is written only after every file
    has loaded.

    Raises:
        SnapshotLoadError: if the table cannot be read, created or loaded
    """
    schema, table = table_name.split('.', 1)
    snapshot_storage = storage.child(SNAPSHOT_DIR)

    try:
        table_def = get_table_definition(source_engine, schema, table)
        connector.setup_table(table_def)
        connector.load_snapshot(table_def, snapshot_storage)
    except SnapshotLoadError:
        raise
    except ReplicationError as e:
        raise SnapshotLoadError(f"Failed to load snapshot of {table_name}: {str(e)}") from e

    storage.write_json(SNAPSHOT_LOADINFO_MARKER, {
        'table': table_name,
        'target': connector.dialect.full_table_name(table_def),
        'columns': table_def.column_names,
        'loaded_at': datetime.now(timezone.utc).isoformat(),
    })
    logger.info(f"Successfully loaded snapshot of {table_name}")
