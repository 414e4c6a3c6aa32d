"""
Replication stages and their durable markers.

o => create changefeed => dump snapshot => load snapshot => incremental load
^                     ^                ^               ^
+------- init --------+ changefeed     + snapshot      + snapshot loaded --
                        created          dumped

The stage is never stored: it is the furthest marker found in the workspace.
"""

import logging
from enum import Enum

from replicator.utils.storage import ReplicationStorage

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    INIT = 'init'
    CHANGEFEED_CREATED = 'changefeed-created'
    SNAPSHOT_DUMPED = 'snapshot-dumped'
    SNAPSHOT_LOADED = 'snapshot-loaded'


STAGE_ORDER = [
    Stage.INIT,
    Stage.CHANGEFEED_CREATED,
    Stage.SNAPSHOT_DUMPED,
    Stage.SNAPSHOT_LOADED,
]

SNAPSHOT_DIR = 'snapshot'
INCREMENT_DIR = 'increment'

# Written by the change-capture service, the dump tool, and the snapshot loader
INCREMENT_METADATA_MARKER = f'{INCREMENT_DIR}/metadata'
SNAPSHOT_METADATA_MARKER = f'{SNAPSHOT_DIR}/metadata'
SNAPSHOT_LOADINFO_MARKER = f'{SNAPSHOT_DIR}/loadinfo'

# (marker, stage reached once the marker exists)
STAGE_MARKERS = [
    (INCREMENT_METADATA_MARKER, Stage.CHANGEFEED_CREATED),
    (SNAPSHOT_METADATA_MARKER, Stage.SNAPSHOT_DUMPED),
    (SNAPSHOT_LOADINFO_MARKER, Stage.SNAPSHOT_LOADED),
]


def check_stage(storage: ReplicationStorage) -> Stage:
    """
    Derive the current stage from the markers in the workspace.

    Markers are probed in order; the first absent one ends the search.

    Raises:
        StorageCheckError: if a probe fails for a reason other than "not found"
    """
    stage = Stage.INIT
    for marker, reached in STAGE_MARKERS:
        if not storage.exists(marker):
            logger.debug(f"Marker {storage.uri(marker)} not found")
            break
        stage = reached

    logger.info(f"Workspace {storage.root_uri} is at stage {stage.value}")
    return stage


def snapshot_uri(storage: ReplicationStorage) -> str:
    """Location handed to the snapshot dump tool."""
    return storage.uri(SNAPSHOT_DIR)


def increment_uri(storage: ReplicationStorage) -> str:
    """Location handed to the change-capture service."""
    return storage.uri(INCREMENT_DIR)
