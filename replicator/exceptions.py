"""
Exceptions raised by the replication core.

Every failure aborts the current run; the original cause is kept on
``__cause__`` so the management command can report the whole chain.
"""


class ReplicationError(Exception):
    """Base exception for replication operations"""
    pass


class StorageCheckError(ReplicationError):
    """Raised when a marker probe could not complete (distinct from 'not found')"""
    pass


class PositionAcquisitionError(ReplicationError):
    """Raised when the current consistency point cannot be read from the source"""
    pass


class CaptureSetupError(ReplicationError):
    """Raised when the change-capture job cannot be set up"""
    pass


class SnapshotDumpError(ReplicationError):
    """Raised when the snapshot dump tool fails"""
    pass


class LoadError(ReplicationError):
    """Raised when the warehouse rejects a load"""
    pass


class SnapshotLoadError(LoadError):
    pass


class IncrementLoadError(LoadError):
    pass


class UnsupportedDDLError(ReplicationError):
    """Raised when a schema change has no safe rendering for the target"""
    pass


class UnsupportedModifyError(UnsupportedDDLError):
    """Raised when the target cannot alter a column type or nullability"""
    pass


class UnsupportedSchemaChangeError(ReplicationError):
    """Raised for schema changes the replicator does not handle (primary keys)"""
    pass


class UnsupportedTypeError(ReplicationError):
    """Raised when a source column type has no mapping for the target"""
    pass
