"""
Logging utility functions for structured logging
"""
import logging
import time
from contextlib import contextmanager

# Get loggers for different parts of the application
replication_logger = logging.getLogger('replicator.replication')
ddl_logger = logging.getLogger('replicator.ddl')


def log_with_context(logger, level, message, **context):
    """
    Log a message with additional context fields

    Args:
        logger: The logger instance to use
        level: Log level (INFO, ERROR, WARNING, etc.)
        message: The log message
        **context: Additional context fields (table_name, stage, etc.)

    Example:
        log_with_context(
            replication_logger,
            'INFO',
            'Changefeed created',
            changefeed_id='replicate-test-orders',
            start_ts=443852055297916932
        )
    """
    extra = {k: v for k, v in context.items() if v is not None}
    logger.log(getattr(logging, level.upper()), message, extra=extra)


@contextmanager
def log_operation(logger, operation_name, **context):
    """
    Context manager to log the start, end, and duration of an operation

    Example:
        with log_operation(replication_logger, 'snapshot_load', table_name='test.orders'):
            connector.load_snapshot(table_def, snapshot_uri, storage)
    """
    start_time = time.time()

    log_with_context(
        logger,
        'INFO',
        f'{operation_name} started',
        operation=operation_name,
        **context
    )

    try:
        yield

        duration = time.time() - start_time
        log_with_context(
            logger,
            'INFO',
            f'{operation_name} completed successfully',
            operation=operation_name,
            duration=duration,
            status='success',
            **context
        )

    except Exception as e:
        duration = time.time() - start_time
        log_with_context(
            logger,
            'ERROR',
            f'{operation_name} failed: {str(e)}',
            operation=operation_name,
            duration=duration,
            status='failed',
            error_type=type(e).__name__,
            error_message=str(e),
            **context
        )
        raise


# ====================================
# REPLICATION-SPECIFIC LOGGING FUNCTIONS
# ====================================

def log_stage_entered(table_name, stage, mode):
    """Log the stage a replication run resumes from"""
    log_with_context(
        replication_logger,
        'INFO',
        f'Start replicate from stage {stage}',
        table_name=table_name,
        stage=stage,
        mode=mode,
        operation='stage_check'
    )


def log_changefeed_created(changefeed_id, sink_uri, start_ts=None, duration=None):
    """Log change-capture job creation"""
    log_with_context(
        replication_logger,
        'INFO',
        'Changefeed created',
        changefeed_id=changefeed_id,
        sink_uri=sink_uri,
        start_ts=start_ts,
        operation='changefeed_create',
        duration=duration
    )


def log_ddl_executed(table_name, statement, dialect):
    """Log a DDL statement applied to the warehouse"""
    log_with_context(
        ddl_logger,
        'INFO',
        f"Executed DDL: {statement[:100]}{'...' if len(statement) > 100 else ''}",
        table_name=table_name,
        dialect=dialect,
        operation='ddl_execute'
    )


def log_snapshot_progress(table_name, dumped_rows, total_rows):
    """Log snapshot dump progress"""
    log_with_context(
        replication_logger,
        'INFO',
        'Snapshot dump progress',
        table_name=table_name,
        dumped_rows=dumped_rows,
        estimated_total_rows=total_rows,
        operation='snapshot_dump'
    )
