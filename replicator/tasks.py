import logging

from celery import shared_task

from replicator.exceptions import ReplicationError
from replicator.runner import run_replication

logger = logging.getLogger(__name__)


@shared_task(bind=True)
def run_table_replication(self, table_name, mode='full', storage_uri=None, target=None, target_url=None, target_schema=None):
    """
    Task: Replicate one table (snapshot + change log) into the warehouse

    Runs until the replication fails; incremental replay never completes on
    its own. Not retried: a failed run is resumed by starting it again.
    """
    logger.info(f"Starting replication task for {table_name} (mode={mode})")
    try:
        stage = run_replication(
            table_name,
            mode=mode,
            storage_uri=storage_uri,
            target=target,
            target_url=target_url,
            target_schema=target_schema,
        )
    except (ReplicationError, ValueError) as e:
        logger.error(f"Replication of {table_name} failed: {str(e)}", exc_info=True)
        return {'success': False, 'table_name': table_name, 'error': str(e)}

    logger.info(f"Replication task for {table_name} finished")
    return {'success': True, 'table_name': table_name, 'started_from': stage.value}
