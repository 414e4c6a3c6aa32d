"""
Changefeed Configuration Templates
"""

import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import urlencode

logger = logging.getLogger(__name__)


def generate_changefeed_id(table_name: str) -> str:
    """
    Generate a deterministic changefeed ID for a source table.

    The same table always maps to the same ID, so a resumed run finds the
    changefeed an interrupted run created instead of creating a second one.
    IDs may only hold alphanumerics separated by single dashes.

    Example: "test.Orders_2024" -> "replicate-test-orders-2024"
    """
    slug = re.sub(r'[^a-zA-Z0-9]+', '-', table_name).strip('-').lower()
    return f"replicate-{slug}"


def build_sink_uri(
    increment_uri: str,
    flush_interval: int,
    file_size: int,
    storage_options: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Build the storage sink URI the changefeed writes CSV files to.

    Args:
        increment_uri: Workspace location for the change log
        flush_interval: Flush interval in seconds
        file_size: File size threshold in bytes
        storage_options: Object storage credentials ('key', 'secret', 'token')
    """
    params = {
        'protocol': 'csv',
        'flush-interval': f"{flush_interval}s",
        'file-size': file_size,
    }
    storage_options = storage_options or {}
    if increment_uri.startswith('s3://') and storage_options.get('key'):
        params['access-key'] = storage_options['key']
        params['secret-access-key'] = storage_options.get('secret', '')
        if storage_options.get('token'):
            params['session-token'] = storage_options['token']

    return f"{increment_uri.rstrip('/')}/?{urlencode(params)}"


def build_changefeed_config(
    table_name: str,
    sink_uri: str,
    start_ts: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Build the request body for creating a changefeed of one table.

    Args:
        table_name: Fully qualified source table, "<schema>.<table>"
        sink_uri: Storage sink URI (see build_sink_uri)
        start_ts: Consistency point to start from; None lets the service choose

    Returns:
        Dict: Changefeed creation request body
    """
    config = {
        'changefeed_id': generate_changefeed_id(table_name),
        'sink_uri': sink_uri,
        'replica_config': {
            'filter': {
                'rules': [table_name],
            },
            'sink': {
                'csv': {
                    'delimiter': ',',
                    'quote': '"',
                    'null': '\\N',
                    'include_commit_ts': True,
                },
            },
        },
    }
    if start_ts:
        config['start_ts'] = start_ts

    logger.debug(f"Built changefeed config for {table_name}: {config['changefeed_id']}")
    return config
