"""
Warehouse connectors.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import create_engine

from .base_connector import BaseWarehouseConnector
from .bigquery import BigQueryConnector
from .databricks import DatabricksConnector
from .snowflake import SnowflakeConnector

logger = logging.getLogger(__name__)

CONNECTORS = {
    'databricks': DatabricksConnector,
    'bigquery': BigQueryConnector,
    'snowflake': SnowflakeConnector,
}


def get_connector(target: str, engine, schema: Optional[str] = None, **kwargs) -> BaseWarehouseConnector:
    """Instantiate the connector registered under ``target`` around an engine."""
    try:
        connector_class = CONNECTORS[target.lower()]
    except KeyError:
        raise ValueError(f"Unsupported warehouse target: {target}") from None
    return connector_class(engine, schema=schema, **kwargs)


def create_connector(
    target: str,
    target_url: str,
    schema: Optional[str] = None,
    storage_options: Optional[Dict[str, Any]] = None,
) -> BaseWarehouseConnector:
    """
    Create a connector with its own engine from a SQLAlchemy URL.

    The warehouse's SQLAlchemy dialect package must be installed.
    """
    if not target_url:
        raise ValueError(f"No SQLAlchemy URL configured for target {target}")
    engine = create_engine(target_url, pool_pre_ping=True)
    logger.info(f"Created {target} engine for {engine.url.host}")
    return get_connector(target, engine, schema=schema, storage_options=storage_options)


__all__ = [
    'BaseWarehouseConnector',
    'BigQueryConnector',
    'DatabricksConnector',
    'SnowflakeConnector',
    'CONNECTORS',
    'get_connector',
    'create_connector',
]
