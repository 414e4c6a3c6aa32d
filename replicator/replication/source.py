"""
Source database queries: consistency point and table definition.
"""

import logging
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from replicator.config import SourceConfig
from replicator.exceptions import PositionAcquisitionError, ReplicationError
from replicator.utils.ddl.table_definition import Column, TableDefinition

logger = logging.getLogger(__name__)


def get_source_engine(source: SourceConfig, pool_size: int = 1) -> Engine:
    """
    Create SQLAlchemy engine for the source database

    Args:
        source: Source connection details
        pool_size: Connection pool size (default: 1)
    """
    engine = create_engine(
        source.sqlalchemy_url,
        pool_size=pool_size,
        pool_pre_ping=True,  # Test connections before using
        pool_recycle=3600,   # Recycle connections after 1 hour
        echo=False
    )
    logger.info(f"Created source engine for {source.host}:{source.port}")
    return engine


def get_current_tso(engine: Engine) -> int:
    """
    Read the current timestamp oracle position from the source.

    The ``Position`` column of SHOW MASTER STATUS is the current TSO.

    Raises:
        PositionAcquisitionError: if the position cannot be read
    """
    try:
        with engine.connect() as conn:
            row = conn.execute(text("SHOW MASTER STATUS")).mappings().first()
    except Exception as e:
        raise PositionAcquisitionError(f"Failed to get current TSO: {str(e)}") from e

    if not row or row.get('Position') in (None, ''):
        raise PositionAcquisitionError("Failed to get current TSO: SHOW MASTER STATUS returned no position")

    tso = int(row['Position'])
    logger.info(f"Current TSO: {tso}")
    return tso


COLUMNS_QUERY = text("""
    SELECT COLUMN_NAME, DATA_TYPE, COLUMN_TYPE, IS_NULLABLE, COLUMN_KEY,
           CHARACTER_MAXIMUM_LENGTH, NUMERIC_PRECISION, NUMERIC_SCALE, COLUMN_DEFAULT
    FROM information_schema.columns
    WHERE TABLE_SCHEMA = :schema AND TABLE_NAME = :table
    ORDER BY ORDINAL_POSITION
""")


def _row_to_column(row) -> Column:
    type_name = row['DATA_TYPE'].upper()
    if 'unsigned' in (row['COLUMN_TYPE'] or '').lower():
        type_name = f"{type_name} UNSIGNED"

    precision: Optional[int] = row['CHARACTER_MAXIMUM_LENGTH'] or row['NUMERIC_PRECISION']
    scale = row['NUMERIC_SCALE']

    return Column(
        name=row['COLUMN_NAME'],
        type=type_name,
        nullable=row['IS_NULLABLE'] == 'YES',
        is_pk=row['COLUMN_KEY'] == 'PRI',
        precision=int(precision) if precision is not None else None,
        scale=int(scale) if scale is not None else None,
        default=row['COLUMN_DEFAULT'],
    )


def get_table_definition(engine: Engine, schema: str, table: str) -> TableDefinition:
    """
    Read the current definition of a source table from information_schema.

    Raises:
        ReplicationError: if the table does not exist or cannot be read
    """
    try:
        with engine.connect() as conn:
            rows = conn.execute(COLUMNS_QUERY, {'schema': schema, 'table': table}).mappings().all()
    except Exception as e:
        raise ReplicationError(f"Failed to read columns of {schema}.{table}: {str(e)}") from e

    if not rows:
        raise ReplicationError(f"Table {schema}.{table} not found in source database")

    columns = tuple(_row_to_column(row) for row in rows)
    logger.info(f"Read {len(columns)} columns of {schema}.{table} from source")
    return TableDefinition(schema=schema, table=table, columns=columns)
