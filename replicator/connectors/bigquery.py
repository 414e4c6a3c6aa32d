"""
BigQuery connector.

Loads CSV files with LOAD DATA; columns are matched by position. Files
outside Google Cloud Storage are read through a BigQuery connection.
"""

from typing import Any, Dict, Optional, Sequence

from sqlalchemy.engine import Engine

from replicator.utils.ddl.dialects.bigquery import BigQueryDialect
from replicator.utils.ddl.table_definition import Column
from .base_connector import NULL_MARKER_SQL, BaseWarehouseConnector


class BigQueryConnector(BaseWarehouseConnector):
    dialect_class = BigQueryDialect

    def __init__(
        self,
        engine: Engine,
        schema: Optional[str] = None,
        storage_options: Optional[Dict[str, Any]] = None,
        connection: Optional[str] = None,
    ):
        """
        Args:
            connection: BigQuery connection ("project.region.name") used to
                read files from external object storage
        """
        super().__init__(engine, schema, storage_options)
        self.connection = connection

    def generate_copy_into(self, table_name: str, columns: Sequence[Column], file_uri: str) -> str:
        sql = (
            f"LOAD DATA INTO {table_name}\n"
            f"FROM FILES (\n"
            f"    format = 'CSV',\n"
            f"    uris = ['{file_uri}'],\n"
            f"    skip_leading_rows = 0,\n"
            f"    null_marker = {NULL_MARKER_SQL}\n"
            f")"
        )
        if self.connection:
            sql += f"\nWITH CONNECTION {self.dialect.quote_identifier(self.connection)}"
        return sql
