"""
Databricks connector.

Loads headerless CSV files with COPY INTO, projecting the positional
``_c<n>`` columns onto the table's columns.
"""

from typing import Sequence

from replicator.utils.ddl.dialects.databricks import DatabricksDialect
from replicator.utils.ddl.table_definition import Column
from .base_connector import NULL_MARKER_SQL, BaseWarehouseConnector


class DatabricksConnector(BaseWarehouseConnector):
    dialect_class = DatabricksDialect

    def _credential_clause(self) -> str:
        key = self.storage_options.get('key')
        if not key:
            return ''
        creds = [
            f"AWS_ACCESS_KEY = '{key}'",
            f"AWS_SECRET_KEY = '{self.storage_options.get('secret', '')}'",
        ]
        if self.storage_options.get('token'):
            creds.append(f"AWS_SESSION_TOKEN = '{self.storage_options['token']}'")
        return f" WITH (CREDENTIAL ({', '.join(creds)}))"

    def generate_copy_into(self, table_name: str, columns: Sequence[Column], file_uri: str) -> str:
        q = self.dialect.quote_identifier
        projection = ',\n        '.join(
            f"CAST(_c{i} AS {self.dialect.map_type(col)}) AS {q(col.name)}"
            for i, col in enumerate(columns)
        )
        return (
            f"COPY INTO {table_name}\n"
            f"FROM (\n"
            f"    SELECT\n"
            f"        {projection}\n"
            f"    FROM '{file_uri}'{self._credential_clause()}\n"
            f")\n"
            f"FILEFORMAT = CSV\n"
            f"FORMAT_OPTIONS ('header' = 'false', 'escape' = '\"', 'nullValue' = {NULL_MARKER_SQL})\n"
            f"COPY_OPTIONS ('force' = 'true')"
        )
