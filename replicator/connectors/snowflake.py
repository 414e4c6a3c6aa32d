"""
Snowflake connector.

Loads CSV files with COPY INTO from an external location; columns are
matched by position.
"""

from typing import Sequence

from replicator.utils.ddl.dialects.snowflake import SnowflakeDialect
from replicator.utils.ddl.table_definition import Column
from .base_connector import NULL_MARKER_SQL, BaseWarehouseConnector


class SnowflakeConnector(BaseWarehouseConnector):
    dialect_class = SnowflakeDialect

    def _credentials_clause(self) -> str:
        key = self.storage_options.get('key')
        if not key:
            return ''
        creds = f"AWS_KEY_ID = '{key}' AWS_SECRET_KEY = '{self.storage_options.get('secret', '')}'"
        if self.storage_options.get('token'):
            creds += f" AWS_TOKEN = '{self.storage_options['token']}'"
        return f"\nCREDENTIALS = ({creds})"

    def generate_copy_into(self, table_name: str, columns: Sequence[Column], file_uri: str) -> str:
        return (
            f"COPY INTO {table_name}\n"
            f"FROM '{file_uri}'"
            f"{self._credentials_clause()}\n"
            f"FILE_FORMAT = (TYPE = CSV FIELD_OPTIONALLY_ENCLOSED_BY = '\"' "
            f"NULL_IF = ({NULL_MARKER_SQL}) EMPTY_FIELD_AS_NULL = FALSE)\n"
            f"FORCE = TRUE"
        )
