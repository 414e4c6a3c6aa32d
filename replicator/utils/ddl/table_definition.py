"""
Captured schema versions.

A TableDefinition is one frozen version of a table's schema, as written by
the change-capture service next to the change-log files (or read from the
source's information_schema for the initial snapshot).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class ChangeType(str, Enum):
    """Table-level change carried by a schema version."""
    NONE = 'none'
    CREATE_SCHEMA = 'create-schema'
    DROP_SCHEMA = 'drop-schema'
    CREATE_TABLE = 'create-table'
    DROP_TABLE = 'drop-table'
    TRUNCATE_TABLE = 'truncate-table'
    RENAME_TABLE = 'rename-table'


# DDL action codes used by the change-capture service's schema files
ACTION_CODE_TO_CHANGE_TYPE = {
    1: ChangeType.CREATE_SCHEMA,
    2: ChangeType.DROP_SCHEMA,
    3: ChangeType.CREATE_TABLE,
    4: ChangeType.DROP_TABLE,
    11: ChangeType.TRUNCATE_TABLE,
    14: ChangeType.RENAME_TABLE,
}


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == 'true'


def _as_int(value: Any) -> Optional[int]:
    if value in (None, ''):
        return None
    return int(value)


@dataclass(frozen=True)
class Column:
    """One column of a captured schema version."""
    name: str
    type: str
    nullable: bool = True
    is_pk: bool = False
    precision: Optional[int] = None
    scale: Optional[int] = None
    default: Optional[str] = None
    column_id: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Column':
        """Build a Column from a schema file entry (ColumnName, ColumnType, ...)."""
        return cls(
            name=data['ColumnName'],
            type=data['ColumnType'].upper(),
            nullable=_as_bool(data.get('ColumnNullable', 'true')),
            is_pk=_as_bool(data.get('ColumnIsPk', 'false')),
            precision=_as_int(data.get('ColumnPrecision')),
            scale=_as_int(data.get('ColumnScale')),
            default=data.get('ColumnDefault'),
            column_id=_as_int(data.get('ColumnId')),
        )

    def same_definition(self, other: 'Column') -> bool:
        """True if type, size and nullability match (name and id ignored)."""
        return (
            self.type == other.type
            and self.nullable == other.nullable
            and self.precision == other.precision
            and self.scale == other.scale
            and self.is_pk == other.is_pk
        )


@dataclass(frozen=True)
class TableDefinition:
    """One captured schema version of a table."""
    schema: str
    table: str
    columns: Tuple[Column, ...] = ()
    change_type: ChangeType = ChangeType.NONE
    version: int = 1
    table_version: int = 0
    query: str = ''

    @property
    def primary_keys(self):
        return [c.name for c in self.columns if c.is_pk]

    @property
    def column_names(self):
        return [c.name for c in self.columns]

    @property
    def full_name(self) -> str:
        return f"{self.schema}.{self.table}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TableDefinition':
        """
        Parse a schema file written by the change-capture service.

        Example:
            {
              "Table": "orders", "Schema": "test", "Version": 1,
              "TableVersion": 443852055297916932, "Query": "ALTER TABLE ...",
              "Type": 5,
              "TableColumns": [{"ColumnId": "1", "ColumnName": "id",
                                "ColumnType": "INT", "ColumnIsPk": "true",
                                "ColumnNullable": "false"}],
              "TableColumnsTotal": 1
            }
        """
        columns = tuple(Column.from_dict(c) for c in data.get('TableColumns') or [])
        return cls(
            schema=data.get('Schema', ''),
            table=data.get('Table', ''),
            columns=columns,
            change_type=ACTION_CODE_TO_CHANGE_TYPE.get(int(data.get('Type') or 0), ChangeType.NONE),
            version=int(data.get('Version') or 1),
            table_version=int(data.get('TableVersion') or 0),
            query=data.get('Query') or '',
        )
