"""
Column diff between two captured schema versions.

Pure functions: two frozen column lists in, an ordered list of column
operations out.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from replicator.exceptions import UnsupportedDDLError
from .table_definition import ChangeType, Column, TableDefinition

logger = logging.getLogger(__name__)


class ColumnAction(str, Enum):
    ADD = 'ADD'
    DROP = 'DROP'
    MODIFY = 'MODIFY'
    RENAME = 'RENAME'
    UNCHANGED = 'UNCHANGED'


@dataclass(frozen=True)
class ColumnDiffItem:
    action: ColumnAction
    before: Optional[Column] = None
    after: Optional[Column] = None

    def __str__(self) -> str:
        before = self.before.name if self.before else '-'
        after = self.after.name if self.after else '-'
        return f"{self.action.value}({before} -> {after})"


@dataclass(frozen=True)
class TableDiff:
    """
    Result of diffing a schema version against the previous columns.

    Exactly one of ``table_action`` (truncate / drop-table / drop-schema)
    or ``columns`` is meaningful.
    """
    table_def: TableDefinition
    table_action: Optional[ChangeType] = None
    columns: Tuple[ColumnDiffItem, ...] = ()

    @property
    def changes(self) -> List[ColumnDiffItem]:
        return [item for item in self.columns if item.action != ColumnAction.UNCHANGED]


TABLE_LEVEL_ACTIONS = (
    ChangeType.TRUNCATE_TABLE,
    ChangeType.DROP_TABLE,
    ChangeType.DROP_SCHEMA,
)

REJECTED_CHANGES = {
    ChangeType.CREATE_TABLE: "Received create table ddl, which should not happen",
    ChangeType.CREATE_SCHEMA: "Received create schema ddl, which should not happen",
    ChangeType.RENAME_TABLE: (
        "Received rename table ddl, new change data can not be captured any more. "
        "If you want to rename the table, start a new replication for the new table"
    ),
}


def _match_by_id(prev: Sequence[Column], cur: Sequence[Column]) -> bool:
    """Column ids are usable only when every column on both sides carries one."""
    return bool(prev) and bool(cur) and all(
        c.column_id is not None for c in list(prev) + list(cur)
    )


def get_column_diff(prev: Sequence[Column], cur: Sequence[Column]) -> List[ColumnDiffItem]:
    """
    Diff two column lists.

    Columns are matched by upstream column id when both versions carry ids,
    so a changed name under the same id is a RENAME. Without ids columns are
    matched by name and a rename shows up as DROP + ADD.

    Output order: drops in ``prev`` order, then one item per ``cur`` column in
    ``cur`` order.
    """
    if _match_by_id(prev, cur):
        def key(c):
            return c.column_id
    else:
        def key(c):
            return c.name

    prev_by_key: Dict = {key(c): c for c in prev}
    cur_keys = {key(c) for c in cur}

    diff = []
    for col in prev:
        if key(col) not in cur_keys:
            diff.append(ColumnDiffItem(ColumnAction.DROP, before=col))

    for col in cur:
        prev_col = prev_by_key.get(key(col))
        if prev_col is None:
            diff.append(ColumnDiffItem(ColumnAction.ADD, after=col))
        elif prev_col.name != col.name:
            diff.append(ColumnDiffItem(ColumnAction.RENAME, before=prev_col, after=col))
        elif not prev_col.same_definition(col):
            diff.append(ColumnDiffItem(ColumnAction.MODIFY, before=prev_col, after=col))
        else:
            diff.append(ColumnDiffItem(ColumnAction.UNCHANGED, before=prev_col, after=col))

    return diff


def diff_table_definition(prev: Sequence[Column], cur: TableDefinition) -> TableDiff:
    """
    Diff the previous columns against a new schema version.

    Table-level changes short-circuit column diffing. Create-table,
    create-schema and rename-table need out-of-band handling and raise
    UnsupportedDDLError.
    """
    if cur.change_type in TABLE_LEVEL_ACTIONS:
        return TableDiff(table_def=cur, table_action=cur.change_type)

    if cur.change_type in REJECTED_CHANGES:
        raise UnsupportedDDLError(REJECTED_CHANGES[cur.change_type])

    items = tuple(get_column_diff(prev, cur.columns))
    logger.debug(
        f"Column diff for {cur.full_name}: "
        f"{', '.join(str(i) for i in items if i.action != ColumnAction.UNCHANGED) or 'no changes'}"
    )
    return TableDiff(table_def=cur, columns=items)
