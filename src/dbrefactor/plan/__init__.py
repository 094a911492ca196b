"""
Rename plan package for dbrefactor.

This package provides:
- Tagged rename operations with wire-format conversion
- The immutable Plan value
- Draft new-column entries
- The reconciliation engine turning edit events into a plan
"""

from .operations import (
    OperationScope,
    RenameOperation,
    TableRename,
    ColumnEdit,
    AddColumn,
    DropTable,
    DropColumn,
    operation_from_payload,
    build_sql_type,
)
from .plan import Plan, PlanSummary
from .drafts import Draft, DraftBook, DraftKey
from .reconciler import (
    EditState,
    apply_event,
    replay,
    event_from_dict,
    rename_table,
    rename_column,
    change_column_type,
    confirm_add_column,
    cancel_add_column,
)

__all__ = [
    "OperationScope",
    "RenameOperation",
    "TableRename",
    "ColumnEdit",
    "AddColumn",
    "DropTable",
    "DropColumn",
    "operation_from_payload",
    "build_sql_type",
    "Plan",
    "PlanSummary",
    "Draft",
    "DraftBook",
    "DraftKey",
    "EditState",
    "apply_event",
    "replay",
    "event_from_dict",
    "rename_table",
    "rename_column",
    "change_column_type",
    "confirm_add_column",
    "cancel_add_column",
]
