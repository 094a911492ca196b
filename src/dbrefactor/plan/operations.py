"""
Rename operations for dbrefactor.

A plan is made of operations, each one tagged with a scope: table renames,
column edits (rename and/or type change), new columns, and the manually
entered destructive drops. Operations are validated when they are built.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Tuple

from ..exceptions import OperationValidationError


class OperationScope(str, Enum):
    """Scopes an operation can target."""

    TABLE = "table"
    COLUMN = "column"
    ADD_COLUMN = "add-column"
    DROP_TABLE = "drop-table"
    DROP_COLUMN = "drop-column"

    @property
    def is_destructive(self) -> bool:
        return self in (OperationScope.DROP_TABLE, OperationScope.DROP_COLUMN)


OperationKey = Tuple[str, str, Optional[str]]

SQL_BASE_TYPES = ("int", "nvarchar", "decimal", "bit", "date", "datetime2")


def _check_name(scope: OperationScope, field_name: str, value: Any) -> None:
    if not isinstance(value, str) or not value.strip():
        raise OperationValidationError(scope.value, f"{field_name} is required")


@dataclass(frozen=True)
class RenameOperation:
    """Base class for plan operations."""

    scope: ClassVar[OperationScope]

    table_from: str

    def __post_init__(self):
        _check_name(self.scope, "tableFrom", self.table_from)

    @property
    def key(self) -> OperationKey:
        """Identity of the operation inside a plan."""
        return (self.scope.value, self.table_from, None)

    @property
    def is_destructive(self) -> bool:
        return self.scope.is_destructive

    def to_payload(self) -> Dict[str, Any]:
        return {"scope": self.scope.value, "tableFrom": self.table_from}

    def describe(self) -> str:
        return self.table_from


@dataclass(frozen=True)
class TableRename(RenameOperation):
    """Rename a table."""

    scope: ClassVar[OperationScope] = OperationScope.TABLE

    table_to: str

    def __post_init__(self):
        super().__post_init__()
        _check_name(self.scope, "tableTo", self.table_to)

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["tableTo"] = self.table_to
        return payload

    def describe(self) -> str:
        return f"{self.table_from} -> {self.table_to}"


@dataclass(frozen=True)
class ColumnEdit(RenameOperation):
    """
    Rename a column and/or change its type.

    The two changes are independent: column_to differing from column_from
    marks a rename, new_type being set marks a type change.
    """

    scope: ClassVar[OperationScope] = OperationScope.COLUMN

    column_from: str
    column_to: Optional[str] = None
    new_type: Optional[str] = None

    def __post_init__(self):
        super().__post_init__()
        _check_name(self.scope, "columnFrom", self.column_from)
        if self.column_to is not None:
            _check_name(self.scope, "columnTo", self.column_to)
        if self.new_type is not None:
            _check_name(self.scope, "type", self.new_type)

    @property
    def key(self) -> OperationKey:
        return (self.scope.value, self.table_from, self.column_from)

    @property
    def renames_column(self) -> bool:
        return self.column_to is not None and self.column_to != self.column_from

    @property
    def changes_type(self) -> bool:
        return self.new_type is not None

    @property
    def is_noop(self) -> bool:
        return not self.renames_column and not self.changes_type

    @property
    def target_column(self) -> str:
        return self.column_to or self.column_from

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["columnFrom"] = self.column_from
        if self.column_to is not None:
            payload["columnTo"] = self.column_to
        if self.new_type is not None:
            payload["type"] = self.new_type
        return payload

    def describe(self) -> str:
        text = f"{self.table_from}.{self.column_from} -> {self.target_column}"
        if self.new_type:
            text += f" ({self.new_type})"
        return text


@dataclass(frozen=True)
class AddColumn(RenameOperation):
    """Add a column that does not exist in the baseline schema."""

    scope: ClassVar[OperationScope] = OperationScope.ADD_COLUMN

    column_to: str
    new_type: str
    # Synthetic identity; not sent to the executor.
    entry_id: str = field(default_factory=lambda: uuid.uuid4().hex, compare=False)

    def __post_init__(self):
        super().__post_init__()
        _check_name(self.scope, "columnTo", self.column_to)
        _check_name(self.scope, "type", self.new_type)

    @property
    def key(self) -> OperationKey:
        return (self.scope.value, self.table_from, self.entry_id)

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["columnTo"] = self.column_to
        payload["type"] = self.new_type
        return payload

    def describe(self) -> str:
        return f"ADD {self.column_to}({self.new_type}) TO {self.table_from}"


@dataclass(frozen=True)
class DropTable(RenameOperation):
    """Drop a table."""

    scope: ClassVar[OperationScope] = OperationScope.DROP_TABLE


@dataclass(frozen=True)
class DropColumn(RenameOperation):
    """Drop a column."""

    scope: ClassVar[OperationScope] = OperationScope.DROP_COLUMN

    column_from: str

    def __post_init__(self):
        super().__post_init__()
        _check_name(self.scope, "columnFrom", self.column_from)

    @property
    def key(self) -> OperationKey:
        return (self.scope.value, self.table_from, self.column_from)

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["columnFrom"] = self.column_from
        return payload

    def describe(self) -> str:
        return f"{self.table_from}.{self.column_from}"


def operation_from_payload(payload: Dict[str, Any]) -> RenameOperation:
    """
    Build an operation from its wire format.

    Args:
        payload: Dict with a "scope" tag and camelCase fields

    Raises:
        OperationValidationError: If the scope is unknown or fields are missing
    """
    if not isinstance(payload, dict):
        raise OperationValidationError("unknown", "operation must be an object")

    raw_scope = payload.get("scope")
    try:
        scope = OperationScope(raw_scope)
    except ValueError:
        raise OperationValidationError(str(raw_scope), "unknown scope")

    table_from = payload.get("tableFrom")

    if scope == OperationScope.TABLE:
        return TableRename(table_from=table_from, table_to=payload.get("tableTo"))
    elif scope == OperationScope.COLUMN:
        return ColumnEdit(
            table_from=table_from,
            column_from=payload.get("columnFrom"),
            column_to=payload.get("columnTo"),
            new_type=payload.get("type"),
        )
    elif scope == OperationScope.ADD_COLUMN:
        return AddColumn(
            table_from=table_from,
            column_to=payload.get("columnTo"),
            new_type=payload.get("type"),
        )
    elif scope == OperationScope.DROP_TABLE:
        return DropTable(table_from=table_from)
    else:
        return DropColumn(table_from=table_from, column_from=payload.get("columnFrom"))


def build_sql_type(
    base_type: str,
    length: Optional[int] = None,
    precision: Optional[int] = None,
    scale: Optional[int] = None,
) -> str:
    """
    Build a SQL type string for a new column.

    nvarchar takes a length (default 50), decimal a precision and scale
    (default 10, 2); every other base type is used as is.
    """
    if base_type not in SQL_BASE_TYPES:
        raise OperationValidationError(
            OperationScope.ADD_COLUMN.value,
            f"unsupported base type '{base_type}'",
            {"supported": ", ".join(SQL_BASE_TYPES)},
        )
    if base_type == "nvarchar":
        return f"nvarchar({length or 50})"
    if base_type == "decimal":
        return f"decimal({precision or 10}, {scale or 2})"
    return base_type
