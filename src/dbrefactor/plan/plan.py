"""
Plan value for dbrefactor.

A Plan is an immutable, insertion-ordered collection of operations in
which no two operations share a key. Every change returns a new Plan.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .operations import (
    AddColumn,
    ColumnEdit,
    OperationKey,
    RenameOperation,
    TableRename,
    operation_from_payload,
)
from ..exceptions import DuplicateOperationError, PlanValidationError


@dataclass(frozen=True)
class PlanSummary:
    """Counts of pending changes by kind."""

    tables_renamed: int
    columns_renamed: int
    column_types_changed: int
    columns_added: int
    destructive: int
    total: int


@dataclass(frozen=True)
class Plan:
    """The evolving set of pending rename and add-column operations."""

    operations: Tuple[RenameOperation, ...] = ()

    def __post_init__(self):
        seen = set()
        for op in self.operations:
            if op.key in seen:
                raise DuplicateOperationError(op.key)
            seen.add(op.key)

    def __len__(self) -> int:
        return len(self.operations)

    def __iter__(self) -> Iterator[RenameOperation]:
        return iter(self.operations)

    def __getitem__(self, index: int) -> RenameOperation:
        return self.operations[index]

    @property
    def is_empty(self) -> bool:
        return not self.operations

    @property
    def has_destructive_operations(self) -> bool:
        return any(op.is_destructive for op in self.operations)

    def find(self, key: OperationKey) -> Optional[int]:
        """Position of the operation with this key, or None."""
        for i, op in enumerate(self.operations):
            if op.key == key:
                return i
        return None

    def get(self, key: OperationKey) -> Optional[RenameOperation]:
        index = self.find(key)
        return None if index is None else self.operations[index]

    def with_operation(self, operation: RenameOperation) -> "Plan":
        """Append an operation whose key is not planned yet."""
        if self.find(operation.key) is not None:
            raise DuplicateOperationError(operation.key)
        return Plan(self.operations + (operation,))

    def replace(self, key: OperationKey, operation: RenameOperation) -> "Plan":
        """Swap the operation with this key in place."""
        index = self.find(key)
        if index is None:
            raise KeyError(key)
        ops = list(self.operations)
        ops[index] = operation
        return Plan(tuple(ops))

    def without(self, key: OperationKey) -> "Plan":
        """Drop the operation with this key, if any."""
        return Plan(tuple(op for op in self.operations if op.key != key))

    def without_index(self, index: int) -> "Plan":
        if not 0 <= index < len(self.operations):
            raise IndexError(f"Plan has no operation at position {index}")
        return Plan(self.operations[:index] + self.operations[index + 1:])

    def summary(self) -> PlanSummary:
        edits = [op for op in self.operations if isinstance(op, ColumnEdit)]
        return PlanSummary(
            tables_renamed=sum(1 for op in self.operations if isinstance(op, TableRename)),
            columns_renamed=sum(1 for op in edits if op.renames_column),
            column_types_changed=sum(1 for op in edits if op.changes_type),
            columns_added=sum(1 for op in self.operations if isinstance(op, AddColumn)),
            destructive=sum(1 for op in self.operations if op.is_destructive),
            total=len(self.operations),
        )

    def to_payload(self) -> List[Dict[str, Any]]:
        """The plan as the executor's "renames" list."""
        return [op.to_payload() for op in self.operations]

    @classmethod
    def from_payload(cls, payload: Any) -> "Plan":
        """
        Build a plan from a "renames" list, or a dict holding one.

        Raises:
            PlanValidationError: If the payload is not a list
            OperationValidationError: If an entry is invalid
        """
        if isinstance(payload, dict):
            payload = payload.get("renames", [])
        if not isinstance(payload, list):
            raise PlanValidationError("Plan payload must be a list of operations")
        return cls(tuple(operation_from_payload(item) for item in payload))
