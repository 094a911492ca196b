"""
Rename-plan reconciliation for dbrefactor.

Turns discrete edit events on the schema view (a table or column name
committed, a type committed, a new-column draft confirmed or cancelled)
into the smallest consistent plan. Every function here is a pure
transition: it takes the current plan and returns the next one.

Per-key lifecycle of a column edit:
- absent: the column matches the baseline
- partial: only the name or only the type differs
- full: both name and type differ

Reverting one field of a full entry demotes it to partial. Reverting the
name of a partial entry removes it. Reverting the type of a partial entry
clears the type but keeps the entry.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from .drafts import DraftBook, DraftKey
from .operations import AddColumn, ColumnEdit, OperationScope, TableRename
from .plan import Plan
from ..exceptions import ValidationError


logger = logging.getLogger(__name__)


def rename_table(plan: Plan, original_name: str, proposed_name: str) -> Plan:
    """
    Record the name committed for a table.

    Args:
        plan: Current plan
        original_name: Table name in the baseline schema
        proposed_name: Name the user left in the field

    Returns:
        Plan with at most one table rename for original_name
    """
    key = (OperationScope.TABLE.value, original_name, None)

    if proposed_name == original_name:
        if plan.find(key) is not None:
            logger.debug(f"Table {original_name} reverted, dropping rename")
        return plan.without(key)

    if not proposed_name.strip():
        return plan

    existing = plan.get(key)
    if existing is not None:
        return plan.replace(key, replace(existing, table_to=proposed_name))

    logger.debug(f"Planning table rename {original_name} -> {proposed_name}")
    return plan.with_operation(
        TableRename(table_from=original_name, table_to=proposed_name)
    )


def rename_column(
    plan: Plan, table: str, original_name: str, proposed_name: str
) -> Plan:
    """
    Record the name committed for a column.

    A pending type change on the same column is preserved. Reverting the
    name keeps the entry as a type-only change when a type is pending,
    and removes it otherwise.
    """
    key = (OperationScope.COLUMN.value, table, original_name)
    existing = plan.get(key)

    if proposed_name == original_name:
        if existing is None:
            return plan
        if existing.changes_type:
            logger.debug(
                f"Column {table}.{original_name} name reverted, keeping type change"
            )
            return plan.replace(key, replace(existing, column_to=original_name))
        logger.debug(f"Column {table}.{original_name} reverted, dropping edit")
        return plan.without(key)

    if not proposed_name.strip():
        return plan

    if existing is not None:
        return plan.replace(key, replace(existing, column_to=proposed_name))

    logger.debug(f"Planning column rename {table}.{original_name} -> {proposed_name}")
    return plan.with_operation(
        ColumnEdit(table_from=table, column_from=original_name, column_to=proposed_name)
    )


def change_column_type(
    plan: Plan,
    table: str,
    column: str,
    proposed_type: str,
    baseline_type: Optional[str],
) -> Plan:
    """
    Record the type committed for a column.

    A pending rename on the same column is preserved. Going back to the
    baseline type (or leaving the field blank) clears the type change but
    does not remove the entry; only a name revert removes it.
    """
    key = (OperationScope.COLUMN.value, table, column)
    is_changing = (
        bool(proposed_type and proposed_type.strip()) and proposed_type != baseline_type
    )
    existing = plan.get(key)

    if existing is not None:
        if is_changing:
            return plan.replace(key, replace(existing, new_type=proposed_type))
        if existing.new_type is None:
            return plan
        return plan.replace(key, replace(existing, new_type=None))

    if not is_changing:
        return plan

    logger.debug(f"Planning type change {table}.{column} -> {proposed_type}")
    return plan.with_operation(
        ColumnEdit(
            table_from=table,
            column_from=column,
            column_to=column,
            new_type=proposed_type,
        )
    )


def confirm_add_column(
    plan: Plan, drafts: DraftBook, key: DraftKey
) -> Tuple[Plan, DraftBook]:
    """
    Promote a complete draft to an add-column operation.

    Incomplete or unknown drafts leave both plan and drafts untouched.
    Name and type are planned exactly as typed.
    Name clashes with existing or already-added columns are not checked.
    """
    draft = drafts.get(key)
    if draft is None or not draft.is_complete:
        return plan, drafts

    operation = AddColumn(
        table_from=key.table,
        column_to=draft.name,
        new_type=draft.type,
    )
    logger.debug(f"Planning {operation.describe()}")
    return plan.with_operation(operation), drafts.discard(key)


def cancel_add_column(
    plan: Plan, drafts: DraftBook, key: DraftKey
) -> Tuple[Plan, DraftBook]:
    """Throw a draft away. The plan is returned unchanged."""
    return plan, drafts.discard(key)


@dataclass(frozen=True)
class EditState:
    """Plan plus the drafts still being typed in."""

    plan: Plan = field(default_factory=Plan)
    drafts: DraftBook = field(default_factory=DraftBook)


@dataclass(frozen=True)
class RenameTable:
    table: str
    to: str


@dataclass(frozen=True)
class RenameColumn:
    table: str
    column: str
    to: str


@dataclass(frozen=True)
class ChangeColumnType:
    table: str
    column: str
    type: str
    baseline_type: Optional[str] = None


@dataclass(frozen=True)
class OpenDraft:
    table: str


@dataclass(frozen=True)
class UpdateDraft:
    key: DraftKey
    name: Optional[str] = None
    type: Optional[str] = None


@dataclass(frozen=True)
class ConfirmAddColumn:
    key: DraftKey


@dataclass(frozen=True)
class CancelAddColumn:
    key: DraftKey


@dataclass(frozen=True)
class AddColumnEntry:
    """Open, fill and confirm a draft in one step."""

    table: str
    name: str
    type: str


EditEvent = Union[
    RenameTable,
    RenameColumn,
    ChangeColumnType,
    OpenDraft,
    UpdateDraft,
    ConfirmAddColumn,
    CancelAddColumn,
    AddColumnEntry,
]


def apply_event(state: EditState, event: EditEvent) -> EditState:
    """Apply a single edit event and return the next state."""
    plan, drafts = state.plan, state.drafts

    if isinstance(event, RenameTable):
        plan = rename_table(plan, event.table, event.to)
    elif isinstance(event, RenameColumn):
        plan = rename_column(plan, event.table, event.column, event.to)
    elif isinstance(event, ChangeColumnType):
        plan = change_column_type(
            plan, event.table, event.column, event.type, event.baseline_type
        )
    elif isinstance(event, OpenDraft):
        drafts, _ = drafts.open(event.table)
    elif isinstance(event, UpdateDraft):
        drafts = drafts.update(event.key, name=event.name, type=event.type)
    elif isinstance(event, ConfirmAddColumn):
        plan, drafts = confirm_add_column(plan, drafts, event.key)
    elif isinstance(event, CancelAddColumn):
        plan, drafts = cancel_add_column(plan, drafts, event.key)
    elif isinstance(event, AddColumnEntry):
        drafts, key = drafts.open(event.table)
        drafts = drafts.update(key, name=event.name, type=event.type)
        plan, drafts = confirm_add_column(plan, drafts, key)
        drafts = drafts.discard(key)
    else:
        raise TypeError(f"Unsupported edit event: {type(event).__name__}")

    return EditState(plan=plan, drafts=drafts)


def replay(events: Iterable[EditEvent], state: Optional[EditState] = None) -> EditState:
    """Apply events in order, starting from an empty state by default."""
    state = state or EditState()
    for event in events:
        state = apply_event(state, event)
    return state


def _field(data: Dict[str, Any], name: str, kind: str) -> Any:
    if name not in data or data[name] is None:
        raise ValidationError(f"Event '{kind}' is missing '{name}'", {"event": data})
    return data[name]


def _draft_key(data: Dict[str, Any], kind: str) -> DraftKey:
    index = _field(data, "draft", kind)
    try:
        return DraftKey(table=_field(data, "table", kind), index=int(index))
    except (TypeError, ValueError):
        raise ValidationError(f"Event '{kind}' has invalid draft index '{index}'")


def event_from_dict(data: Dict[str, Any]) -> EditEvent:
    """
    Parse an edit event from a dict such as one loaded from YAML.

    Supported "event" values: rename-table, rename-column,
    change-column-type, open-draft, update-draft, confirm-add-column,
    cancel-add-column, add-column.

    Raises:
        ValidationError: If the event kind is unknown or fields are missing
    """
    if not isinstance(data, dict):
        raise ValidationError(f"Event must be a mapping, got {type(data).__name__}")

    kind = data.get("event")

    if kind == "rename-table":
        return RenameTable(table=_field(data, "table", kind), to=str(_field(data, "to", kind)))
    elif kind == "rename-column":
        return RenameColumn(
            table=_field(data, "table", kind),
            column=_field(data, "column", kind),
            to=str(_field(data, "to", kind)),
        )
    elif kind == "change-column-type":
        return ChangeColumnType(
            table=_field(data, "table", kind),
            column=_field(data, "column", kind),
            type=str(_field(data, "type", kind)),
            baseline_type=data.get("baseline_type"),
        )
    elif kind == "open-draft":
        return OpenDraft(table=_field(data, "table", kind))
    elif kind == "update-draft":
        return UpdateDraft(
            key=_draft_key(data, kind),
            name=data.get("name"),
            type=data.get("type"),
        )
    elif kind == "confirm-add-column":
        return ConfirmAddColumn(key=_draft_key(data, kind))
    elif kind == "cancel-add-column":
        return CancelAddColumn(key=_draft_key(data, kind))
    elif kind == "add-column":
        return AddColumnEntry(
            table=_field(data, "table", kind),
            name=str(_field(data, "name", kind)),
            type=str(_field(data, "type", kind)),
        )
    raise ValidationError(f"Unknown edit event '{kind}'")
