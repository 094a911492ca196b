"""
Schema editor state for dbrefactor.

SchemaEditor is the single owner of the working plan. It holds the
baseline schema, the plan and the open drafts, checks that edits refer
to tables and columns the baseline actually has, and delegates the plan
bookkeeping to the reconciliation engine.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .exceptions import SchemaError
from .plan import reconciler
from .plan.drafts import Draft, DraftBook, DraftKey
from .plan.operations import RenameOperation
from .plan.plan import Plan
from .plan.reconciler import EditState
from .schema.baseline import BaselineSchema, Column, Table


logger = logging.getLogger(__name__)


class SchemaEditor:
    """Editable view over a baseline schema."""

    def __init__(self, schema: Optional[BaselineSchema] = None):
        self._schema = schema or BaselineSchema()
        self._state = EditState()
        self.search_term = ""

    @property
    def schema(self) -> BaselineSchema:
        return self._schema

    @property
    def state(self) -> EditState:
        return self._state

    @property
    def plan(self) -> Plan:
        return self._state.plan

    @property
    def drafts(self) -> DraftBook:
        return self._state.drafts

    def load_schema(self, schema: BaselineSchema) -> None:
        """Replace the baseline. Pending plan and drafts are discarded."""
        if self._state.plan or self._state.drafts:
            logger.info(
                f"Schema reloaded, discarding {len(self._state.plan)} planned "
                f"operations and {len(self._state.drafts)} drafts"
            )
        self._schema = schema
        self._state = EditState()

    def _table(self, name: str) -> Table:
        table = self._schema.get_table(name)
        if table is None:
            raise SchemaError(f"Table '{name}' does not exist in the schema")
        return table

    def _column(self, table_name: str, column_name: str) -> Column:
        column = self._table(table_name).get_column(column_name)
        if column is None:
            raise SchemaError(
                f"Column '{column_name}' does not exist in table '{table_name}'"
            )
        return column

    def rename_table(self, original_name: str, proposed_name: str) -> Plan:
        self._table(original_name)
        self._set_plan(
            reconciler.rename_table(self.plan, original_name, proposed_name)
        )
        return self.plan

    def rename_column(self, table: str, original_name: str, proposed_name: str) -> Plan:
        self._column(table, original_name)
        self._set_plan(
            reconciler.rename_column(self.plan, table, original_name, proposed_name)
        )
        return self.plan

    def change_column_type(self, table: str, column: str, proposed_type: str) -> Plan:
        """Commit a type, comparing it with the column's baseline type."""
        baseline = self._column(table, column)
        self._set_plan(
            reconciler.change_column_type(
                self.plan, table, column, proposed_type, baseline.sql_type
            )
        )
        return self.plan

    def open_draft(self, table: str) -> DraftKey:
        self._table(table)
        drafts, key = self.drafts.open(table)
        self._state = EditState(plan=self.plan, drafts=drafts)
        return key

    def update_draft(
        self, key: DraftKey, name: Optional[str] = None, type: Optional[str] = None
    ) -> Optional[Draft]:
        drafts = self.drafts.update(key, name=name, type=type)
        self._state = EditState(plan=self.plan, drafts=drafts)
        return drafts.get(key)

    def confirm_add_column(self, key: DraftKey) -> bool:
        """Promote a draft; returns False if it was incomplete or unknown."""
        before = len(self.plan)
        plan, drafts = reconciler.confirm_add_column(self.plan, self.drafts, key)
        self._state = EditState(plan=plan, drafts=drafts)
        return len(plan) > before

    def cancel_add_column(self, key: DraftKey) -> None:
        plan, drafts = reconciler.cancel_add_column(self.plan, self.drafts, key)
        self._state = EditState(plan=plan, drafts=drafts)

    def add_column(self, table: str, name: str, type: str) -> bool:
        key = self.open_draft(table)
        self.update_draft(key, name=name, type=type)
        added = self.confirm_add_column(key)
        if not added:
            self.cancel_add_column(key)
        return added

    def add_operation(self, operation: RenameOperation) -> Plan:
        """Append a manually entered operation."""
        self._set_plan(self.plan.with_operation(operation))
        return self.plan

    def remove_operation(self, index: int) -> Plan:
        self._set_plan(self.plan.without_index(index))
        return self.plan

    def apply_events(self, events: Iterable[Dict[str, Any]]) -> Plan:
        """
        Replay edit events loaded from a file.

        Table and column references are checked against the baseline, and
        type changes are compared with the baseline type.
        """
        for position, data in enumerate(events):
            event = reconciler.event_from_dict(data)
            if isinstance(event, reconciler.RenameTable):
                self.rename_table(event.table, event.to)
            elif isinstance(event, reconciler.RenameColumn):
                self.rename_column(event.table, event.column, event.to)
            elif isinstance(event, reconciler.ChangeColumnType):
                self.change_column_type(event.table, event.column, event.type)
            elif isinstance(event, reconciler.AddColumnEntry):
                self.add_column(event.table, event.name, event.type)
            else:
                if isinstance(event, reconciler.OpenDraft):
                    self._table(event.table)
                self._state = reconciler.apply_event(self._state, event)
            logger.debug(f"Applied event {position}: {data.get('event')}")
        return self.plan

    def snapshot(self) -> List[Dict[str, Any]]:
        """Plan payload for submission. The plan itself is kept."""
        return self.plan.to_payload()

    def visible_tables(self) -> List[Table]:
        return self._schema.search(self.search_term)

    def pending_for_table(self, table: str) -> Tuple[RenameOperation, ...]:
        return tuple(op for op in self.plan if op.table_from == table)

    def _set_plan(self, plan: Plan) -> None:
        self._state = EditState(plan=plan, drafts=self.drafts)
