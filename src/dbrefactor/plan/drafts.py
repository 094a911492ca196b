"""
Draft new-column entries.

A draft is an in-progress (name, type) pair typed in for a table before it
is confirmed into the plan. Drafts are keyed by their owning table plus an
index that is never reused.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DraftKey:
    """Identity of a draft: owning table and a book-wide index."""

    table: str
    index: int

    def __str__(self) -> str:
        return f"{self.table}#{self.index}"


@dataclass(frozen=True)
class Draft:
    """An uncommitted new column."""

    name: str = ""
    type: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.name.strip()) and bool(self.type.strip())


@dataclass(frozen=True)
class DraftBook:
    """Immutable mapping of open drafts."""

    entries: Dict[DraftKey, Draft] = field(default_factory=dict)
    next_index: int = 0

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, key: DraftKey) -> bool:
        return key in self.entries

    def get(self, key: DraftKey) -> Optional[Draft]:
        return self.entries.get(key)

    def open(self, table: str) -> Tuple["DraftBook", DraftKey]:
        """Start an empty draft for a table."""
        key = DraftKey(table=table, index=self.next_index)
        entries = dict(self.entries)
        entries[key] = Draft()
        return DraftBook(entries=entries, next_index=self.next_index + 1), key

    def update(
        self,
        key: DraftKey,
        name: Optional[str] = None,
        type: Optional[str] = None,
    ) -> "DraftBook":
        """Set the name and/or type of an open draft. Unknown keys are ignored."""
        draft = self.entries.get(key)
        if draft is None:
            logger.debug(f"Ignoring update for unknown draft {key}")
            return self
        changes = {}
        if name is not None:
            changes["name"] = name
        if type is not None:
            changes["type"] = type
        entries = dict(self.entries)
        entries[key] = replace(draft, **changes)
        return DraftBook(entries=entries, next_index=self.next_index)

    def discard(self, key: DraftKey) -> "DraftBook":
        if key not in self.entries:
            return self
        entries = {k: v for k, v in self.entries.items() if k != key}
        return DraftBook(entries=entries, next_index=self.next_index)

    def for_table(self, table: str) -> List[Tuple[DraftKey, Draft]]:
        """Open drafts owned by a table, oldest first."""
        return sorted(
            ((k, d) for k, d in self.entries.items() if k.table == table),
            key=lambda item: item[0].index,
        )
