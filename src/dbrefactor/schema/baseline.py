"""
Baseline schema snapshot for dbrefactor.

Holds the tables, columns, indexes and foreign keys reported by the
schema source. A snapshot is never patched; refreshing the schema
produces a new BaselineSchema.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..exceptions import SchemaLoadError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Column:
    """Information about a table column."""

    name: str
    sql_type: str
    is_nullable: bool = True

    def __str__(self) -> str:
        result = f"{self.name} {self.sql_type}"
        if not self.is_nullable:
            result += " NOT NULL"
        return result


@dataclass(frozen=True)
class Index:
    """Information about a table index."""

    columns: Tuple[str, ...]
    is_primary: bool = False
    name: Optional[str] = None


@dataclass(frozen=True)
class ForeignKey:
    """A single-column reference to another table."""

    column_name: str
    references_table: str
    references_column: str
    name: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.column_name} -> {self.references_table}.{self.references_column}"


@dataclass(frozen=True)
class Table:
    """Information about a table."""

    name: str
    schema: str = "dbo"
    columns: Tuple[Column, ...] = ()
    indexes: Tuple[Index, ...] = ()
    foreign_keys: Tuple[ForeignKey, ...] = ()

    @property
    def full_name(self) -> str:
        """Get schema-qualified table name."""
        return f"{self.schema}.{self.name}" if self.schema else self.name

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    @property
    def primary_key_columns(self) -> Tuple[str, ...]:
        """Columns of the primary index, empty if the table has none."""
        for index in self.indexes:
            if index.is_primary:
                return index.columns
        return ()

    def is_primary_key(self, column_name: str) -> bool:
        return column_name in self.primary_key_columns

    def get_column(self, name: str) -> Optional[Column]:
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def has_column(self, name: str) -> bool:
        return self.get_column(name) is not None


@dataclass(frozen=True)
class BaselineSchema:
    """Immutable snapshot of the database structure as last fetched."""

    tables: Tuple[Table, ...] = field(default_factory=tuple)

    def __post_init__(self):
        seen = set()
        for table in self.tables:
            if table.name in seen:
                raise SchemaLoadError(f"Duplicate table name '{table.name}'")
            seen.add(table.name)
            names = table.column_names
            if len(names) != len(set(names)):
                raise SchemaLoadError(f"Duplicate column name in table '{table.name}'")

    def __len__(self) -> int:
        return len(self.tables)

    @property
    def table_names(self) -> List[str]:
        return [t.name for t in self.tables]

    def get_table(self, name: str) -> Optional[Table]:
        """Get a table by name."""
        for table in self.tables:
            if table.name == name:
                return table
        return None

    def has_table(self, name: str) -> bool:
        return self.get_table(name) is not None

    def search(self, term: Optional[str]) -> List[Table]:
        """
        Filter tables by a case-insensitive substring of their name.

        An empty term returns every table. Order is preserved.
        """
        if not term:
            return list(self.tables)
        needle = term.lower()
        return [t for t in self.tables if needle in t.name.lower()]

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]]) -> "BaselineSchema":
        """
        Build a snapshot from the schema source response.

        Args:
            payload: Dict with a "tables" list in the camelCase wire format

        Raises:
            SchemaLoadError: If the payload is malformed
        """
        if payload is None:
            return cls()
        if not isinstance(payload, dict):
            raise SchemaLoadError(
                f"Schema payload must be an object, got {type(payload).__name__}"
            )

        raw_tables = payload.get("tables") or []
        if not isinstance(raw_tables, list):
            raise SchemaLoadError("Schema 'tables' must be a list")

        tables = tuple(_parse_table(raw, i) for i, raw in enumerate(raw_tables))
        schema = cls(tables=tables)
        logger.debug(f"Loaded baseline schema with {len(schema)} tables")
        return schema

    def to_payload(self) -> Dict[str, Any]:
        """Convert back to the camelCase wire format."""
        return {
            "tables": [
                {
                    "schema": t.schema,
                    "name": t.name,
                    "columns": [
                        {"name": c.name, "sqlType": c.sql_type, "isNullable": c.is_nullable}
                        for c in t.columns
                    ],
                    "indexes": [
                        _drop_none({
                            "name": i.name,
                            "isPrimary": i.is_primary,
                            "columns": list(i.columns),
                        })
                        for i in t.indexes
                    ],
                    "foreignKeys": [
                        _drop_none({
                            "name": fk.name,
                            "columnName": fk.column_name,
                            "referencesTable": fk.references_table,
                            "referencesColumn": fk.references_column,
                        })
                        for fk in t.foreign_keys
                    ],
                }
                for t in self.tables
            ]
        }


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


def _require_str(raw: Dict[str, Any], keys: Tuple[str, ...], where: str) -> str:
    for key in keys:
        value = raw.get(key)
        if isinstance(value, str) and value:
            return value
    raise SchemaLoadError(f"Missing '{keys[0]}' in {where}")


def _parse_table(raw: Any, position: int) -> Table:
    if not isinstance(raw, dict):
        raise SchemaLoadError(f"Table entry {position} is not an object")

    name = _require_str(raw, ("name", "tableName"), f"table entry {position}")
    where = f"table '{name}'"

    try:
        columns = tuple(
            Column(
                name=_require_str(col, ("name",), f"column of {where}"),
                sql_type=_require_str(col, ("sqlType", "type"), f"column of {where}"),
                is_nullable=bool(col.get("isNullable", col.get("nullable", True))),
            )
            for col in raw.get("columns") or []
        )
        indexes = tuple(
            Index(
                columns=tuple(idx.get("columns") or ()),
                is_primary=bool(idx.get("isPrimary", False)),
                name=idx.get("name"),
            )
            for idx in raw.get("indexes") or []
        )
        foreign_keys = tuple(
            ForeignKey(
                column_name=_require_str(fk, ("columnName",), f"foreign key of {where}"),
                references_table=_require_str(fk, ("referencesTable",), f"foreign key of {where}"),
                references_column=_require_str(fk, ("referencesColumn",), f"foreign key of {where}"),
                name=fk.get("name"),
            )
            for fk in raw.get("foreignKeys") or []
        )
    except AttributeError as e:
        raise SchemaLoadError(f"Malformed entry in {where}", cause=e)

    return Table(
        name=name,
        schema=raw.get("schema") or raw.get("schemaName") or "dbo",
        columns=columns,
        indexes=indexes,
        foreign_keys=foreign_keys,
    )
