"""
Schema snapshot package for dbrefactor.

This package provides:
- Immutable baseline schema model (tables, columns, indexes, foreign keys)
- Parsing from and to the schema source wire format
- Table search used by the schema viewer
"""

from .baseline import BaselineSchema, Table, Column, Index, ForeignKey

__all__ = [
    "BaselineSchema",
    "Table",
    "Column",
    "Index",
    "ForeignKey",
]
