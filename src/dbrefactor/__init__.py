"""
dbrefactor: Database rename planning and refactoring client.

dbrefactor lets you inspect a database schema, describe table and column
renames, type changes and new columns, and hand the resulting plan to a
remote refactoring service that generates SQL and code fixes.
"""

__version__ = "0.1.0"
__author__ = "dbrefactor Contributors"

from .config import DbRefactorConfig
from .exceptions import DbRefactorError, ConfigurationError, SchemaError, ExecutorError

__all__ = [
    "__version__",
    "DbRefactorConfig",
    "DbRefactorError",
    "ConfigurationError",
    "SchemaError",
    "ExecutorError",
]
