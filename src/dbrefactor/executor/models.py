"""
Response models for the plan executor API.
"""

import difflib
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass
class SessionInfo:
    """A remote database session opened by the executor."""

    session_id: str
    expires_at: Optional[datetime] = None

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "SessionInfo":
        return cls(
            session_id=data["sessionId"],
            expires_at=_parse_timestamp(data.get("expiresAtUtc")),
        )


@dataclass
class SqlScripts:
    """SQL scripts produced for a plan."""

    rename_sql: Optional[str] = None
    compat_sql: Optional[str] = None
    cleanup_sql: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not (self.rename_sql or self.compat_sql or self.cleanup_sql)

    def items(self) -> List[tuple]:
        """Non-empty scripts as (label, sql) pairs, in execution order."""
        pairs = [
            ("rename", self.rename_sql),
            ("compat", self.compat_sql),
            ("cleanup", self.cleanup_sql),
        ]
        return [(label, sql) for label, sql in pairs if sql]

    @classmethod
    def from_payload(cls, data: Optional[Dict[str, Any]]) -> "SqlScripts":
        data = data or {}
        return cls(
            rename_sql=data.get("renameSql"),
            compat_sql=data.get("compatSql"),
            cleanup_sql=data.get("cleanupSql"),
        )


@dataclass
class PlanReport:
    tables_changed: int = 0
    columns_changed: int = 0
    operations: int = 0

    @classmethod
    def from_payload(cls, data: Optional[Dict[str, Any]]) -> Optional["PlanReport"]:
        if not data:
            return None
        return cls(
            tables_changed=int(data.get("tablesChanged", 0)),
            columns_changed=int(data.get("columnsChanged", 0)),
            operations=int(data.get("operations", 0)),
        )


@dataclass
class PlanResponse:
    sql: SqlScripts
    report: Optional[PlanReport] = None

    @classmethod
    def from_payload(cls, data: Optional[Dict[str, Any]]) -> "PlanResponse":
        data = data or {}
        # Older executors return the scripts under "bundle".
        scripts = data.get("sql") or data.get("bundle")
        return cls(
            sql=SqlScripts.from_payload(scripts),
            report=PlanReport.from_payload(data.get("report")),
        )


@dataclass
class CodefixFile:
    path: str
    changed: bool = False
    changes: Optional[int] = None
    original_content: Optional[str] = None
    modified_content: Optional[str] = None

    def unified_diff(self) -> Optional[str]:
        """Unified diff between original and modified content, if both were returned."""
        if self.original_content is None or self.modified_content is None:
            return None
        lines = difflib.unified_diff(
            self.original_content.splitlines(keepends=True),
            self.modified_content.splitlines(keepends=True),
            fromfile=f"a/{self.path}",
            tofile=f"b/{self.path}",
        )
        return "".join(line if line.endswith("\n") else line + "\n" for line in lines)

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "CodefixFile":
        return cls(
            path=data.get("path", ""),
            changed=bool(data.get("changed", False)),
            changes=data.get("changes"),
            original_content=data.get("originalContent"),
            modified_content=data.get("modifiedContent"),
        )


@dataclass
class CodefixResult:
    ok: bool = False
    scanned: int = 0
    changed: int = 0
    files: List[CodefixFile] = field(default_factory=list)

    @property
    def changed_files(self) -> List[CodefixFile]:
        return [f for f in self.files if f.changed]

    @classmethod
    def from_payload(cls, data: Optional[Dict[str, Any]]) -> Optional["CodefixResult"]:
        if not data:
            return None
        return cls(
            ok=bool(data.get("ok", False)),
            scanned=int(data.get("scanned", 0)),
            changed=int(data.get("changed", 0)),
            files=[CodefixFile.from_payload(f) for f in data.get("files") or []],
        )


@dataclass
class RefactorResponse:
    """Result of a refactor or cleanup run."""

    ok: bool
    sql: SqlScripts
    apply: Optional[bool] = None
    db_log: Optional[str] = None
    log: Optional[str] = None
    codefix: Optional[CodefixResult] = None
    error: Optional[str] = None
    stack: Optional[str] = None

    @property
    def has_error(self) -> bool:
        return not self.ok or self.error is not None

    @classmethod
    def from_payload(cls, data: Optional[Dict[str, Any]]) -> "RefactorResponse":
        data = data or {}
        return cls(
            ok=bool(data.get("ok", False)),
            sql=SqlScripts.from_payload(data.get("sql")),
            apply=data.get("apply"),
            db_log=data.get("dbLog"),
            log=data.get("log"),
            codefix=CodefixResult.from_payload(data.get("codefix")),
            error=data.get("error"),
            stack=data.get("stack"),
        )
