"""
Plan executor client package for dbrefactor.
"""

from .client import PlanExecutorClient
from .models import (
    SessionInfo,
    SqlScripts,
    PlanReport,
    PlanResponse,
    CodefixFile,
    CodefixResult,
    RefactorResponse,
)

__all__ = [
    "PlanExecutorClient",
    "SessionInfo",
    "SqlScripts",
    "PlanReport",
    "PlanResponse",
    "CodefixFile",
    "CodefixResult",
    "RefactorResponse",
]
