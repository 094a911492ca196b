"""
Exception classes for dbrefactor.
"""

from typing import Any, Dict, Optional


class DbRefactorError(Exception):
    """Base exception for all dbrefactor errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        result = self.message
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            result += f" [{details_str}]"
        if self.cause:
            result += f" (caused by: {self.cause})"
        return result


class ConfigurationError(DbRefactorError):
    """Raised when there's an error in configuration."""

    pass


class ValidationError(DbRefactorError):
    """Raised when there's a validation error."""

    pass


class OperationValidationError(ValidationError):
    """Raised when a rename operation is built from invalid fields."""

    def __init__(
        self,
        scope: str,
        reason: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(f"Invalid '{scope}' operation: {reason}", details)
        self.scope = scope
        self.reason = reason


class PlanValidationError(ValidationError):
    """Raised when a plan cannot be submitted as it is."""

    pass


class DuplicateOperationError(PlanValidationError):
    """Raised when an operation would share its key with one already planned."""

    def __init__(self, key: tuple) -> None:
        super().__init__(f"Plan already contains an operation for {key}")
        self.key = key


class SchemaError(DbRefactorError):
    """Raised when an edit refers to something the schema does not have."""

    pass


class SchemaLoadError(SchemaError):
    """Raised when a schema snapshot cannot be parsed."""

    pass


class ExecutorError(DbRefactorError):
    """Raised when there's an error talking to the plan executor."""

    pass


class ExecutorAPIError(ExecutorError):
    """Raised when the plan executor answers with an error."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        endpoint: Optional[str] = None,
    ) -> None:
        details = {}
        if status_code:
            details["status_code"] = status_code
        if endpoint:
            details["endpoint"] = endpoint

        super().__init__(message, details)
        self.status_code = status_code
        self.response_body = response_body
        self.endpoint = endpoint


class APITimeoutError(ExecutorAPIError):
    """Raised when executor calls timeout."""

    def __init__(
        self,
        message: str = "Executor request timed out",
        timeout_duration: Optional[float] = None,
        endpoint: Optional[str] = None,
    ) -> None:
        if timeout_duration:
            message += f" (timeout: {timeout_duration}s)"

        super().__init__(message, endpoint=endpoint)
        self.timeout_duration = timeout_duration


class SessionError(DbRefactorError):
    """Raised when a remote database session is missing or unusable."""

    pass
