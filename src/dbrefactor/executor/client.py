"""
Plan executor API client.

The executor is the remote service that owns database sessions, schema
analysis, SQL script generation and codebase rewriting. This client only
serializes requests and maps failures onto dbrefactor exceptions.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from .models import CodefixResult, PlanResponse, RefactorResponse, SessionInfo
from ..config import CodefixConfig, DbRefactorConfig, ExecutorConfig, RefactorOptions
from ..exceptions import (
    APITimeoutError,
    ExecutorAPIError,
    PlanValidationError,
    ValidationError,
)
from ..plan.plan import Plan
from ..schema.baseline import BaselineSchema


logger = logging.getLogger(__name__)


def _parse_body(text: str) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


class PlanExecutorClient:
    """
    Async client for the plan executor API.

    Every call is a JSON POST. Non-2xx answers raise ExecutorAPIError with
    the server's own error message when it sends one.
    """

    def __init__(
        self,
        endpoint: str,
        config: Optional[ExecutorConfig] = None,
        options: Optional[RefactorOptions] = None,
        codefix: Optional[CodefixConfig] = None,
    ):
        if not endpoint:
            raise ValidationError("Executor endpoint is required")

        self.base_url = endpoint.rstrip("/")
        self.config = config or ExecutorConfig()
        self.options = options or RefactorOptions()
        self.codefix = codefix or CodefixConfig()
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

        self._session: aiohttp.ClientSession | None = None

    @classmethod
    def from_config(cls, config: DbRefactorConfig) -> "PlanExecutorClient":
        """Build a client from the application configuration."""
        return cls(
            config.resolve_endpoint(),
            config=config.executor,
            options=config.options,
            codefix=config.codefix,
        )

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout)
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                headers={
                    "Accept": "application/json",
                    "User-Agent": self.config.user_agent,
                },
            )
        return self._session

    def _api_error(
        self, status: int, reason: Optional[str], body: Any, text: str, endpoint: str
    ) -> ExecutorAPIError:
        message = None
        detail = None
        if isinstance(body, dict):
            message = body.get("error") or body.get("title") or body.get("message")
            detail = body.get("stack") or body.get("detail")
        elif isinstance(body, str) and body.strip():
            detail = body.strip()

        if not message:
            message = f"HTTP {status} {reason or ''}".strip()
        if isinstance(detail, str) and detail and detail != message:
            message = f"{message}\n\n{detail}"

        return ExecutorAPIError(
            message,
            status_code=status,
            response_body=text,
            endpoint=endpoint,
        )

    async def _post(self, endpoint: str, payload: Dict[str, Any]) -> Any:
        """POST a JSON payload and return the decoded answer."""
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        session = await self._get_session()

        try:
            async with session.post(url, json=payload) as response:
                text = await response.text()
                body = _parse_body(text)

                if response.status >= 400:
                    raise self._api_error(
                        response.status, response.reason, body, text, endpoint
                    )

                self.logger.debug(f"POST {endpoint} -> {response.status}")
                return body

        except asyncio.TimeoutError:
            raise APITimeoutError(
                f"Timeout calling {url}",
                timeout_duration=self.config.timeout,
                endpoint=endpoint,
            )
        except aiohttp.ClientError as e:
            raise ExecutorAPIError(f"Network error calling {url}: {e}", endpoint=endpoint)

    @staticmethod
    def _require_plan(plan: Plan) -> None:
        if plan.is_empty:
            raise PlanValidationError("Refactor plan cannot be empty")

    @staticmethod
    def _require_connection_string(connection_string: str) -> None:
        if not connection_string or not connection_string.strip():
            raise ValidationError("Connection string is required")

    async def connect_session(
        self, connection_string: str, ttl_seconds: Optional[int] = None
    ) -> SessionInfo:
        """Open a remote session; the connection string is passed through as is."""
        self._require_connection_string(connection_string)
        data = await self._post(
            "/session/connect",
            {
                "connectionString": connection_string,
                "ttlSeconds": ttl_seconds or self.config.session_ttl,
            },
        )
        if not isinstance(data, dict) or "sessionId" not in data:
            raise ExecutorAPIError(
                "Executor did not return a session id", endpoint="/session/connect"
            )
        session = SessionInfo.from_payload(data)
        logger.info(f"Opened executor session {session.session_id}")
        return session

    async def disconnect_session(self, session_id: str) -> None:
        await self._post("/session/disconnect", {"sessionId": session_id})
        logger.info(f"Closed executor session {session_id}")

    async def analyze_schema(self, session_id: str) -> BaselineSchema:
        """Fetch a fresh baseline schema for a session."""
        data = await self._post("/analyze/schema", {"sessionId": session_id})
        return BaselineSchema.from_payload(data)

    async def generate_plan(
        self, plan: Plan, options: Optional[RefactorOptions] = None
    ) -> PlanResponse:
        """Ask for the SQL scripts of a plan without touching any database."""
        self._require_plan(plan)
        options = options or self.options
        data = await self._post(
            "/plan", {"renames": plan.to_payload(), **options.to_payload()}
        )
        return PlanResponse.from_payload(data if isinstance(data, dict) else None)

    async def run_refactor(
        self,
        connection_string: str,
        plan: Plan,
        apply: bool = False,
        root_key: Optional[str] = None,
        options: Optional[RefactorOptions] = None,
    ) -> RefactorResponse:
        """Preview, or apply with apply=True, a plan against a database and codebase."""
        self._require_connection_string(connection_string)
        self._require_plan(plan)
        options = options or self.options
        data = await self._post(
            "/refactor/run",
            {
                "connectionString": connection_string,
                "plan": {"renames": plan.to_payload()},
                "apply": apply,
                "rootKey": root_key or self.codefix.root_key,
                **options.to_payload(),
            },
        )
        return RefactorResponse.from_payload(data if isinstance(data, dict) else None)

    async def run_cleanup(
        self,
        connection_string: str,
        plan: Plan,
        options: Optional[RefactorOptions] = None,
    ) -> RefactorResponse:
        """Drop the compatibility objects left behind by an applied plan."""
        self._require_connection_string(connection_string)
        self._require_plan(plan)
        options = options or self.options
        data = await self._post(
            "/apply/cleanup",
            {
                "connectionString": connection_string,
                "renames": plan.to_payload(),
                **options.to_payload(),
            },
        )
        return RefactorResponse.from_payload(data if isinstance(data, dict) else None)

    async def run_codefix(
        self,
        plan: Plan,
        apply: bool = False,
        root_key: Optional[str] = None,
        include_globs: Optional[List[str]] = None,
        exclude_globs: Optional[List[str]] = None,
    ) -> CodefixResult:
        """Preview, or apply with apply=True, source code fixes for a plan."""
        self._require_plan(plan)
        payload: Dict[str, Any] = {
            "rootKey": root_key or self.codefix.root_key,
            "apply": apply,
            "plan": {"renames": plan.to_payload()},
        }
        include_globs = include_globs if include_globs is not None else self.codefix.include_globs
        exclude_globs = exclude_globs if exclude_globs is not None else self.codefix.exclude_globs
        if include_globs:
            payload["includeGlobs"] = list(include_globs)
        if exclude_globs:
            payload["excludeGlobs"] = list(exclude_globs)

        data = await self._post("/codefix/run", payload)
        return CodefixResult.from_payload(data if isinstance(data, dict) else None) or CodefixResult()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(base_url={self.base_url})"
