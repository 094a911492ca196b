"""
Configuration system for dbrefactor using Pydantic.
"""

import logging
import logging.handlers
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.console import Console
from rich.logging import RichHandler

from .exceptions import ConfigurationError


ENDPOINT_ENV_VARS = ("NEXT_PUBLIC_DBREFACTOR_API", "DBREFACTOR_API")

# Handlers added to the root logger by configure_logging.
_installed_handlers: List[logging.Handler] = []


class ExecutorConfig(BaseModel):
    """Plan executor service configuration."""

    endpoint: Optional[str] = Field(None, description="Base URL of the executor API")
    timeout: int = Field(60, description="Request timeout in seconds")
    session_ttl: int = Field(1800, description="Remote session lifetime in seconds")
    user_agent: str = Field("dbrefactor/0.1", description="User-Agent header")

    @field_validator("endpoint")
    @classmethod
    def strip_trailing_slashes(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().rstrip("/")
        return v or None

    @field_validator("timeout", "session_ttl")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be positive")
        return v


class RefactorOptions(BaseModel):
    """Flags forwarded to the executor with every plan submission."""

    use_synonyms: bool = Field(True, description="Create synonyms for renamed objects")
    use_views: bool = Field(True, description="Create compatibility views")
    cqrs: bool = Field(True, description="Generate CQRS-friendly scripts")
    allow_destructive: bool = Field(
        False, description="Always confirm before running cleanup"
    )

    def to_payload(self) -> Dict[str, bool]:
        """Request fields in the executor's wire format."""
        return {
            "useSynonyms": self.use_synonyms,
            "useViews": self.use_views,
            "cqrs": self.cqrs,
        }


class CodefixConfig(BaseModel):
    """Source rewriting options passed through to the executor."""

    root_key: str = Field("SOLUTION", description="Codebase root registered on the executor")
    include_globs: List[str] = Field(default_factory=list, description="Files to include")
    exclude_globs: List[str] = Field(default_factory=list, description="Files to exclude")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        "INFO", description="Log level"
    )
    format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )
    file: Optional[str] = Field(None, description="Log file path")
    max_size: int = Field(10485760, description="Max log file size in bytes")  # 10MB
    backup_count: int = Field(5, description="Number of backup log files")


class DbRefactorConfig(BaseSettings):
    """Main dbrefactor configuration."""

    service_name: str = Field("dbrefactor", description="Service name")
    debug: bool = Field(False, description="Enable debug mode")

    executor: ExecutorConfig = Field(
        default_factory=ExecutorConfig, description="Plan executor configuration"
    )
    options: RefactorOptions = Field(
        default_factory=RefactorOptions, description="Refactor options"
    )
    codefix: CodefixConfig = Field(
        default_factory=CodefixConfig, description="Code fix configuration"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="DBREFACTOR_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "DbRefactorConfig":
        """Load configuration from a YAML file."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}

            data = cls._expand_env_vars(data)

            return cls(**data)
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {e}")
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    @classmethod
    def _expand_env_vars(cls, data: Any) -> Any:
        """Recursively expand environment variables in configuration data."""
        if isinstance(data, dict):
            return {k: cls._expand_env_vars(v) for k, v in data.items()}
        elif isinstance(data, list):
            return [cls._expand_env_vars(item) for item in data]
        elif isinstance(data, str):
            return os.path.expandvars(data)
        else:
            return data

    def resolve_endpoint(self) -> str:
        """
        Get the executor base URL.

        Falls back to NEXT_PUBLIC_DBREFACTOR_API, then DBREFACTOR_API, when
        the configuration leaves it unset.
        """
        if self.executor.endpoint:
            return self.executor.endpoint
        for name in ENDPOINT_ENV_VARS:
            raw = os.environ.get(name, "").strip().rstrip("/")
            if raw:
                return raw
        raise ConfigurationError(
            "Executor endpoint is not configured "
            f"(set executor.endpoint or one of {', '.join(ENDPOINT_ENV_VARS)})"
        )

    def validate_config(self) -> None:
        """Validate the configuration for remote use."""
        endpoint = self.resolve_endpoint()
        if not endpoint.startswith(("http://", "https://")):
            raise ConfigurationError(
                f"Executor endpoint must be an http(s) URL, got '{endpoint}'"
            )
        if not self.codefix.root_key.strip():
            raise ConfigurationError("codefix.root_key cannot be empty")

    def to_yaml(self, path: Union[str, Path]) -> None:
        """Save configuration to a YAML file."""
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.model_dump(exclude_none=True), f, default_flow_style=False, indent=2
            )


def configure_logging(config: LoggingConfig, debug: bool = False) -> None:
    """
    Apply a logging configuration to the root logger.

    Console output goes through rich on stderr; when a log file is
    configured, records are also written there with the configured format.
    """
    root = logging.getLogger()
    level = logging.DEBUG if debug else getattr(logging, config.level)

    reset_logging()

    console_handler = RichHandler(
        console=Console(stderr=True), show_path=debug, rich_tracebacks=debug
    )
    console_handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    handlers: List[logging.Handler] = [console_handler]

    if config.file:
        file_handler = logging.handlers.RotatingFileHandler(
            config.file,
            maxBytes=config.max_size,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(config.format))
        handlers.append(file_handler)

    for handler in handlers:
        root.addHandler(handler)
    _installed_handlers.extend(handlers)
    root.setLevel(level)


def reset_logging() -> None:
    """Remove and close the handlers installed by configure_logging."""
    root = logging.getLogger()
    while _installed_handlers:
        handler = _installed_handlers.pop()
        root.removeHandler(handler)
        handler.close()
