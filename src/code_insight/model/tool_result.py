"""Tool configuration and invocation results."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Optional

DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_RETRIES = 1


@dataclass(frozen=True, slots=True)
class ToolConfig:
    """Per-tool settings owned by the manager.

    ``timeout`` is in seconds; zero or a negative value disables it.
    """

    enabled: bool = True
    timeout: float = DEFAULT_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES
    custom_config: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")

    def copy(self, **changes: Any) -> "ToolConfig":
        """Return an independent copy (``custom_config`` is copied too)."""
        changes.setdefault("custom_config", dict(self.custom_config))
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            "enabled": self.enabled,
            "timeout": self.timeout,
            "max_retries": self.max_retries,
            "custom_config": dict(self.custom_config),
        }


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Outcome of one ``ToolManager.run`` call."""

    success: bool
    result: str = ""
    error: str = ""
    execution_time: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)
    exception: Optional[BaseException] = None

    @property
    def execution_time_ms(self) -> float:
        return round(self.execution_time * 1000.0, 3)

    @property
    def timed_out(self) -> bool:
        from code_insight.tools.errors import ToolTimeoutError

        return isinstance(self.exception, ToolTimeoutError)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "result": self.result,
            "error": self.error,
            "execution_time_ms": self.execution_time_ms,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True, slots=True)
class ToolStatus:
    """Row returned by ``ToolManager.list_with_status``."""

    name: str
    description: str
    enabled: bool
    timeout: float

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "enabled": self.enabled,
            "timeout": self.timeout,
        }
