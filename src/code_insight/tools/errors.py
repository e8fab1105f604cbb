"""Error hierarchy for the tool framework.

Registry errors (not found, disabled, duplicate) are raised to the caller.
Validation and execution errors are carried inside a ``ToolResult``.
"""

from __future__ import annotations


class ToolError(Exception):
    """Base class for every tool framework error."""

    def __init__(self, message: str, *, tool: str = "") -> None:
        super().__init__(message)
        self.tool = tool


class InvalidInputError(ToolError, ValueError):
    """Input has the wrong shape for a tool, or a registration is unusable."""


class InputValidationError(InvalidInputError):
    """Input has the right shape but fails a field-level check."""


class DuplicateToolError(ToolError, ValueError):
    def __init__(self, name: str) -> None:
        super().__init__(f"tool already registered: {name}", tool=name)


class ToolNotFoundError(ToolError, LookupError):
    def __init__(self, name: str) -> None:
        super().__init__(f"tool not found: {name}", tool=name)


class ToolDisabledError(ToolError):
    def __init__(self, name: str) -> None:
        super().__init__(f"tool is disabled: {name}", tool=name)


class ToolExecutionError(ToolError, RuntimeError):
    """The tool ran but could not produce a result (e.g. unparseable source)."""


class ToolTimeoutError(ToolError, TimeoutError):
    """The invocation exceeded its deadline."""

    def __init__(self, message: str = "tool execution timed out", *, tool: str = "", timeout: float = 0.0) -> None:
        super().__init__(message, tool=tool)
        self.timeout = timeout


class ToolCancelledError(ToolError):
    """The caller cancelled the invocation."""

    def __init__(self, message: str = "tool execution cancelled", *, tool: str = "") -> None:
        super().__init__(message, tool=tool)
