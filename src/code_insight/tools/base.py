"""BaseTool — shared validation and parsing for the built-in tools."""

from __future__ import annotations

import ast
from typing import TYPE_CHECKING, Any

from code_insight.tools.errors import InvalidInputError, ToolExecutionError

if TYPE_CHECKING:
    from code_insight.core.context import RunContext


class BaseTool:
    """Implements the shape checks of ``validate``; subclasses add field checks."""

    name: str = ""
    description: str = ""
    input_type: Any = ()

    def validate(self, tool_input: Any) -> None:
        if tool_input is None:
            raise InvalidInputError(f"{self.name}: input is required", tool=self.name)
        if not isinstance(tool_input, self.input_type):
            raise InvalidInputError(
                f"{self.name}: expected {self._accepted_names()}, "
                f"got {type(tool_input).__name__}",
                tool=self.name,
            )
        self.validate_fields(tool_input)

    def validate_fields(self, tool_input: Any) -> None:
        """Hook for field-level checks; raise ``InputValidationError``."""

    def run(self, tool_input: Any, ctx: "RunContext") -> str:
        raise NotImplementedError

    # ── helpers ─────────────────────────────────────────────────────

    def _accepted_names(self) -> str:
        types = self.input_type if isinstance(self.input_type, tuple) else (self.input_type,)
        return " or ".join(t.__name__ for t in types)

    def parse(self, code: str, filename: str) -> ast.Module:
        """Parse *code*; a syntax error becomes a ``ToolExecutionError``."""
        try:
            return ast.parse(code, filename=filename)
        except SyntaxError as exc:
            raise ToolExecutionError(
                f"failed to parse {filename}: {exc.msg} (line {exc.lineno})",
                tool=self.name,
            ) from exc
        except ValueError as exc:
            # null bytes in source
            raise ToolExecutionError(f"failed to parse {filename}: {exc}", tool=self.name) from exc

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"
