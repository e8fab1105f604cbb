"""Tools — named analysis units invoked through the ``ToolManager``.

Every tool exposes the same contract:

- ``name`` — unique registry key
- ``description`` — one line, shown by ``list``
- ``input_type`` — the input variant class (or tuple of classes) it accepts
- ``validate(tool_input)`` — raise an ``InvalidInputError`` subclass on bad input
- ``run(tool_input, ctx) -> str`` — return the tool's JSON payload

``run`` is only ever called with input that passed ``validate``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from code_insight.core.context import RunContext


@runtime_checkable
class Tool(Protocol):
    name: str
    description: str
    input_type: Any

    def validate(self, tool_input: Any) -> None: ...

    def run(self, tool_input: Any, ctx: "RunContext") -> str: ...


__all__ = ["Tool"]
