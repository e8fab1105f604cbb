"""
code_insight.api
================

Programmatic entrypoints for using code_insight as a library.

Goals:
  - No argparse / CLI dependencies
  - One place that knows which tools exist and how they are configured
  - JSON-friendly outputs that match the bundled payload schemas

Non-goals:
  - Owning presentation (text rendering) — see ``code_insight.reports``
  - Owning process-wide logging — see ``code_insight.core.logging_config``

Usage::

    from code_insight.api import build_tool_manager, analyze_source

    manager = build_tool_manager()
    result = manager.run("security_scanner", SourceInput(code))
    payloads = analyze_source(code, manager=manager)
"""

from __future__ import annotations

import json
from typing import Any, Iterable, Mapping, Optional

from code_insight.analyzers import BugDetector, ComplexityAnalyzer, SecurityScanner, TestGenerator
from code_insight.contracts.load import validate_instance
from code_insight.core.config import AppConfig
from code_insight.core.context import RunContext
from code_insight.model.issue import NO_FILE
from code_insight.model.tool_result import ToolResult
from code_insight.tools import Tool
from code_insight.tools.errors import InvalidInputError
from code_insight.tools.inputs import BugDetectorInput, GenerateRequest, SourceInput, TestMode
from code_insight.tools.manager import ToolManager

__all__ = [
    "ANALYSIS_TOOLS",
    "analyze_source",
    "build_tool_input",
    "build_tool_manager",
    "default_tools",
    "decode_result",
    "validate_instance",
]

# Tools that share a SourceInput and run together in ``analyze``.
ANALYSIS_TOOLS = ("complexity_analyzer", "security_scanner", "bug_detector")


def default_tools() -> list[Tool]:
    return [ComplexityAnalyzer(), SecurityScanner(), BugDetector(), TestGenerator()]


def build_tool_manager(config: Optional[AppConfig] = None, *, tools: Optional[Iterable[Tool]] = None) -> ToolManager:
    """A manager with the built-in tools registered under *config*'s settings."""
    cfg = config or AppConfig()
    manager = ToolManager()
    for tool in tools if tools is not None else default_tools():
        manager.register(tool, cfg.tool_config(tool.name))
    return manager


def build_tool_input(tool_name: str, fields: Mapping[str, Any]) -> Any:
    """Build the input variant *tool_name* expects from loose key/value fields.

    Used by the HTTP layer; raises ``InvalidInputError`` for unusable fields.
    """
    if tool_name == "test_generator":
        mode = fields.get("mode") or TestMode.TABLE_DRIVEN.value
        try:
            mode = TestMode(mode)
        except ValueError:
            raise InvalidInputError(f"invalid mode: {mode!r}", tool=tool_name) from None
        return GenerateRequest(
            file_path=fields.get("file_path") or "",
            dir_path=fields.get("dir_path") or "",
            function_name=fields.get("function_name") or "",
            mode=mode,
            with_mock=bool(fields.get("with_mock")),
            with_coverage=bool(fields.get("with_coverage")),
            write=bool(fields.get("write", True)),
            overwrite=bool(fields.get("overwrite")),
            output_dir=fields.get("output_dir") or None,
        )
    filename = fields.get("filename") or NO_FILE
    if tool_name == "bug_detector" and (fields.get("files") or fields.get("directory")):
        return BugDetectorInput(
            files=tuple(fields.get("files") or ()),
            directory=fields.get("directory") or "",
        )
    return SourceInput(code=fields.get("code") or "", filename=filename)


def decode_result(result: ToolResult) -> Optional[dict[str, Any]]:
    """The decoded payload of a successful result, else ``None``."""
    if not result.success or not result.result:
        return None
    return json.loads(result.result)


def analyze_source(
    code: str,
    filename: str = NO_FILE,
    *,
    tools: Iterable[str] = ANALYSIS_TOOLS,
    manager: Optional[ToolManager] = None,
    ctx: Optional[RunContext] = None,
) -> dict[str, ToolResult]:
    """Run several analyzers on one source concurrently."""
    manager = manager or build_tool_manager()
    return manager.run_batch(tools, SourceInput(code=code, filename=filename), ctx)
