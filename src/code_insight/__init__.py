"""code_insight — pluggable code-quality tools behind a single manager."""

__all__ = [
    "__version__",
    "ToolManager",
    "ToolConfig",
    "ToolResult",
    "RunContext",
    "build_tool_manager",
    "analyze_source",
]
__version__ = "0.1.0"

from code_insight.api import analyze_source, build_tool_manager  # noqa: E402, F401
from code_insight.core.context import RunContext  # noqa: E402, F401
from code_insight.model.tool_result import ToolConfig, ToolResult  # noqa: E402, F401
from code_insight.tools.manager import ToolManager  # noqa: E402, F401
