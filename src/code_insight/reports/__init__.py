"""Reports — render tool payloads for humans."""

from code_insight.reports.text import render_payload, render_tool_list

__all__ = ["render_payload", "render_tool_list"]
