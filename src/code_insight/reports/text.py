"""Plain-text rendering of tool payloads.

Each renderer takes the decoded JSON payload of one tool and returns a
string ending in a newline.  Unknown payloads fall back to canonical JSON.
"""

from __future__ import annotations

from typing import Any, Callable

from code_insight.model.tool_result import ToolStatus
from code_insight.utils.json_norm import stable_json_dumps

_RULE = "─" * 60


def _issue_lines(issues: list[dict]) -> list[str]:
    lines: list[str] = []
    for issue in issues:
        where = f"{issue['file']}:{issue['line']}"
        if issue.get("function"):
            where += f" in {issue['function']}()"
        confidence = f", confidence {issue['confidence']}" if issue.get("confidence") else ""
        lines.append(f"[{issue['severity']}] {issue['rule_id']} {issue['description']}{confidence}")
        lines.append(f"    at {where}")
        if issue.get("code_snippet"):
            lines.append(f"    > {issue['code_snippet']}")
        lines.append(f"    fix: {issue['suggestion']}")
    return lines


def _severity_line(stats: dict) -> str:
    return (
        f"Critical: {stats.get('critical', 0)}  High: {stats.get('high', 0)}  "
        f"Medium: {stats.get('medium', 0)}  Low: {stats.get('low', 0)}"
    )


def render_complexity(payload: dict[str, Any]) -> str:
    lines = [f"Complexity report: {payload.get('file', '')}", _RULE]
    for fn in payload["functions"]:
        lines.append(f"{fn['name']:<40} line {fn['line']:>5}  CC {fn['complexity']:>3}  {fn['lines']:>4} lines")
        lines.extend(f"    - {text}" for text in fn["issues"])
    stats = payload["statistics"]
    lines += [
        _RULE,
        f"simple: {stats['simple_functions']}  medium: {stats['medium_functions']}  "
        f"complex: {stats['complex_functions']}  very complex: {stats['very_complex_functions']}",
        payload["summary"],
    ]
    return "\n".join(lines) + "\n"


def render_security(payload: dict[str, Any]) -> str:
    lines = [f"Security report: {payload.get('file', '')}", _RULE]
    lines.extend(_issue_lines(payload["issues"]))
    lines += [_RULE, _severity_line(payload["statistics"]), payload["summary"]]
    return "\n".join(lines) + "\n"


def render_bugs(payload: dict[str, Any]) -> str:
    lines = [
        f"Bug report ({payload['status']}): {payload['analyzed_files']}/{payload['total_files']} file(s) analyzed",
        _RULE,
    ]
    lines.extend(_issue_lines(payload["issues"]))
    for entry in payload.get("error_files", []):
        lines.append(f"[error] {entry['path']}: {entry['reason']}")
    for entry in payload.get("skipped_files", []):
        lines.append(f"[skipped] {entry['path']}: {entry['reason']}")
    lines += [_RULE, _severity_line(payload["statistics"]), payload["summary"]]
    if payload.get("recommendations"):
        lines.append("Recommendations:")
        lines.extend(f"  * {text}" for text in payload["recommendations"])
    return "\n".join(lines) + "\n"


def render_tests(payload: dict[str, Any]) -> str:
    lines = [f"Test generation ({payload['mode']})", _RULE]
    for path in payload["generated_files"]:
        lines.append(f"wrote {path}")
    for entry in payload["skipped_files"]:
        lines.append(f"skipped {entry['path']}: {entry['reason']}")
    for entry in payload.get("error_files", []):
        lines.append(f"error {entry['path']}: {entry['reason']}")
    for suggestion in payload.get("mock_suggestions", []):
        lines.append(f"mock {suggestion['function']}({suggestion['parameter']}): {suggestion['suggestion']}")
    if payload.get("coverage"):
        lines.append(f"coverage: {payload['coverage']['command']}")
    lines += [_RULE, payload["summary"]]
    return "\n".join(lines) + "\n"


_RENDERERS: dict[str, Callable[[dict[str, Any]], str]] = {
    "complexity_analyzer": render_complexity,
    "security_scanner": render_security,
    "bug_detector": render_bugs,
    "test_generator": render_tests,
}


def render_payload(tool_name: str, payload: dict[str, Any]) -> str:
    renderer = _RENDERERS.get(tool_name)
    if renderer is None:
        return stable_json_dumps(payload)
    return renderer(payload)


def render_tool_list(statuses: list[ToolStatus]) -> str:
    lines = [f"{'NAME':<22} {'ENABLED':<8} {'TIMEOUT':>8}  DESCRIPTION"]
    for status in statuses:
        timeout = f"{status.timeout:g}s" if status.timeout > 0 else "none"
        lines.append(f"{status.name:<22} {'yes' if status.enabled else 'no':<8} {timeout:>8}  {status.description}")
    return "\n".join(lines) + "\n"
