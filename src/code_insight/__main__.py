"""CLI entry-point for code_insight.

Usage:
    python -m code_insight complexity <file.py> [--max-complexity N]
    python -m code_insight security <file.py> [--fail-on SEVERITY]
    python -m code_insight bug <dir | file.py ...> [--fail-on SEVERITY]
    python -m code_insight analyze <file.py> [--fail-on SEVERITY]
    python -m code_insight test <dir | file.py> [--function NAME] [--mode basic|table-driven|mock]
                               [--with-mock] [--with-coverage] [--dry-run] [--overwrite]
    python -m code_insight list
    python -m code_insight validate <instance.json> <schema_name>

Global options (before the command):
    -c/--config FILE   -f/--format text|json   -o/--output FILE   -v/--verbose   --version
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Optional

import jsonschema

from code_insight import __version__
from code_insight.api import ANALYSIS_TOOLS, build_tool_manager, decode_result
from code_insight.contracts.load import validate_file
from code_insight.core.config import ConfigError, load_config
from code_insight.core.logging_config import configure_logging
from code_insight.model import Severity
from code_insight.model.tool_result import ToolResult
from code_insight.reports.text import render_payload, render_tool_list
from code_insight.tools.errors import ToolError
from code_insight.tools.inputs import BugDetectorInput, GenerateRequest, SourceInput, TestMode
from code_insight.tools.manager import ToolManager
from code_insight.utils.exit_codes import ExitCode
from code_insight.utils.json_norm import stable_json_dumps

_logger = logging.getLogger(__name__)

_SEVERITY_CHOICES = [s.value.lower() for s in Severity]


# ── output helpers ──────────────────────────────────────────────────────


def _emit(text: str, output: Optional[str]) -> None:
    if output and output != "stdout":
        Path(output).parent.mkdir(parents=True, exist_ok=True)
        Path(output).write_text(text, encoding="utf-8")
    else:
        sys.stdout.write(text)


def _render(tool_name: str, payload: dict[str, Any], fmt: str) -> str:
    if fmt == "json":
        return stable_json_dumps(payload)
    return render_payload(tool_name, payload)


def _read_source(path: Path) -> Optional[SourceInput]:
    try:
        return SourceInput(code=path.read_text(encoding="utf-8"), filename=path.as_posix())
    except (OSError, UnicodeDecodeError) as exc:
        print(f"error: cannot read {path}: {exc}", file=sys.stderr)
        return None


def _exceeds(payload: dict[str, Any], fail_on: Optional[str]) -> bool:
    """True when any issue is at or above the *fail_on* severity."""
    if not fail_on:
        return False
    threshold = Severity.parse(fail_on).rank
    return any(Severity.parse(issue["severity"]).rank <= threshold for issue in payload.get("issues", []))


def _dispatch(manager: ToolManager, name: str, tool_input: Any) -> Optional[ToolResult]:
    try:
        return manager.run(name, tool_input)
    except ToolError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return None


def _run_single(args: argparse.Namespace, manager: ToolManager, name: str, tool_input: Any) -> int:
    result = _dispatch(manager, name, tool_input)
    if result is None:
        return ExitCode.ERROR
    if not result.success:
        print(f"error: {name}: {result.error}", file=sys.stderr)
        return ExitCode.ERROR
    payload = decode_result(result) or {}
    _emit(_render(name, payload, args.format), args.output)
    if name == "bug_detector" and payload.get("status") == "error":
        return ExitCode.ERROR
    if name == "complexity_analyzer" and args.max_complexity is not None:
        if any(fn["complexity"] > args.max_complexity for fn in payload["functions"]):
            return ExitCode.VIOLATION
    if _exceeds(payload, getattr(args, "fail_on", None)):
        return ExitCode.VIOLATION
    return ExitCode.SUCCESS


# ── command handlers ────────────────────────────────────────────────────


def _handle_complexity(args: argparse.Namespace, manager: ToolManager) -> int:
    source = _read_source(args.file)
    if source is None:
        return ExitCode.ERROR
    return _run_single(args, manager, "complexity_analyzer", source)


def _handle_security(args: argparse.Namespace, manager: ToolManager) -> int:
    source = _read_source(args.file)
    if source is None:
        return ExitCode.ERROR
    return _run_single(args, manager, "security_scanner", source)


def _handle_bug(args: argparse.Namespace, manager: ToolManager) -> int:
    paths: list[Path] = args.paths
    if len(paths) == 1 and paths[0].is_dir():
        tool_input = BugDetectorInput(directory=paths[0].as_posix())
    else:
        tool_input = BugDetectorInput(files=tuple(p.as_posix() for p in paths))
    return _run_single(args, manager, "bug_detector", tool_input)


def _handle_analyze(args: argparse.Namespace, manager: ToolManager) -> int:
    source = _read_source(args.file)
    if source is None:
        return ExitCode.ERROR
    results = manager.run_batch(ANALYSIS_TOOLS, source)

    code = ExitCode.SUCCESS
    payloads: dict[str, Any] = {}
    chunks: list[str] = []
    for name, result in results.items():
        if not result.success:
            print(f"error: {name}: {result.error}", file=sys.stderr)
            payloads[name] = {"error": result.error}
            code = ExitCode.ERROR
            continue
        payload = decode_result(result) or {}
        payloads[name] = payload
        chunks.append(render_payload(name, payload))
        if code == ExitCode.SUCCESS and _exceeds(payload, args.fail_on):
            code = ExitCode.VIOLATION

    text = stable_json_dumps(payloads) if args.format == "json" else "\n".join(chunks)
    _emit(text, args.output)
    return code


def _handle_test(args: argparse.Namespace, manager: ToolManager) -> int:
    target: Path = args.path
    request = GenerateRequest(
        file_path="" if target.is_dir() else target.as_posix(),
        dir_path=target.as_posix() if target.is_dir() else "",
        function_name=args.function or "",
        mode=TestMode(args.mode),
        with_mock=args.with_mock,
        with_coverage=args.with_coverage,
        write=not args.dry_run,
        overwrite=args.overwrite,
        output_dir=args.output_dir,
    )
    return _run_single(args, manager, "test_generator", request)


def _handle_list(args: argparse.Namespace, manager: ToolManager) -> int:
    statuses = manager.list_with_status()
    if args.format == "json":
        _emit(stable_json_dumps([s.to_dict() for s in statuses]), args.output)
    else:
        _emit(render_tool_list(statuses), args.output)
    return ExitCode.SUCCESS


def _handle_validate(args: argparse.Namespace, manager: ToolManager) -> int:
    # Exit code contract:
    #   1 = schema violation
    #   2 = unreadable instance / unknown schema
    try:
        validate_file(Path(args.instance), args.schema_name)
    except jsonschema.ValidationError as exc:
        print(f"FAIL: {exc.message}", file=sys.stderr)
        return ExitCode.VIOLATION
    except (OSError, ValueError, jsonschema.SchemaError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return ExitCode.ERROR
    print("OK")
    return ExitCode.SUCCESS


_HANDLERS: dict[str, Callable[[argparse.Namespace, ToolManager], int]] = {
    "complexity": _handle_complexity,
    "security": _handle_security,
    "bug": _handle_bug,
    "analyze": _handle_analyze,
    "test": _handle_test,
    "list": _handle_list,
    "validate": _handle_validate,
}


# ── parser ──────────────────────────────────────────────────────────────


def _add_fail_on(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--fail-on",
        dest="fail_on",
        choices=_SEVERITY_CHOICES,
        default=None,
        help="Exit 1 when an issue at or above this severity is found.",
    )


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="code-insight",
        description="Pluggable code-quality tools: complexity, security, bug patterns and test skeletons.",
    )
    p.add_argument("-c", "--config", default=None, help="Config file (.yaml/.yml/.json).")
    p.add_argument(
        "-f",
        "--format",
        choices=["text", "json"],
        default=None,
        help="Output format (default: from config, else text).",
    )
    p.add_argument("-o", "--output", default=None, help="Write output to FILE instead of stdout.")
    p.add_argument("-v", "--verbose", action="store_true", default=False, help="Debug logging.")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    sub = p.add_subparsers(dest="command")

    cx = sub.add_parser("complexity", help="Cyclomatic complexity per function.")
    cx.add_argument("file", type=Path, help="Python file to analyze.")
    cx.add_argument(
        "--max-complexity",
        type=int,
        default=None,
        help="Exit 1 when any function exceeds this complexity.",
    )

    sec = sub.add_parser("security", help="Scan for security anti-patterns.")
    sec.add_argument("file", type=Path, help="Python file to scan.")
    _add_fail_on(sec)

    bug = sub.add_parser("bug", help="Detect common bug patterns.")
    bug.add_argument("paths", type=Path, nargs="+", help="One directory, or one or more files.")
    _add_fail_on(bug)

    an = sub.add_parser("analyze", help="Run complexity, security and bug analysis together.")
    an.add_argument("file", type=Path, help="Python file to analyze.")
    _add_fail_on(an)

    tg = sub.add_parser("test", help="Generate pytest skeletons.")
    tg.add_argument("path", type=Path, help="Python file or directory.")
    tg.add_argument("--function", default=None, help="Only this function (NAME or Class.NAME).")
    tg.add_argument(
        "--mode",
        choices=[m.value for m in TestMode],
        default=TestMode.TABLE_DRIVEN.value,
        help="Skeleton style (default: table-driven).",
    )
    tg.add_argument("--with-mock", action="store_true", default=False, help="Report mock suggestions.")
    tg.add_argument("--with-coverage", action="store_true", default=False, help="Report the coverage command.")
    tg.add_argument("--dry-run", action="store_true", default=False, help="Do not write test files.")
    tg.add_argument("--overwrite", action="store_true", default=False, help="Replace existing test files.")
    tg.add_argument("--output-dir", default=None, help="Write test files here instead of beside the source.")

    sub.add_parser("list", help="List registered tools with their status.")

    val = sub.add_parser("validate", help="Validate a JSON payload against a bundled schema.")
    val.add_argument("instance", help="Path to the JSON instance.")
    val.add_argument("schema_name", help="Schema filename, e.g. security_result.schema.json.")

    p.set_defaults(command=None)
    return p


def main(argv: list[str] | None = None) -> int:
    """Entry-point; returns an exit code (0 = ok, 1 = violation, 2 = error)."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help(sys.stderr)
        return ExitCode.ERROR

    try:
        cfg = load_config(args.config)
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return ExitCode.ERROR

    configure_logging(cfg.log, verbose=args.verbose or cfg.verbose)
    args.format = args.format or cfg.default_format
    if args.output is None and cfg.default_output != "stdout":
        args.output = cfg.default_output
    if not hasattr(args, "max_complexity"):
        args.max_complexity = None

    manager = build_tool_manager(cfg)
    _logger.debug("dispatching %s", args.command)
    return int(_HANDLERS[args.command](args, manager))


if __name__ == "__main__":
    raise SystemExit(main())
