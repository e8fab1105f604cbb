"""Bug detector — common bug patterns found by syntax alone.

Rules here are heuristics.  BG201 (unclosed resource) and BG401 (possible
``None`` dereference) judge only the shape of a call and the statement it
sits in; they have no data-flow backing and will both miss real defects and
flag correct code.  Each issue carries a ``confidence`` to make that visible.

Input is either one source text (``SourceInput`` or ``BugDetectorInput.code``)
or a batch (``BugDetectorInput.files`` / ``.directory``).  In batch mode a
file that cannot be read or parsed is recorded in ``error_files`` and the
rest of the batch proceeds; the run status is then ``partial``.
"""

from __future__ import annotations

import ast
import logging
from pathlib import Path
from typing import Any, Optional

from code_insight.analyzers._astutil import (
    call_name,
    dotted_name,
    is_irrefutable_case,
    is_mutable_constructor_call,
    is_mutable_literal,
)
from code_insight.core.context import RunContext
from code_insight.core.discover import SUPPORTED_LANGUAGES, detect_language, discover_source_files
from code_insight.engine import (
    Rule,
    RuleContext,
    RuleEngine,
    deduplicate_issues,
    severity_statistics,
    summarize,
)
from code_insight.model import Category, Confidence, Severity
from code_insight.model.issue import Issue
from code_insight.rules import (
    BG_BARE_EXCEPT,
    BG_IGNORED_EXCEPTION,
    BG_IS_LITERAL,
    BG_MATCH_WITHOUT_DEFAULT,
    BG_MUTABLE_DEFAULT,
    BG_NONE_DEREFERENCE,
    BG_UNCLOSED_RESOURCE,
)
from code_insight.tools.base import BaseTool
from code_insight.tools.errors import InputValidationError, ToolExecutionError
from code_insight.tools.inputs import BugDetectorInput, SourceInput
from code_insight.utils.json_norm import stable_json_dumps

_logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_PARTIAL = "partial"
STATUS_ERROR = "error"


# ── Rules ───────────────────────────────────────────────────────────────


def _is_noop_body(body: list[ast.stmt]) -> bool:
    for stmt in body:
        if isinstance(stmt, ast.Pass):
            continue
        if isinstance(stmt, ast.Expr) and isinstance(stmt.value, ast.Constant) and stmt.value.value is Ellipsis:
            continue
        return False
    return True


class IgnoredExceptionRule(Rule):
    id = BG_IGNORED_EXCEPTION
    name = "ignored-exception"
    severity = Severity.HIGH
    category = Category.ERROR_HANDLING.value
    confidence = Confidence.HIGH
    description = "Exception caught and silently discarded"
    suggestion = "Handle the error, log it, or re-raise; use contextlib.suppress() to make intentional ignores explicit"
    node_types = (ast.ExceptHandler,)

    def match(self, node: ast.ExceptHandler, ctx: RuleContext) -> bool:
        return _is_noop_body(node.body)


class BareExceptRule(Rule):
    id = BG_BARE_EXCEPT
    name = "bare-except"
    severity = Severity.MEDIUM
    category = Category.ERROR_HANDLING.value
    confidence = Confidence.HIGH
    description = "Bare 'except:' also catches KeyboardInterrupt and SystemExit"
    suggestion = "Catch specific exceptions, or at least 'except Exception:'"
    node_types = (ast.ExceptHandler,)

    def match(self, node: ast.ExceptHandler, ctx: RuleContext) -> bool:
        return node.type is None


class UnclosedResourceRule(Rule):
    id = BG_UNCLOSED_RESOURCE
    name = "unclosed-resource"
    severity = Severity.HIGH
    category = Category.RESOURCE_MANAGEMENT.value
    confidence = Confidence.MEDIUM
    description = "Resource opened outside a 'with' block may never be closed (heuristic)"
    suggestion = "Open the resource in a 'with' statement, or close it in a 'finally' block"
    node_types = (ast.Call,)

    _OPENERS = frozenset(
        {
            "open",
            "io.open",
            "codecs.open",
            "os.fdopen",
            "socket.socket",
            "socket.create_connection",
            "sqlite3.connect",
            "tempfile.TemporaryFile",
            "tempfile.NamedTemporaryFile",
            "tempfile.SpooledTemporaryFile",
            "zipfile.ZipFile",
            "tarfile.open",
            "urllib.request.urlopen",
        }
    )
    _WRAPPERS = frozenset({"enter_context", "closing", "enter_async_context", "aclosing"})

    def match(self, node: ast.Call, ctx: RuleContext) -> bool:
        if call_name(node) not in self._OPENERS:
            return False
        parent = ctx.parent(node)
        if isinstance(parent, ast.withitem) and parent.context_expr is node:
            return False
        if isinstance(parent, (ast.Return, ast.Yield)):
            # ownership passes to the caller
            return False
        if isinstance(parent, ast.Call) and dotted_name(parent.func).rsplit(".", 1)[-1] in self._WRAPPERS:
            return False
        if isinstance(parent, ast.Assign) and len(parent.targets) == 1 and isinstance(parent.targets[0], ast.Name):
            return not self._closed_in_scope(parent.targets[0].id, node, ctx)
        return True

    @staticmethod
    def _closed_in_scope(variable: str, node: ast.AST, ctx: RuleContext) -> bool:
        scope: Optional[ast.AST] = None
        for ancestor in ctx.ancestors(node):
            scope = ancestor
            if isinstance(ancestor, (ast.FunctionDef, ast.AsyncFunctionDef)):
                break
        if scope is None:
            return False
        for child in ast.walk(scope):
            if (
                isinstance(child, ast.Call)
                and isinstance(child.func, ast.Attribute)
                and child.func.attr == "close"
                and isinstance(child.func.value, ast.Name)
                and child.func.value.id == variable
            ):
                return True
        return False


class MatchWithoutDefaultRule(Rule):
    id = BG_MATCH_WITHOUT_DEFAULT
    name = "match-without-default"
    severity = Severity.LOW
    category = Category.CONTROL_FLOW.value
    confidence = Confidence.HIGH
    description = "'match' statement has no default 'case _:' branch"
    suggestion = "Add 'case _:' to handle unexpected values explicitly (raise or log)"
    node_types = (ast.Match,)

    def match(self, node: ast.Match, ctx: RuleContext) -> bool:
        return not any(is_irrefutable_case(case) for case in node.cases)


class NoneDereferenceRule(Rule):
    id = BG_NONE_DEREFERENCE
    name = "possible-none-dereference"
    severity = Severity.MEDIUM
    category = Category.NULL_SAFETY.value
    confidence = Confidence.LOW
    description = "Result of a call that can return None is used without a check (heuristic)"
    suggestion = "Check the result for None before using it, or pass a default"
    node_types = (ast.Attribute, ast.Subscript)

    _REGEX_CALLS = frozenset({"re.match", "re.search", "re.fullmatch"})
    _LOOKUP_CALLS = frozenset({"os.getenv", "os.environ.get", "shutil.which"})
    _REGEX_METHODS = frozenset({"match", "search", "fullmatch"})
    # receivers whose .get() is an HTTP verb, not a mapping lookup
    _HTTP_RECEIVERS = frozenset({"requests", "httpx", "session", "client", "http", "api"})

    def match(self, node: ast.AST, ctx: RuleContext) -> bool:
        value = node.value
        if not isinstance(value, ast.Call) or not isinstance(getattr(node, "ctx", None), ast.Load):
            return False
        name = call_name(value)
        if name in self._REGEX_CALLS:
            return True
        if name in self._LOOKUP_CALLS:
            # a second argument is a default
            return len(value.args) + len(value.keywords) == 1
        func = value.func
        if not isinstance(func, ast.Attribute):
            return False
        receiver = dotted_name(func.value).rsplit(".", 1)[-1].lower()
        if func.attr == "get":
            return (
                len(value.args) == 1
                and not value.keywords
                and receiver not in self._HTTP_RECEIVERS
            )
        if func.attr in self._REGEX_METHODS:
            return receiver.endswith(("_re", "pattern", "regex", "regexp")) or receiver == "re"
        return False


class MutableDefaultRule(Rule):
    id = BG_MUTABLE_DEFAULT
    name = "mutable-default-argument"
    severity = Severity.MEDIUM
    category = Category.FUNCTION_DESIGN.value
    confidence = Confidence.HIGH
    description = "Mutable default argument is shared between calls"
    suggestion = "Default to None and create the object inside the function"
    node_types = (ast.FunctionDef, ast.AsyncFunctionDef, ast.Lambda)

    def match(self, node: ast.AST, ctx: RuleContext) -> bool:
        defaults = [*node.args.defaults, *(d for d in node.args.kw_defaults if d is not None)]
        return any(is_mutable_literal(d) or is_mutable_constructor_call(d) for d in defaults)


class IsLiteralComparisonRule(Rule):
    id = BG_IS_LITERAL
    name = "is-literal"
    severity = Severity.MEDIUM
    category = Category.LOGIC.value
    confidence = Confidence.HIGH
    description = "Identity comparison ('is') against a literal compares object identity, not value"
    suggestion = "Use '==' / '!=' for value comparison; keep 'is' for None, True and False"
    node_types = (ast.Compare,)

    def match(self, node: ast.Compare, ctx: RuleContext) -> bool:
        operands = [node.left, *node.comparators]
        for i, op in enumerate(node.ops):
            if isinstance(op, (ast.Is, ast.IsNot)) and (
                self._is_value_literal(operands[i]) or self._is_value_literal(operands[i + 1])
            ):
                return True
        return False

    @staticmethod
    def _is_value_literal(node: ast.AST) -> bool:
        if isinstance(node, ast.Constant):
            return isinstance(node.value, (str, bytes, int, float, complex)) and not isinstance(node.value, bool)
        return isinstance(node, (ast.List, ast.Dict, ast.Set, ast.Tuple, ast.JoinedStr))


def default_bug_rules() -> list[Rule]:
    """The built-in catalogue, in evaluation order."""
    return [
        IgnoredExceptionRule(),
        BareExceptRule(),
        UnclosedResourceRule(),
        MatchWithoutDefaultRule(),
        NoneDereferenceRule(),
        MutableDefaultRule(),
        IsLiteralComparisonRule(),
    ]


# ── Recommendations ─────────────────────────────────────────────────────

_STATIC_TOOLING = [
    "Run 'python -m py_compile' (or 'python -m compileall') in CI to catch syntax errors early.",
    "Run a type checker such as mypy to catch None misuse that pattern matching cannot see.",
    "Run a linter such as ruff to enforce the fixes suggested above.",
]

_CATEGORY_ADVICE = {
    Category.ERROR_HANDLING.value: "Review exception handlers: catch specific exceptions and never discard them silently.",
    Category.RESOURCE_MANAGEMENT.value: "Manage files, sockets and connections with 'with' blocks.",
    Category.CONTROL_FLOW.value: "Give every 'match' statement an explicit default branch.",
    Category.NULL_SAFETY.value: "Guard Optional results (regex matches, dict.get, getenv) before use.",
    Category.FUNCTION_DESIGN.value: "Replace mutable default arguments with None sentinels.",
    Category.LOGIC.value: "Compare values with '==' and reserve 'is' for singletons.",
}


def build_recommendations(issues: list[Issue]) -> list[str]:
    present = {issue.category for issue in issues}
    advice = [text for category, text in _CATEGORY_ADVICE.items() if category in present]
    return advice + _STATIC_TOOLING


_NOTHING_ANALYZED_ADVICE = "Only Python (.py, .pyi) files are analyzed; files in other languages are skipped."


def batch_summary(issues: list[Issue], *, analyzed: int, skipped: int, failed: int) -> str:
    """Summary line for a files/directory run, with the per-file tally."""
    if analyzed == 0:
        if failed:
            return f"No files could be analyzed ({failed} failed, {skipped} skipped)."
        return f"No Python files found to analyze ({skipped} skipped)."
    base = summarize(issues, noun="potential bugs", clean="No potential bugs found.")
    return f"{base} Analyzed {analyzed} file(s), {failed} failed, {skipped} skipped."


# ── Tool ────────────────────────────────────────────────────────────────


class BugDetector(BaseTool):
    """Detects common bug patterns in Python source, one file or a batch."""

    name = "bug_detector"
    description = "Detect common Python bug patterns (ignored exceptions, unclosed resources, missing match defaults, ...)"
    input_type = (SourceInput, BugDetectorInput)

    def __init__(self, rules: list[Rule] | None = None) -> None:
        self._engine = RuleEngine(rules if rules is not None else default_bug_rules(), id_prefix="BUG")

    @property
    def engine(self) -> RuleEngine:
        return self._engine

    def validate_fields(self, tool_input: SourceInput | BugDetectorInput) -> None:
        if isinstance(tool_input, SourceInput):
            if not tool_input.code.strip():
                raise InputValidationError("code is required", tool=self.name)
            return

        provided = [bool(tool_input.code.strip()), bool(tool_input.files), bool(tool_input.directory)]
        if sum(provided) == 0:
            raise InputValidationError("one of code, files or directory is required", tool=self.name)
        if sum(provided) > 1:
            raise InputValidationError("code, files and directory are mutually exclusive", tool=self.name)
        if tool_input.files and any(not str(f).strip() for f in tool_input.files):
            raise InputValidationError("files must not contain empty paths", tool=self.name)
        if tool_input.directory and not Path(tool_input.directory).is_dir():
            raise InputValidationError(f"directory not found: {tool_input.directory}", tool=self.name)

    def run(self, tool_input: SourceInput | BugDetectorInput, ctx: RunContext) -> str:
        if isinstance(tool_input, SourceInput):
            payload = self.analyze_code(tool_input.code, tool_input.filename, ctx)
        elif tool_input.mode == "code":
            payload = self.analyze_code(tool_input.code, tool_input.filename, ctx)
        elif tool_input.mode == "files":
            payload = self.analyze_files([Path(f) for f in tool_input.files], ctx)
        else:
            payload = self.analyze_directory(Path(tool_input.directory), ctx)
        return stable_json_dumps(payload)

    # ── modes ───────────────────────────────────────────────────────

    def analyze_code(self, code: str, filename: str, ctx: Optional[RunContext] = None) -> dict[str, Any]:
        tree = self.parse(code, filename)
        issues = self._engine.analyze(tree, code, filename, ctx)
        return self._payload(issues, analyzed=1, total_files=1, skipped=[], errors=[])

    def analyze_directory(self, directory: Path, ctx: Optional[RunContext] = None) -> dict[str, Any]:
        files = discover_source_files(directory)
        return self.analyze_files(files, ctx, base=directory.resolve())

    def analyze_files(
        self,
        files: list[Path],
        ctx: Optional[RunContext] = None,
        *,
        base: Optional[Path] = None,
    ) -> dict[str, Any]:
        issues: list[Issue] = []
        skipped: list[dict] = []
        errors: list[dict] = []
        analyzed = 0

        for path in files:
            if ctx is not None:
                ctx.check()
            display = _display_path(path, base)
            language = detect_language(path)
            if language not in SUPPORTED_LANGUAGES:
                skipped.append(_file_entry(display, language, "skipped", f"unsupported language: {language}"))
                continue
            try:
                code = path.read_text(encoding="utf-8")
                tree = self.parse(code, display)
            except FileNotFoundError:
                errors.append(_file_entry(display, language, STATUS_ERROR, "file not found"))
                continue
            except (OSError, UnicodeDecodeError) as exc:
                errors.append(_file_entry(display, language, STATUS_ERROR, f"cannot read file: {exc}"))
                continue
            except ToolExecutionError as exc:
                errors.append(_file_entry(display, language, STATUS_ERROR, str(exc)))
                continue
            issues.extend(self._engine.scan(tree, code, display, ctx))
            analyzed += 1

        if errors:
            _logger.warning("bug detector: %d of %d file(s) failed", len(errors), len(files))
        unique = deduplicate_issues(issues, by_file=True)
        return self._payload(
            unique, analyzed=analyzed, total_files=len(files), skipped=skipped, errors=errors, batch=True
        )

    def _payload(
        self,
        issues: list[Issue],
        *,
        analyzed: int,
        total_files: int,
        skipped: list[dict],
        errors: list[dict],
        batch: bool = False,
    ) -> dict[str, Any]:
        if errors and analyzed == 0:
            status = STATUS_ERROR
        elif errors:
            status = STATUS_PARTIAL
        else:
            status = STATUS_SUCCESS
        if batch:
            summary = batch_summary(issues, analyzed=analyzed, skipped=len(skipped), failed=len(errors))
        else:
            summary = summarize(issues, noun="potential bugs", clean="No potential bugs found.")
        if batch and analyzed == 0 and not errors:
            recommendations = [_NOTHING_ANALYZED_ADVICE]
        else:
            recommendations = build_recommendations(issues)
        return {
            "language": "python",
            "status": status,
            "total": len(issues),
            "issues": [issue.to_dict() for issue in issues],
            "summary": summary,
            "statistics": severity_statistics(issues),
            "total_files": total_files,
            "analyzed_files": analyzed,
            "skipped_files": skipped,
            "error_files": errors,
            "recommendations": recommendations,
        }


def _display_path(path: Path, base: Optional[Path]) -> str:
    if base is not None:
        try:
            return path.resolve().relative_to(base).as_posix()
        except ValueError:
            pass
    return path.as_posix()


def _file_entry(path: str, language: str, status: str, reason: str) -> dict[str, str]:
    return {"path": path, "language": language, "status": status, "reason": reason}
