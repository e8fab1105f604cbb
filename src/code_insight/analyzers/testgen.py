"""Test generator — pytest skeletons from function signatures.

Three modes:

- ``basic`` — one test per function with a call stub
- ``table-driven`` — ``@pytest.mark.parametrize`` over the parameters plus
  an ``expected`` column, and a ``pytest.raises`` test for each exception
  the function raises explicitly
- ``mock`` — table-driven, with ``create_autospec`` fixtures for parameters
  annotated with project types

The generator writes ``test_<module>.py`` next to the source (or into
``output_dir``) and never overwrites an existing file unless asked to.  It
does not run the tests it writes.
"""

from __future__ import annotations

import ast
import builtins
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from string import Template
from typing import Any, Optional

from code_insight.core.context import RunContext
from code_insight.core.discover import discover_py_files, is_test_file
from code_insight.tools.base import BaseTool
from code_insight.tools.errors import InputValidationError, ToolExecutionError
from code_insight.tools.inputs import GenerateRequest, TestMode
from code_insight.utils.json_norm import stable_json_dumps

_logger = logging.getLogger(__name__)

_BUILTIN_TYPE_NAMES = frozenset(
    {
        "int", "float", "complex", "str", "bytes", "bytearray", "bool", "list", "dict", "set",
        "frozenset", "tuple", "object", "type", "None", "Any", "Optional", "Union", "Callable",
        "Iterable", "Iterator", "Sequence", "Mapping", "Path",
    }
)

_CAMEL = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


# ── Signatures ──────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Parameter:
    name: str
    annotation: str = ""
    default: Optional[str] = None
    kind: str = "positional_or_keyword"

    @property
    def is_variadic(self) -> bool:
        return self.kind in ("var_positional", "var_keyword")


@dataclass(frozen=True, slots=True)
class FunctionSignature:
    name: str
    params: tuple[Parameter, ...]
    returns: str = ""
    class_name: str = ""
    is_async: bool = False
    binding: str = "function"  # function | method | staticmethod | classmethod
    raises: tuple[str, ...] = ()
    docstring: str = ""
    lineno: int = 0

    @property
    def qualified_name(self) -> str:
        return f"{self.class_name}.{self.name}" if self.class_name else self.name

    @property
    def call_params(self) -> tuple[Parameter, ...]:
        return tuple(p for p in self.params if not p.is_variadic)


def _unparse(node: Optional[ast.AST]) -> str:
    return ast.unparse(node) if node is not None else ""


def _parameters(args: ast.arguments, skip_first: bool) -> tuple[Parameter, ...]:
    params: list[Parameter] = []
    positional = [*args.posonlyargs, *args.args]
    defaults: list[Optional[ast.expr]] = [None] * (len(positional) - len(args.defaults)) + list(args.defaults)
    for index, (arg, default) in enumerate(zip(positional, defaults)):
        if skip_first and index == 0:
            continue
        kind = "positional_only" if index < len(args.posonlyargs) else "positional_or_keyword"
        params.append(Parameter(arg.arg, _unparse(arg.annotation), _unparse(default) or None, kind))
    if args.vararg is not None:
        params.append(Parameter(args.vararg.arg, _unparse(args.vararg.annotation), None, "var_positional"))
    for arg, default in zip(args.kwonlyargs, args.kw_defaults):
        params.append(Parameter(arg.arg, _unparse(arg.annotation), _unparse(default) or None, "keyword_only"))
    if args.kwarg is not None:
        params.append(Parameter(args.kwarg.arg, _unparse(args.kwarg.annotation), None, "var_keyword"))
    return tuple(params)


def _raised_exceptions(node: ast.AST) -> tuple[str, ...]:
    names: list[str] = []
    for child in ast.walk(node):
        if isinstance(child, ast.Raise) and child.exc is not None:
            exc = child.exc.func if isinstance(child.exc, ast.Call) else child.exc
            name = _unparse(exc)
            if name and name not in names:
                names.append(name)
    return tuple(names)


def _binding(node: ast.FunctionDef | ast.AsyncFunctionDef, in_class: bool) -> str:
    if not in_class:
        return "function"
    decorators = {_unparse(d) for d in node.decorator_list}
    if "staticmethod" in decorators:
        return "staticmethod"
    if "classmethod" in decorators:
        return "classmethod"
    return "method"


def extract_functions(tree: ast.Module) -> list[FunctionSignature]:
    """Module-level functions and methods of module-level classes."""
    found: list[FunctionSignature] = []

    def visit(node: ast.FunctionDef | ast.AsyncFunctionDef, class_name: str) -> None:
        binding = _binding(node, bool(class_name))
        found.append(
            FunctionSignature(
                name=node.name,
                params=_parameters(node.args, skip_first=binding in ("method", "classmethod")),
                returns=_unparse(node.returns),
                class_name=class_name,
                is_async=isinstance(node, ast.AsyncFunctionDef),
                binding=binding,
                raises=_raised_exceptions(node),
                docstring=ast.get_docstring(node) or "",
                lineno=node.lineno,
            )
        )

    for stmt in tree.body:
        if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
            visit(stmt, "")
        elif isinstance(stmt, ast.ClassDef):
            for member in stmt.body:
                if isinstance(member, (ast.FunctionDef, ast.AsyncFunctionDef)):
                    visit(member, stmt.name)
    return found


def is_testable(sig: FunctionSignature) -> bool:
    """Public, non-test functions of public classes."""
    if sig.name.startswith(("_", "test")) or sig.class_name.startswith(("_", "Test")):
        return False
    return True


# ── Rendering ───────────────────────────────────────────────────────────

_HEADER = Template('''"""Tests for ${module}.

Generated by code-insight (${mode} mode).  Replace the placeholder values
with real cases before relying on these tests.
"""

${imports}
''')

_BASIC = Template('''

def ${test_name}():
    ${arrange}result = ${call}
    assert result is not None  # replace with a real assertion
''')

_TABLE = Template('''

@pytest.mark.parametrize(
    "${columns}",
    [
        pytest.param(${values}, id="${case_id}"),
    ],
)
def ${test_name}(${arguments}):
    assert ${call} == ${expected}
''')

_RAISES = Template('''

def ${test_name}(${fixtures}):
    ${arrange}with pytest.raises(${exc}):
        ${call}
''')

_FIXTURE = Template('''

@pytest.fixture
def ${fixture}():
    return create_autospec(${target}, instance=True)
''')


def _snake(name: str) -> str:
    return _CAMEL.sub("_", name).lower()


def _test_name(sig: FunctionSignature) -> str:
    if sig.class_name:
        return f"test_{_snake(sig.class_name)}_{sig.name}"
    return f"test_{sig.name}"


def _is_mockable(annotation: str) -> bool:
    if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*", annotation):
        return False
    return annotation.rsplit(".", 1)[-1] not in _BUILTIN_TYPE_NAMES


def _builtin_exception(name: str) -> bool:
    obj = getattr(builtins, name, None)
    return isinstance(obj, type) and issubclass(obj, BaseException)


class _Renderer:
    """Renders one test module; holds the imports the tests need."""

    def __init__(self, module: str, mode: TestMode) -> None:
        self.module = module
        self.mode = mode
        self.names: set[str] = set()
        self.needs_asyncio = False
        self.needs_autospec = False
        self.needs_module = False
        self.fixtures: dict[str, str] = {}
        self.test_names: list[str] = []
        self.body: list[str] = []

    def _call(self, sig: FunctionSignature, arguments: dict[str, str]) -> str:
        if sig.class_name:
            self.names.add(sig.class_name)
            owner = f"{sig.class_name}()" if sig.binding == "method" else sig.class_name
            target = f"{owner}.{sig.name}"
        else:
            self.names.add(sig.name)
            target = sig.name
        args = []
        for p in sig.call_params:
            value = arguments[p.name]
            args.append(value if p.kind == "positional_only" else f"{p.name}={value}")
        call = f"{target}({', '.join(args)})"
        if sig.is_async:
            self.needs_asyncio = True
            call = f"asyncio.run({call})"
        return call

    def _mocked(self, sig: FunctionSignature) -> dict[str, str]:
        """Parameter name → fixture name for autospec'd parameters."""
        if self.mode is not TestMode.MOCK:
            return {}
        mocked: dict[str, str] = {}
        for p in sig.call_params:
            if p.annotation and _is_mockable(p.annotation):
                fixture = f"mock_{p.name}"
                self.fixtures.setdefault(fixture, f"{self.module}.{p.annotation}")
                self.needs_autospec = True
                self.needs_module = True
                mocked[p.name] = fixture
        return mocked

    def _unique(self, name: str) -> str:
        candidate, n = name, 2
        while candidate in self.test_names:
            candidate, n = f"{name}_{n}", n + 1
        self.test_names.append(candidate)
        return candidate

    def render_function(self, sig: FunctionSignature) -> list[str]:
        """Render the tests for *sig*; returns their names."""
        chunks: list[str] = []
        mocked = self._mocked(sig)
        fixtures = ", ".join(mocked.values())
        placeholder = {p.name: (mocked.get(p.name) or p.default or "None") for p in sig.call_params}
        arrange = "# arrange: build real inputs\n    " if sig.call_params else ""
        names: list[str] = []

        if self.mode is TestMode.BASIC:
            name = self._unique(_test_name(sig))
            chunks.append(
                _BASIC.substitute(
                    test_name=name,
                    arrange=arrange,
                    call=self._call(sig, placeholder),
                )
            )
            names.append(name)
        else:
            columns = [p.name for p in sig.call_params if p.name not in mocked]
            expected = "expected" if "expected" not in columns else "expected_result"
            table_columns = [*columns, expected]
            values = [placeholder[c] for c in columns] + ["None"]
            arguments = {p.name: (mocked.get(p.name) or p.name) for p in sig.call_params}
            name = self._unique(_test_name(sig))
            chunks.append(
                _TABLE.substitute(
                    columns=", ".join(table_columns),
                    values=", ".join(values),
                    case_id=f"{sig.name}-case-1",
                    test_name=name,
                    arguments=", ".join([*table_columns, *mocked.values()]),
                    call=self._call(sig, arguments),
                    expected=expected,
                )
            )
            names.append(name)

            for exc in sig.raises:
                if _builtin_exception(exc):
                    exc_name = exc
                else:
                    exc_name = f"{self.module}.{exc}"
                    self.needs_module = True
                raises_name = self._unique(f"{_test_name(sig)}_raises_{_snake(exc.rsplit('.', 1)[-1])}")
                chunks.append(
                    _RAISES.substitute(
                        test_name=raises_name,
                        fixtures=fixtures,
                        arrange=arrange,
                        exc=exc_name,
                        call=self._call(sig, placeholder),
                    )
                )
                names.append(raises_name)

        self.body.extend(chunks)
        return names

    def module_source(self) -> str:
        stdlib = []
        if self.needs_asyncio:
            stdlib.append("import asyncio")
        if self.needs_autospec:
            stdlib.append("from unittest.mock import create_autospec")
        local = []
        if self.needs_module:
            local.append(f"import {self.module}")
        if self.names:
            local.append(f"from {self.module} import {', '.join(sorted(self.names))}")
        groups = [stdlib, ["import pytest"], local]
        imports = "\n\n".join("\n".join(group) for group in groups if group)
        header = _HEADER.substitute(module=self.module, mode=self.mode.value, imports=imports)
        fixtures = [_FIXTURE.substitute(fixture=f, target=t) for f, t in sorted(self.fixtures.items())]
        return header + "".join(fixtures) + "".join(self.body)


def render_tests(module: str, functions: list[FunctionSignature], mode: TestMode) -> tuple[str, list[dict]]:
    """Render a test module; returns the source and one entry per test."""
    renderer = _Renderer(module, mode)
    tests: list[dict] = []
    for sig in functions:
        for test_name in renderer.render_function(sig):
            tests.append({"function": sig.qualified_name, "test_name": test_name})
    return renderer.module_source(), tests


def mock_suggestions(functions: list[FunctionSignature]) -> list[dict]:
    suggestions = []
    for sig in functions:
        for p in sig.call_params:
            if p.annotation and _is_mockable(p.annotation):
                suggestions.append(
                    {
                        "function": sig.qualified_name,
                        "parameter": p.name,
                        "type": p.annotation,
                        "suggestion": f"create_autospec({p.annotation}, instance=True)",
                    }
                )
    return suggestions


# ── Tool ────────────────────────────────────────────────────────────────


class TestGenerator(BaseTool):
    """Generates pytest skeletons for a file, one function, or a directory."""

    __test__ = False  # not a pytest class

    name = "test_generator"
    description = "Generate table-driven pytest skeletons from Python function signatures"
    input_type = GenerateRequest

    def validate_fields(self, request: GenerateRequest) -> None:
        if bool(request.file_path) == bool(request.dir_path):
            raise InputValidationError("exactly one of file_path or dir_path is required", tool=self.name)
        if request.function_name and not request.file_path:
            raise InputValidationError("function_name requires file_path", tool=self.name)
        try:
            TestMode(request.mode)
        except ValueError:
            modes = ", ".join(m.value for m in TestMode)
            raise InputValidationError(f"invalid mode {request.mode!r} (expected one of: {modes})", tool=self.name) from None
        if request.file_path:
            path = Path(request.file_path)
            if not path.is_file():
                raise InputValidationError(f"file not found: {request.file_path}", tool=self.name)
            if path.suffix != ".py":
                raise InputValidationError(f"not a Python file: {request.file_path}", tool=self.name)
        if request.dir_path and not Path(request.dir_path).is_dir():
            raise InputValidationError(f"directory not found: {request.dir_path}", tool=self.name)

    def run(self, request: GenerateRequest, ctx: RunContext) -> str:
        return stable_json_dumps(self.generate(request, ctx))

    def generate(self, request: GenerateRequest, ctx: Optional[RunContext] = None) -> dict[str, Any]:
        mode = TestMode(request.mode)
        if request.file_path:
            sources = [Path(request.file_path)]
        else:
            sources = discover_py_files(Path(request.dir_path), include_tests=False)

        generated: list[str] = []
        skipped: list[dict] = []
        errors: list[dict] = []
        tests: list[dict] = []
        rendered: dict[str, str] = {}
        all_targets: list[FunctionSignature] = []

        for source in sources:
            if ctx is not None:
                ctx.check()
            try:
                targets = self._targets(source, request.function_name)
            except ToolExecutionError as exc:
                if request.file_path:
                    raise
                errors.append({"path": source.as_posix(), "reason": str(exc)})
                continue
            if not targets:
                skipped.append({"path": source.as_posix(), "reason": "no public functions"})
                continue

            test_path = self._test_path(source, request.output_dir)
            text, entries = render_tests(source.stem, targets, mode)
            if request.write:
                if test_path.exists() and not request.overwrite:
                    skipped.append({"path": test_path.as_posix(), "reason": "test file already exists"})
                    continue
                test_path.parent.mkdir(parents=True, exist_ok=True)
                test_path.write_text(text, encoding="utf-8")
                _logger.info("wrote %s (%d test(s))", test_path, len(entries))
            else:
                rendered[test_path.as_posix()] = text

            generated.append(test_path.as_posix())
            all_targets.extend(targets)
            tests.extend({**entry, "file": test_path.as_posix()} for entry in entries)

        payload: dict[str, Any] = {
            "mode": mode.value,
            "generated_files": generated,
            "skipped_files": skipped,
            "error_files": errors,
            "test_case_count": len(tests),
            "tests": tests,
            "mock_suggestions": mock_suggestions(all_targets) if request.with_mock else [],
            "coverage": self._coverage_hint(generated, sources) if request.with_coverage else None,
            "summary": self._summary(tests, all_targets, generated),
        }
        if not request.write:
            payload["sources"] = rendered
        return payload

    def _targets(self, source: Path, function_name: str) -> list[FunctionSignature]:
        try:
            code = source.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ToolExecutionError(f"cannot read {source}: {exc}", tool=self.name) from exc
        functions = extract_functions(self.parse(code, source.as_posix()))
        if function_name:
            selected = [f for f in functions if function_name in (f.name, f.qualified_name)]
            if not selected:
                raise ToolExecutionError(f"function {function_name!r} not found in {source}", tool=self.name)
            return selected[:1]
        return [f for f in functions if is_testable(f)]

    @staticmethod
    def _test_path(source: Path, output_dir: Optional[str]) -> Path:
        directory = Path(output_dir) if output_dir else source.parent
        return directory / f"test_{source.stem}.py"

    @staticmethod
    def _coverage_hint(generated: list[str], sources: list[Path]) -> dict[str, Any]:
        modules = sorted({s.stem for s in sources if not is_test_file(s)})
        cov = " ".join(f"--cov={m}" for m in modules)
        return {
            "command": f"pytest {cov} --cov-report=term-missing {' '.join(generated)}".replace("  ", " ").strip(),
            "note": "Coverage is not measured by the generator; run the command to collect it.",
        }

    @staticmethod
    def _summary(tests: list[dict], targets: list[FunctionSignature], generated: list[str]) -> str:
        if not tests:
            return "No testable functions found."
        return f"Generated {len(tests)} test(s) for {len(targets)} function(s) in {len(generated)} file(s)."
