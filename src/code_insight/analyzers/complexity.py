"""Complexity analyzer — detects functions that are doing too much."""

from __future__ import annotations

import ast
import logging
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from code_insight.analyzers._astutil import is_irrefutable_case
from code_insight.core.context import RunContext
from code_insight.tools.base import BaseTool
from code_insight.tools.errors import InputValidationError
from code_insight.tools.inputs import SourceInput
from code_insight.utils.json_norm import stable_json_dumps

_logger = logging.getLogger(__name__)

# Complexity thresholds; also the bucket boundaries.
CAUTION_COMPLEXITY = 10
HIGH_COMPLEXITY = 20
CRITICAL_COMPLEXITY = 50

LONG_FUNCTION_LINES = 50
VERY_LONG_FUNCTION_LINES = 100

# Density flag: more than one decision point every two lines in a
# function of at least this length.
DENSITY_THRESHOLD = 0.5
DENSITY_MIN_LINES = 20


def cyclomatic_complexity(node: ast.AST) -> int:
    """Count decision points in a function/method body.

    CC = 1 + if/elif, conditional expressions, loop headers (comprehension
    generators and their filters included), match statements and each
    non-default case, except clauses, and one per extra and/or operand.
    Nested functions and lambdas count toward the enclosing function.
    """
    cc = 1
    for child in ast.walk(node):
        if isinstance(child, (ast.If, ast.IfExp)):
            cc += 1
        elif isinstance(child, (ast.For, ast.AsyncFor, ast.While)):
            cc += 1
        elif isinstance(child, ast.comprehension):
            cc += 1 + len(child.ifs)
        elif isinstance(child, ast.Match):
            cc += 1 + sum(1 for case in child.cases if not is_irrefutable_case(case))
        elif isinstance(child, ast.BoolOp):
            # each `and`/`or` adds a branch
            cc += len(child.values) - 1
        elif isinstance(child, ast.ExceptHandler):
            cc += 1
    return cc


def complexity_bucket(cc: int) -> str:
    if cc <= CAUTION_COMPLEXITY:
        return "simple"
    if cc <= HIGH_COMPLEXITY:
        return "medium"
    if cc <= CRITICAL_COMPLEXITY:
        return "complex"
    return "very_complex"


@dataclass(frozen=True, slots=True)
class FunctionComplexity:
    name: str
    line: int
    complexity: int
    lines: int
    issues: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "line": self.line,
            "complexity": self.complexity,
            "lines": self.lines,
            "issues": list(self.issues),
        }


def function_issues(cc: int, lines: int) -> list[str]:
    issues: list[str] = []
    if cc > CRITICAL_COMPLEXITY:
        issues.append(f"Critical: cyclomatic complexity {cc} exceeds {CRITICAL_COMPLEXITY}; split this function")
    elif cc > HIGH_COMPLEXITY:
        issues.append(f"High: cyclomatic complexity {cc} exceeds {HIGH_COMPLEXITY}; refactor into smaller functions")
    elif cc > CAUTION_COMPLEXITY:
        issues.append(f"Caution: cyclomatic complexity {cc} exceeds {CAUTION_COMPLEXITY}")

    if lines > VERY_LONG_FUNCTION_LINES:
        issues.append(f"Function is very long ({lines} lines > {VERY_LONG_FUNCTION_LINES})")
    elif lines > LONG_FUNCTION_LINES:
        issues.append(f"Function is long ({lines} lines > {LONG_FUNCTION_LINES})")

    if lines > DENSITY_MIN_LINES and cc / lines > DENSITY_THRESHOLD:
        issues.append(f"High logic density: {cc / lines:.2f} decision points per line")
    return issues


def iter_functions(
    body: list[ast.stmt], prefix: str = ""
) -> Iterator[tuple[str, ast.FunctionDef | ast.AsyncFunctionDef]]:
    """Module-level functions and methods (through nested classes), in source order."""
    for node in body:
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            yield prefix + node.name, node
        elif isinstance(node, ast.ClassDef):
            yield from iter_functions(node.body, f"{prefix}{node.name}.")


def measure(name: str, node: ast.FunctionDef | ast.AsyncFunctionDef) -> FunctionComplexity:
    cc = cyclomatic_complexity(node)
    end_line = getattr(node, "end_lineno", node.lineno) or node.lineno
    lines = end_line - node.lineno + 1
    return FunctionComplexity(
        name=name,
        line=node.lineno,
        complexity=cc,
        lines=lines,
        issues=function_issues(cc, lines),
    )


def summarize_functions(functions: list[FunctionComplexity]) -> str:
    if not functions:
        return "No functions found to analyze."
    total = sum(f.complexity for f in functions)
    average = total / len(functions)
    worst = max(functions, key=lambda f: f.complexity)
    flagged = sum(1 for f in functions if f.complexity > CAUTION_COMPLEXITY)
    head = (
        f"Analyzed {len(functions)} function(s): average complexity {average:.1f}, "
        f"highest {worst.complexity} in '{worst.name}'."
    )
    if flagged:
        return f"{head} {flagged} function(s) exceed the recommended complexity of {CAUTION_COMPLEXITY}."
    return f"{head} All functions are within the recommended complexity."


class ComplexityAnalyzer(BaseTool):
    """Computes cyclomatic complexity per function."""

    name = "complexity_analyzer"
    description = "Measure cyclomatic complexity and length of every Python function and method"
    input_type = SourceInput

    def validate_fields(self, tool_input: SourceInput) -> None:
        if not tool_input.code.strip():
            raise InputValidationError("code is required", tool=self.name)

    def run(self, tool_input: SourceInput, ctx: RunContext) -> str:
        return stable_json_dumps(self.analyze(tool_input.code, tool_input.filename, ctx))

    def analyze(self, code: str, filename: str, ctx: Optional[RunContext] = None) -> dict[str, Any]:
        tree = self.parse(code, filename)
        functions: list[FunctionComplexity] = []
        for name, node in iter_functions(tree.body):
            if ctx is not None:
                ctx.check()
            functions.append(measure(name, node))

        buckets = {"simple": 0, "medium": 0, "complex": 0, "very_complex": 0}
        for fn in functions:
            buckets[complexity_bucket(fn.complexity)] += 1

        _logger.debug("complexity of %s: %d function(s)", filename, len(functions))
        return {
            "file": filename,
            "total": len(functions),
            "total_complexity": sum(f.complexity for f in functions),
            "functions": [f.to_dict() for f in functions],
            "summary": summarize_functions(functions),
            "statistics": {
                "total_functions": len(functions),
                "simple_functions": buckets["simple"],
                "medium_functions": buckets["medium"],
                "complex_functions": buckets["complex"],
                "very_complex_functions": buckets["very_complex"],
            },
        }
