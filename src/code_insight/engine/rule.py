"""Rule base class and the per-run traversal context rules read from."""

from __future__ import annotations

import ast
import re
from typing import ClassVar, Iterator, Optional

from code_insight.model import Confidence, Severity
from code_insight.model.issue import NO_FILE

MODULE_SCOPE = ""

# line terminators as the tokenizer sees them; form feeds and \u2028 are not breaks
_LINE_BREAK = re.compile(r"\r\n|\r|\n")


class RuleContext:
    """Per-run view of the source being traversed.

    The parent map is filled in by the engine as it descends, so a rule
    can always see the ancestors of the node it is looking at.
    """

    def __init__(self, source: str, filename: str = NO_FILE) -> None:
        self.source = source
        self.filename = filename
        self.lines, self._line_offsets = split_source_lines(source)
        self.parents: dict[int, ast.AST] = {}

    def parent(self, node: ast.AST) -> Optional[ast.AST]:
        return self.parents.get(id(node))

    def ancestors(self, node: ast.AST) -> Iterator[ast.AST]:
        current = self.parents.get(id(node))
        while current is not None:
            yield current
            current = self.parents.get(id(current))

    def enclosing_function(self, node: ast.AST) -> str:
        """Name of the nearest enclosing ``def``; empty at module scope."""
        for ancestor in self.ancestors(node):
            if isinstance(ancestor, (ast.FunctionDef, ast.AsyncFunctionDef)):
                return ancestor.name
        return MODULE_SCOPE

    def line_text(self, lineno: int) -> str:
        if 1 <= lineno <= len(self.lines):
            return self.lines[lineno - 1]
        return ""

    def offset(self, node: ast.AST) -> int:
        """Byte offset of *node* from the start of the source."""
        lineno = getattr(node, "lineno", 1)
        col = getattr(node, "col_offset", 0)
        if 1 <= lineno <= len(self._line_offsets):
            return self._line_offsets[lineno - 1] + col
        return col


def split_source_lines(source: str) -> tuple[list[str], list[int]]:
    """Source lines (without terminators) and the byte offset each one starts at."""
    lines: list[str] = []
    offsets: list[int] = []
    position = 0
    start = 0
    for brk in _LINE_BREAK.finditer(source):
        lines.append(source[start : brk.start()])
        offsets.append(position)
        position += len(source[start : brk.end()].encode("utf-8"))
        start = brk.end()
    if start < len(source):
        lines.append(source[start:])
        offsets.append(position)
    return lines, offsets or [0]


class Rule:
    """A stateless predicate over one syntax-tree node.

    Subclasses set the class attributes and implement :meth:`match`.
    ``node_types`` narrows which nodes ``match`` is called for.
    """

    id: ClassVar[str] = ""
    name: ClassVar[str] = ""
    severity: ClassVar[Severity] = Severity.LOW
    category: ClassVar[str] = ""
    description: ClassVar[str] = ""
    suggestion: ClassVar[str] = ""
    confidence: ClassVar[Optional[Confidence]] = None
    node_types: ClassVar[tuple[type, ...]] = (ast.AST,)

    def match(self, node: ast.AST, ctx: RuleContext) -> bool:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id}>"
