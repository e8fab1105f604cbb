"""Small syntactic helpers shared by the rule catalogues."""

from __future__ import annotations

import ast
import re
from typing import Optional

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def dotted_name(node: ast.AST) -> str:
    """``os.path.join`` for the matching Attribute/Name chain, else ``""``."""
    parts: list[str] = []
    while isinstance(node, ast.Attribute):
        parts.append(node.attr)
        node = node.value
    if isinstance(node, ast.Name):
        parts.append(node.id)
        return ".".join(reversed(parts))
    return ""


def call_name(call: ast.Call) -> str:
    return dotted_name(call.func)


def attr_name(call: ast.Call) -> str:
    """Last segment of the called name (``run`` for ``subprocess.run``)."""
    func = call.func
    if isinstance(func, ast.Attribute):
        return func.attr
    if isinstance(func, ast.Name):
        return func.id
    return ""


def get_string_value(node: Optional[ast.AST]) -> Optional[str]:
    """Extract string value from AST node if it's a constant string."""
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        return node.value
    return None


def get_keyword(call: ast.Call, name: str) -> Optional[ast.expr]:
    for kw in call.keywords:
        if kw.arg == name:
            return kw.value
    return None


def get_argument(call: ast.Call, position: int, keyword: str) -> Optional[ast.expr]:
    """The argument passed positionally at *position* or as *keyword*."""
    if len(call.args) > position and not any(isinstance(a, ast.Starred) for a in call.args[: position + 1]):
        return call.args[position]
    return get_keyword(call, keyword)


def is_true_constant(node: Optional[ast.AST]) -> bool:
    return isinstance(node, ast.Constant) and node.value is True


def is_false_constant(node: Optional[ast.AST]) -> bool:
    return isinstance(node, ast.Constant) and node.value is False


def name_segments(identifier: str) -> list[str]:
    """Split ``dbPassword`` / ``DB_PASSWORD`` into lower-case words."""
    words: list[str] = []
    for chunk in identifier.split("_"):
        if chunk:
            words.extend(w.lower() for w in _CAMEL_BOUNDARY.split(chunk) if w)
    return words


def target_names(node: ast.AST) -> list[str]:
    """Identifiers an assignment target binds or writes to."""
    if isinstance(node, ast.Name):
        return [node.id]
    if isinstance(node, ast.Attribute):
        return [node.attr]
    if isinstance(node, ast.Subscript):
        key = get_string_value(node.slice)
        return [key] if key else []
    if isinstance(node, (ast.Tuple, ast.List)):
        names: list[str] = []
        for elt in node.elts:
            names.extend(target_names(elt))
        return names
    return []


def referenced_names(node: ast.AST) -> list[str]:
    """Every Name id and Attribute attr read anywhere inside *node*."""
    names: list[str] = []
    for child in ast.walk(node):
        if isinstance(child, ast.Name):
            names.append(child.id)
        elif isinstance(child, ast.Attribute):
            names.append(child.attr)
    return names


def joined_str_template(node: ast.JoinedStr) -> str:
    """Literal text of an f-string with each placeholder replaced by ``?``."""
    parts: list[str] = []
    for value in node.values:
        text = get_string_value(value)
        parts.append(text if text is not None else "?")
    return "".join(parts)


def is_mutable_literal(node: ast.AST) -> bool:
    return isinstance(node, (ast.List, ast.Dict, ast.Set, ast.ListComp, ast.DictComp, ast.SetComp))


_MUTABLE_CONSTRUCTORS = frozenset(
    {
        "list",
        "dict",
        "set",
        "bytearray",
        "defaultdict",
        "OrderedDict",
        "Counter",
        "deque",
        "collections.defaultdict",
        "collections.OrderedDict",
        "collections.Counter",
        "collections.deque",
    }
)


def is_mutable_constructor_call(node: ast.AST) -> bool:
    return isinstance(node, ast.Call) and call_name(node) in _MUTABLE_CONSTRUCTORS


def is_irrefutable_case(case: ast.match_case) -> bool:
    """``case _:`` or a bare capture pattern, without a guard."""
    pattern = case.pattern
    return case.guard is None and isinstance(pattern, ast.MatchAs) and pattern.pattern is None
