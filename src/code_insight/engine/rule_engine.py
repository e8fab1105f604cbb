"""RuleEngine — applies an ordered set of rules in one tree traversal.

Every rule sees every node (filtered by its ``node_types``) in registration
order during a single depth-first, pre-order walk.  Matches become issues
immediately and are deduplicated by ``(rule_id, line)`` afterwards, first
occurrence winning.
"""

from __future__ import annotations

import ast
import logging
from collections import Counter
from typing import Iterable, Optional

from code_insight.core.context import RunContext
from code_insight.engine.rule import Rule, RuleContext
from code_insight.model import Severity
from code_insight.model.issue import NO_FILE, Issue, make_issue_id, make_snippet

_logger = logging.getLogger(__name__)

# Nodes visited between deadline/cancellation checks.
CHECK_INTERVAL = 256


class RuleEngine:
    def __init__(self, rules: Iterable[Rule], *, id_prefix: str) -> None:
        self._rules: tuple[Rule, ...] = tuple(rules)
        self._id_prefix = id_prefix
        counts = Counter(rule.id for rule in self._rules)
        duplicates = sorted(rule_id for rule_id, n in counts.items() if n > 1)
        if duplicates:
            raise ValueError(f"duplicate rule ids: {', '.join(duplicates)}")
        missing = [repr(rule) for rule in self._rules if not rule.id]
        if missing:
            raise ValueError(f"rules without an id: {', '.join(missing)}")

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    @property
    def rule_ids(self) -> tuple[str, ...]:
        return tuple(rule.id for rule in self._rules)

    def analyze(
        self,
        tree: ast.AST,
        source: str,
        filename: str = NO_FILE,
        ctx: Optional[RunContext] = None,
    ) -> list[Issue]:
        """Traverse *tree* once and return the deduplicated issues."""
        return deduplicate_issues(self.scan(tree, source, filename, ctx))

    def scan(
        self,
        tree: ast.AST,
        source: str,
        filename: str = NO_FILE,
        ctx: Optional[RunContext] = None,
    ) -> list[Issue]:
        """Traverse *tree* once and return every raw match, in visit order."""
        rctx = RuleContext(source, filename)
        issues: list[Issue] = []
        stack: list[ast.AST] = [tree]
        visited = 0

        while stack:
            node = stack.pop()
            visited += 1
            if ctx is not None and visited % CHECK_INTERVAL == 0:
                ctx.check()

            for rule in self._rules:
                if isinstance(node, rule.node_types) and rule.match(node, rctx):
                    issues.append(self._make_issue(rule, node, rctx))

            children = list(ast.iter_child_nodes(node))
            for child in children:
                rctx.parents[id(child)] = node
            stack.extend(reversed(children))

        _logger.debug("%s: visited %d nodes, %d raw matches", filename, visited, len(issues))
        return issues

    def _make_issue(self, rule: Rule, node: ast.AST, rctx: RuleContext) -> Issue:
        line = getattr(node, "lineno", 1)
        return Issue(
            id=make_issue_id(self._id_prefix, rctx.offset(node), rule.id, rctx.filename),
            rule_id=rule.id,
            severity=rule.severity,
            category=str(rule.category),
            description=rule.description,
            file=rctx.filename,
            line=line,
            function=rctx.enclosing_function(node),
            code_snippet=make_snippet(rctx.line_text(line)),
            suggestion=rule.suggestion,
            confidence=rule.confidence,
        )


def deduplicate_issues(issues: Iterable[Issue], *, by_file: bool = False) -> list[Issue]:
    """Keep the first issue for each ``(rule_id, line)`` (plus file when *by_file*)."""
    seen: set[tuple] = set()
    unique: list[Issue] = []
    for issue in issues:
        key = issue.file_dedup_key if by_file else issue.dedup_key
        if key in seen:
            continue
        seen.add(key)
        unique.append(issue)
    return unique


def severity_statistics(issues: Iterable[Issue]) -> dict[str, int]:
    counts = Counter(issue.severity for issue in issues)
    stats = {"total_issues": sum(counts.values())}
    for severity in Severity:
        stats[severity.name.lower()] = counts.get(severity, 0)
    return stats


def summarize(issues: list[Issue], *, noun: str, clean: str) -> str:
    """One-line summary naming the total and each severity present.

    *clean* is returned verbatim when there are no issues.
    """
    if not issues:
        return clean
    counts = Counter(issue.severity for issue in issues)
    parts = [f"{counts[s]} {s.value}" for s in sorted(counts, key=lambda s: s.rank)]
    plural = noun if len(issues) != 1 else noun.rstrip("s")
    return f"Found {len(issues)} {plural}: {', '.join(parts)}."
