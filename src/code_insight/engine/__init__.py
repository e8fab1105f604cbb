"""Rule engine shared by the security and bug analyzers."""

from code_insight.engine.rule import Rule, RuleContext
from code_insight.engine.rule_engine import (
    RuleEngine,
    deduplicate_issues,
    severity_statistics,
    summarize,
)

__all__ = [
    "Rule",
    "RuleContext",
    "RuleEngine",
    "deduplicate_issues",
    "severity_statistics",
    "summarize",
]
