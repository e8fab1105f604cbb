"""Issue — one deduplicated finding produced by a rule engine run."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Optional

from . import Confidence, Severity

# Snippets longer than this are cut and suffixed with "..."
SNIPPET_MAX_CHARS = 100

NO_FILE = "<code>"


@dataclass(frozen=True, slots=True)
class Issue:
    """Immutable finding with location and remediation text."""

    id: str
    rule_id: str
    severity: Severity
    category: str
    description: str
    file: str
    line: int
    function: str
    code_snippet: str
    suggestion: str
    confidence: Optional[Confidence] = None

    @property
    def dedup_key(self) -> tuple[str, int]:
        return (self.rule_id, self.line)

    @property
    def file_dedup_key(self) -> tuple[str, str, int]:
        return (self.rule_id, self.file, self.line)

    # ── serialisation ───────────────────────────────────────────────

    def to_dict(self) -> dict:
        d: dict = {
            "id": self.id,
            "rule_id": self.rule_id,
            "severity": self.severity.value,
            "category": self.category,
            "description": self.description,
            "file": self.file,
            "line": self.line,
            "function": self.function,
            "code_snippet": self.code_snippet,
            "suggestion": self.suggestion,
        }
        if self.confidence is not None:
            d["confidence"] = self.confidence.value
        return d


def make_issue_id(prefix: str, offset: int, rule_id: str, filename: str = NO_FILE) -> str:
    """Build a per-run unique issue id from the node's byte offset.

    In multi-file mode two files can share an offset, so a short hash of
    the file name is mixed in.
    """
    base = f"{prefix}-{offset}-{rule_id}"
    if filename and filename != NO_FILE:
        digest = hashlib.sha256(filename.replace("\\", "/").encode()).hexdigest()[:8]
        return f"{base}-{digest}"
    return base


def make_snippet(line_text: str) -> str:
    snippet = line_text.strip()
    if len(snippet) > SNIPPET_MAX_CHARS:
        return snippet[:SNIPPET_MAX_CHARS] + "..."
    return snippet
