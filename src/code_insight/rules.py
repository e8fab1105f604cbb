"""Canonical rule ID registry.

Single source of truth for every rule ID the rule engines emit.  IDs are two
upper-case letters (``SC`` security, ``BG`` bug) followed by three digits;
the first digit groups related rules.

Structure:
  SECURITY_RULE_IDS     - rules of the security scanner
  BUG_RULE_IDS          - rules of the bug detector
  HEURISTIC_RULE_IDS    - call-shape heuristics with no data-flow backing;
                          expect false positives and false negatives
  ALL_RULE_IDS          - union of the analyzer buckets
"""

from __future__ import annotations

# ── Security ────────────────────────────────────────────────────────
SC_HARDCODED_SECRET = "SC101"
SC_INFO_DISCLOSURE = "SC102"
SC_SQL_INJECTION = "SC201"
SC_COMMAND_INJECTION = "SC202"
SC_EVAL = "SC203"
SC_FILE_PERMISSIONS = "SC301"
SC_WEAK_RANDOM = "SC401"
SC_WEAK_CRYPTO = "SC501"
SC_UNSAFE_DESERIALIZATION = "SC601"
SC_INSECURE_HTTP = "SC701"

# ── Bugs ────────────────────────────────────────────────────────────
BG_IGNORED_EXCEPTION = "BG101"
BG_BARE_EXCEPT = "BG102"
BG_UNCLOSED_RESOURCE = "BG201"
BG_MATCH_WITHOUT_DEFAULT = "BG301"
BG_NONE_DEREFERENCE = "BG401"
BG_MUTABLE_DEFAULT = "BG501"
BG_IS_LITERAL = "BG502"

# ── Buckets ─────────────────────────────────────────────────────────

SECURITY_RULE_IDS: list[str] = sorted([
    SC_HARDCODED_SECRET,
    SC_INFO_DISCLOSURE,
    SC_SQL_INJECTION,
    SC_COMMAND_INJECTION,
    SC_EVAL,
    SC_FILE_PERMISSIONS,
    SC_WEAK_RANDOM,
    SC_WEAK_CRYPTO,
    SC_UNSAFE_DESERIALIZATION,
    SC_INSECURE_HTTP,
])

BUG_RULE_IDS: list[str] = sorted([
    BG_IGNORED_EXCEPTION,
    BG_BARE_EXCEPT,
    BG_UNCLOSED_RESOURCE,
    BG_MATCH_WITHOUT_DEFAULT,
    BG_NONE_DEREFERENCE,
    BG_MUTABLE_DEFAULT,
    BG_IS_LITERAL,
])

HEURISTIC_RULE_IDS: list[str] = sorted([
    BG_UNCLOSED_RESOURCE,
    BG_NONE_DEREFERENCE,
])

ALL_RULE_IDS: list[str] = sorted(set(SECURITY_RULE_IDS + BUG_RULE_IDS))


def _assert_rule_registry_invariants() -> None:
    """Fail fast on invariant violations.

    Called at import time so a colliding or malformed ID never ships.
    """
    import re

    rule_re = re.compile(r"^[A-Z]{2}[0-9]{3}$")

    def _check_bucket(name: str, ids: list[str]) -> None:
        if ids != sorted(ids):
            raise AssertionError(f"{name} must be sorted")
        if len(ids) != len(set(ids)):
            raise AssertionError(f"{name} must contain unique IDs")
        bad = [x for x in ids if not rule_re.match(x)]
        if bad:
            raise AssertionError(f"{name} contains invalid rule IDs: {bad}")

    _check_bucket("SECURITY_RULE_IDS", SECURITY_RULE_IDS)
    _check_bucket("BUG_RULE_IDS", BUG_RULE_IDS)
    _check_bucket("HEURISTIC_RULE_IDS", HEURISTIC_RULE_IDS)
    _check_bucket("ALL_RULE_IDS", ALL_RULE_IDS)

    overlap = set(SECURITY_RULE_IDS) & set(BUG_RULE_IDS)
    if overlap:
        raise AssertionError(f"analyzer buckets must be disjoint; overlaps: {sorted(overlap)}")
    if not set(HEURISTIC_RULE_IDS) <= set(ALL_RULE_IDS):
        raise AssertionError("HEURISTIC_RULE_IDS must be a subset of ALL_RULE_IDS")


_assert_rule_registry_invariants()
