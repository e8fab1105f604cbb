"""Centralized exit-code contract for all CLI commands.

Code  Meaning
----  -------
  0   Success — analysis ran; nothing at or above the --fail-on severity
  1   Violation — issues at or above the --fail-on severity were found
  2   Error — usage error, missing file, dispatch or tool failure
"""

from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    VIOLATION = 1
    ERROR = 2
