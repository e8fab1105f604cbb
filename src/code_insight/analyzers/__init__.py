"""Analyzers — the built-in tools.

Each analyzer is a ``BaseTool`` subclass exposing ``name``, ``description``,
``input_type``, ``validate`` and ``run``:

    - ComplexityAnalyzer: cyclomatic complexity and length per function
    - SecurityScanner: security rule catalogue (SC*)
    - BugDetector: bug-pattern rule catalogue (BG*), single file or batch
    - TestGenerator: pytest skeletons from function signatures
"""

from __future__ import annotations

from code_insight.analyzers.bugs import BugDetector
from code_insight.analyzers.complexity import ComplexityAnalyzer
from code_insight.analyzers.security import SecurityScanner
from code_insight.analyzers.testgen import TestGenerator

__all__ = ["BugDetector", "ComplexityAnalyzer", "SecurityScanner", "TestGenerator"]
