"""Input variants accepted by the built-in tools.

The set is closed: each tool declares which of these classes it accepts in
its ``input_type`` and rejects everything else during validation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from code_insight.model.issue import NO_FILE


@dataclass(frozen=True, slots=True)
class SourceInput:
    """A single in-memory source text."""

    code: str
    filename: str = NO_FILE


@dataclass(frozen=True, slots=True)
class BugDetectorInput:
    """Bug detector input: inline code, a list of files, or one directory.

    Exactly one of the three should be set.
    """

    code: str = ""
    files: tuple[str, ...] = ()
    directory: str = ""
    filename: str = NO_FILE

    @property
    def mode(self) -> str:
        if self.directory:
            return "directory"
        if self.files:
            return "files"
        return "code"


class TestMode(str, Enum):
    """Shape of the generated test skeletons."""

    __test__ = False  # not a pytest class

    BASIC = "basic"
    TABLE_DRIVEN = "table-driven"
    MOCK = "mock"


@dataclass(frozen=True, slots=True)
class GenerateRequest:
    """Test generator input.

    ``file_path`` and ``dir_path`` are mutually exclusive;
    ``function_name`` narrows a file run to one function.
    """

    file_path: str = ""
    dir_path: str = ""
    function_name: str = ""
    mode: TestMode = TestMode.TABLE_DRIVEN
    with_mock: bool = False
    with_coverage: bool = False
    write: bool = True
    overwrite: bool = False
    output_dir: Optional[str] = None
