"""
Tool Schemas
============
Request and response models for tool endpoints.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ToolStatusModel(BaseModel):
    """One registered tool"""

    name: str
    description: str = Field(default="")
    enabled: bool
    timeout: float = Field(..., description="Seconds; 0 means no timeout")


class RunToolRequest(BaseModel):
    """Input for a tool run; each tool reads the fields it understands"""

    code: Optional[str] = Field(default=None, description="Python source to analyze")
    filename: Optional[str] = Field(default=None, description="Name reported in issues")
    files: List[str] = Field(default_factory=list, description="bug_detector: files to analyze")
    directory: Optional[str] = Field(default=None, description="bug_detector: directory to analyze")
    file_path: Optional[str] = Field(default=None, description="test_generator: source file")
    dir_path: Optional[str] = Field(default=None, description="test_generator: source directory")
    function_name: Optional[str] = Field(default=None, description="test_generator: single target")
    mode: Optional[str] = Field(default=None, description="test_generator: basic, table-driven or mock")
    with_mock: bool = Field(default=False)
    with_coverage: bool = Field(default=False)
    write: bool = Field(default=False, description="test_generator: write files (needs ALLOW_WRITE)")
    overwrite: bool = Field(default=False)

    class Config:
        json_schema_extra = {
            "example": {
                "code": "def login():\n    password = \"admin123\"\n",
                "filename": "auth.py",
            }
        }


class RunToolResponse(BaseModel):
    """Outcome of one tool run"""

    tool: str
    success: bool
    result: Optional[Dict[str, Any]] = Field(default=None, description="Decoded tool payload")
    error: str = Field(default="")
    execution_time_ms: float = Field(default=0.0)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        json_schema_extra = {
            "example": {
                "tool": "security_scanner",
                "success": True,
                "result": {"file": "auth.py", "total": 1, "issues": []},
                "error": "",
                "execution_time_ms": 3.2,
                "metadata": {"tool": "security_scanner", "attempts": 1},
            }
        }
