"""
Pydantic Schemas
================
Request and response models for the API.
"""
from .tools import RunToolRequest, RunToolResponse, ToolStatusModel

__all__ = ["RunToolRequest", "RunToolResponse", "ToolStatusModel"]
