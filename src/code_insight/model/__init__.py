"""Enums shared across the tools, rule engine and report layers."""

from __future__ import annotations

from enum import Enum


class Severity(str, Enum):
    """Issue severity, ordered from most to least urgent."""

    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @classmethod
    def parse(cls, value: str) -> "Severity":
        """Case-insensitive lookup (``"high"`` → ``Severity.HIGH``)."""
        for member in cls:
            if member.value.lower() == value.strip().lower():
                return member
        raise ValueError(f"unknown severity: {value!r}")


_SEVERITY_RANK = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
}


class Confidence(str, Enum):
    """How likely a bug-rule match is a real defect."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Category(str, Enum):
    """Issue categories used by the security and bug catalogues."""

    CREDENTIALS = "Credentials"
    DATA_PRIVACY = "Data Privacy"
    INJECTION = "Injection"
    FILE_SYSTEM = "File System"
    CRYPTOGRAPHY = "Cryptography"
    DESERIALIZATION = "Deserialization"
    NETWORK = "Network Security"
    ERROR_HANDLING = "Error Handling"
    RESOURCE_MANAGEMENT = "Resource Management"
    CONTROL_FLOW = "Control Flow"
    NULL_SAFETY = "Null Safety"
    FUNCTION_DESIGN = "Function Design"
    LOGIC = "Logic"
