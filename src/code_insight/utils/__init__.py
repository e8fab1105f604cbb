"""Shared utilities for code_insight."""
