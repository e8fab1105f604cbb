"""
API Routers
===========
Each router handles a specific domain of the API.
"""
from . import health, tools

__all__ = ["health", "tools"]
