"""
Code Insight Web API
====================
FastAPI-based REST API over the tool manager.

Quick Start:
    uvicorn code_insight.web_api.main:app --reload
"""
from .main import app, create_app

__all__ = ["app", "create_app"]
