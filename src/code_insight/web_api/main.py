"""
FastAPI Application
===================
Main entry point for the Code Insight API.

Run with:
    uvicorn code_insight.web_api.main:app --reload
"""
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from code_insight import __version__
from code_insight.api import build_tool_manager
from code_insight.core.config import load_config
from code_insight.tools.manager import ToolManager
from code_insight.web_api.config import settings
from code_insight.web_api.routers import health, tools


def create_app(manager: Optional[ToolManager] = None) -> FastAPI:
    """Build the application around *manager* (the built-in tools by default)."""
    if manager is None:
        manager = build_tool_manager(load_config(settings.CODE_INSIGHT_CONFIG or None))

    application = FastAPI(
        title="Code Insight API",
        description="Complexity, security, bug-pattern and test-skeleton tools",
        version=__version__,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )
    application.state.manager = manager

    # CORS middleware
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    application.include_router(health.router, tags=["Health"])
    application.include_router(tools.router, prefix="/tools", tags=["Tools"])

    @application.get("/")
    async def root():
        """Root endpoint - API info"""
        return {
            "name": "Code Insight API",
            "version": __version__,
            "docs": "/docs" if settings.DEBUG else "disabled",
        }

    return application


app = create_app()


# For running directly: python -m code_insight.web_api.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
