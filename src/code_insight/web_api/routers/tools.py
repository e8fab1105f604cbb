"""
Tools Router
============
Endpoints for listing, toggling and running registered tools.
"""
import logging
from typing import List

from fastapi import APIRouter, HTTPException, Request

from code_insight.api import build_tool_input, decode_result
from code_insight.tools.errors import InvalidInputError, ToolDisabledError, ToolNotFoundError
from code_insight.tools.manager import ToolManager
from code_insight.web_api.config import settings
from code_insight.web_api.schemas.tools import RunToolRequest, RunToolResponse, ToolStatusModel

_logger = logging.getLogger(__name__)

router = APIRouter()


def _manager(request: Request) -> ToolManager:
    return request.app.state.manager


@router.get("", response_model=List[ToolStatusModel])
async def list_tools(request: Request):
    """List every registered tool with its enabled flag and timeout."""
    return [ToolStatusModel(**s.to_dict()) for s in _manager(request).list_with_status()]


@router.post("/{name}/run", response_model=RunToolResponse)
def run_tool(name: str, body: RunToolRequest, request: Request):
    """
    Run one tool.

    - 404 when the tool is not registered
    - 409 when the tool is disabled
    - 422 when the body cannot be turned into valid input for the tool
    """
    fields = body.model_dump(exclude_none=True)
    if not settings.ALLOW_WRITE:
        fields["write"] = False

    try:
        tool_input = build_tool_input(name, fields)
        result = _manager(request).run(name, tool_input)
    except ToolNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ToolDisabledError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except InvalidInputError as e:
        raise HTTPException(status_code=422, detail=str(e))

    if isinstance(result.exception, InvalidInputError):
        raise HTTPException(status_code=422, detail=result.error)

    _logger.debug("http run %s: success=%s", name, result.success)
    return RunToolResponse(
        tool=name,
        success=result.success,
        result=decode_result(result),
        error=result.error,
        execution_time_ms=result.execution_time_ms,
        metadata=result.metadata,
    )


@router.post("/{name}/enable", response_model=ToolStatusModel)
async def enable_tool(name: str, request: Request):
    """Enable a registered tool."""
    return _toggle(_manager(request), name, True)


@router.post("/{name}/disable", response_model=ToolStatusModel)
async def disable_tool(name: str, request: Request):
    """Disable a registered tool; runs are rejected with 409 until re-enabled."""
    return _toggle(_manager(request), name, False)


def _toggle(manager: ToolManager, name: str, enabled: bool) -> ToolStatusModel:
    try:
        if enabled:
            manager.enable(name)
        else:
            manager.disable(name)
    except ToolNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    status = next(s for s in manager.list_with_status() if s.name == name)
    return ToolStatusModel(**status.to_dict())
