from typing import Any

from fastapi import APIRouter, Body, Depends

from ..handler import ToolDispatcher
from .deps import get_dispatcher

router = APIRouter(prefix="/api", tags=["mcp"])


@router.post("/mcp")
async def mcp(body: Any = Body(...), dispatcher: ToolDispatcher = Depends(get_dispatcher)):
	return await dispatcher.handle_request(body)


@router.get("/mcp")
async def mcp_info(dispatcher: ToolDispatcher = Depends(get_dispatcher)):
	return {"status": "ok", "tools": dispatcher.tool_names}
