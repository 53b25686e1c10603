import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..coordinator import AgentCoordinator
from .deps import get_coordinator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["stats"])


@router.get("/stats")
async def stats(userId: str = "default", timeframe: str = "week", coordinator: AgentCoordinator = Depends(get_coordinator)):
	try:
		return await coordinator.get_progress_stats(userId, timeframe)
	except Exception as e:
		logger.exception("Stats failed")
		return JSONResponse({"ok": False, "error": str(e) or "Internal server error"}, status_code=500)
