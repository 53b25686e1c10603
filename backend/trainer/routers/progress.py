import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..coordinator import AgentCoordinator
from ..models import ProgressRequest
from .deps import get_coordinator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["progress"])


@router.get("/progress")
async def progress_stats(userId: str = "default", timeframe: str = "week", coordinator: AgentCoordinator = Depends(get_coordinator)):
	try:
		return await coordinator.get_progress_stats(userId, timeframe)
	except Exception as e:
		logger.exception("Progress stats failed")
		return JSONResponse({"ok": False, "error": str(e) or "Failed to get progress statistics"}, status_code=500)


@router.post("/progress")
async def track_progress(req: ProgressRequest, coordinator: AgentCoordinator = Depends(get_coordinator)):
	if not isinstance(req.testResults, list):
		return JSONResponse({"ok": False, "error": "testResults array is required"}, status_code=400)
	try:
		return await coordinator.track_learning_progress(req.testResults, req.currentDifficulty, req.subject, req.userId)
	except Exception as e:
		logger.exception("Progress tracking failed")
		return JSONResponse({"ok": False, "error": str(e) or "Failed to track learning progress"}, status_code=500)
