import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..coordinator import AgentCoordinator
from ..models import GradeRequest
from .deps import get_coordinator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["grade"])


@router.post("/grade")
async def grade(req: GradeRequest, coordinator: AgentCoordinator = Depends(get_coordinator)):
	if not req.test or req.answers is None:
		return JSONResponse({"ok": False, "error": "Missing test or answers"}, status_code=400)
	try:
		return await coordinator.grade_web_dev_test(req.test, req.answers, req.strictness)
	except Exception as e:
		logger.exception("Grading failed")
		return JSONResponse({"ok": False, "error": str(e) or "Internal server error"}, status_code=500)
