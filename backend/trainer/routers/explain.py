import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..coordinator import AgentCoordinator
from ..models import ExplainRequest
from .deps import get_coordinator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["explain"])


@router.post("/explain")
async def explain(req: ExplainRequest, coordinator: AgentCoordinator = Depends(get_coordinator)):
	if not req.question or not req.studentAnswer or not req.expectedAnswer:
		return JSONResponse(
			{"ok": False, "error": "Missing required fields: question, studentAnswer, expectedAnswer"},
			status_code=400,
		)
	context = req.context or req.question.get("category") or "general"
	try:
		response = await coordinator.explain_wrong_answer(req.question, req.studentAnswer, req.expectedAnswer, category=context)
		if response.get("ok"):
			return response
		logger.error("Answer explanation failed: %s", response.get("error"))
		# General concept explanation as a second attempt
		concept = await coordinator.explain_web_concept(req.question.get("prompt"), context=context)
		return concept if concept.get("ok") else response
	except Exception as e:
		logger.exception("Explain failed")
		return JSONResponse({"ok": False, "error": str(e) or "Internal server error"}, status_code=500)
