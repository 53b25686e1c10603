import logging
import random
from datetime import datetime, timezone
from typing import Any, Callable

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..agents.generator import build_generation_result
from ..coordinator import AgentCoordinator
from ..errors import TrainerError
from ..models import GenerateRequest
from .deps import get_coordinator, get_llm_factory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["generate"])

FALLBACK_SYSTEM_PROMPT = """You are a web development test writer specializing in junior-level content. Create UNIQUE, VARIED questions each time.

OUTPUT JSON only:
{ "questions":[{"id":1,"type":"mcq"|"short"|"code","prompt":"...","choices":[...],"answer":"...","rubric":["..."],"points":<int>,"category":"html|css|javascript|api|framework"}],"totalPoints":100 }

Use different real-world scenarios, vary question formats and avoid textbook examples."""

PROJECT_CONTEXTS = [
	"e-commerce website",
	"blog platform",
	"social media app",
	"task management tool",
	"weather dashboard",
	"portfolio site",
	"news aggregator",
	"fitness tracker",
	"recipe organizer",
]


async def fallback_generation(req: GenerateRequest, llm_factory: Callable[[], Any]) -> dict:
	"""Single direct model call with a simpler prompt, normalized like the tool output."""
	topics = ", ".join(req.topics) if req.topics else "javascript, html"
	focus = f" Focus on: {', '.join(req.focusTopics)}." if req.focusTopics else ""
	user_prompt = (
		f"Generate {req.numQuestions} FRESH junior web developer questions for a {random.choice(PROJECT_CONTEXTS)} project.\n"
		f"TIMESTAMP: {datetime.now(timezone.utc).isoformat()}\n"
		f"Topics: {topics}\n{focus}\n"
		f"Difficulty: {req.difficulty}\n"
		"Points sum to 100."
	)
	llm = llm_factory()
	try:
		content = await llm.chat(FALLBACK_SYSTEM_PROMPT, user_prompt, max_tokens=2000, temperature=0.6)
	finally:
		await llm.aclose()
	return build_generation_result(content, req.numQuestions, req.framework)


@router.post("/generate")
async def generate(
	req: GenerateRequest,
	coordinator: AgentCoordinator = Depends(get_coordinator),
	llm_factory: Callable[[], Any] = Depends(get_llm_factory),
):
	logger.info("Generate called: %d questions on %s (%s)", req.numQuestions, req.topics, req.difficulty)
	try:
		try:
			response = await coordinator.generate_web_dev_test(req.model_dump())
		except TrainerError as e:
			logger.error("Agent generation failed, falling back to direct model call: %s", e)
			return await fallback_generation(req, llm_factory)
		if not response.get("ok"):
			logger.error("Agent generation error: %s", response.get("error"))
		return response
	except Exception as e:
		logger.exception("Generate failed")
		return JSONResponse({"ok": False, "error": str(e) or "Internal server error"}, status_code=500)
