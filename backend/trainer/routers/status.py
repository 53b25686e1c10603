from fastapi import APIRouter, Depends

from ..coordinator import AgentCoordinator
from ..settings import settings
from .deps import get_coordinator

router = APIRouter(prefix="/api", tags=["status"])


@router.get("/status")
async def status(coordinator: AgentCoordinator = Depends(get_coordinator)):
	return {
		"status": "ok",
		"llm_configured": bool(settings.openai_api_key),
		"coordinator": coordinator.get_status(),
	}
