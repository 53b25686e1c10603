from fastapi import FastAPI

from .coordinator import AgentCoordinator
from .logging_setup import configure_logging
from .settings import settings
from .routers import explain, generate, grade, mcp, progress, stats, status

app = FastAPI(title="Test Trainer API")
app.include_router(generate.router)
app.include_router(grade.router)
app.include_router(explain.router)
app.include_router(progress.router)
app.include_router(stats.router)
app.include_router(mcp.router)
app.include_router(status.router)


@app.get("/info")
def root():
	return {"status": "ok", "llm_configured": bool(settings.openai_api_key)}


@app.on_event("startup")
async def startup_event():
	configure_logging()
	# Tests may install their own coordinator before startup
	if getattr(app.state, "coordinator", None) is None:
		app.state.coordinator = AgentCoordinator(settings, server_side=True)


@app.on_event("shutdown")
async def shutdown_event():
	coordinator = getattr(app.state, "coordinator", None)
	if coordinator is not None:
		await coordinator.shutdown()
