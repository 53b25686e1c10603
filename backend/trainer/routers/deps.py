from typing import Any, Callable

from fastapi import Request

from ..coordinator import AgentCoordinator
from ..handler import ToolDispatcher
from ..llm_client import LLMClient


def get_coordinator(request: Request) -> AgentCoordinator:
	return request.app.state.coordinator


def get_dispatcher(request: Request) -> ToolDispatcher:
	return request.app.state.coordinator.dispatcher


def get_llm_factory() -> Callable[[], Any]:
	return LLMClient
