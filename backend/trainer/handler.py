"""
Tool dispatch table.

Answers JSON-RPC requests in-process. The same dispatcher backs the sidecar's
stdio loop, the ``POST /api/mcp`` endpoint and the coordinator's direct-call
transport, so all three transports see identical behavior.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from .agents import adaptive, checker, explainer, generator, utility
from .errors import MissingCredentialsError, UnknownToolError
from .llm_client import LLMClient
from .rpc.framing import JSONRPC_VERSION

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
SERVER_INFO = {"name": "test-trainer-mcp", "version": "1.0.0"}

# JSON-RPC error codes
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
SERVER_ERROR = -32000

ToolFunc = Callable[[dict[str, Any], Any], Awaitable[dict[str, Any]]]


@dataclass
class ToolSpec:
	name: str
	description: str
	handler: ToolFunc
	properties: dict[str, dict] = field(default_factory=dict)
	required: list[str] = field(default_factory=list)
	# Tools that never reach the model run without an API key
	needs_llm: bool = True

	def get_schema(self) -> dict:
		return {
			"name": self.name,
			"description": self.description,
			"inputSchema": {
				"type": "object",
				"properties": self.properties,
				"required": self.required,
			},
		}


_STR_LIST = {"type": "array", "items": {"type": "string"}}

TOOLS: dict[str, ToolSpec] = {
	tool.name: tool
	for tool in [
		ToolSpec(
			name="generate_jr_web_test",
			description="Generate a test focused on junior-level HTML, JavaScript, UI frameworks, and APIs",
			handler=generator.generate_test,
			properties={
				"topics": _STR_LIST,
				"numQuestions": {"type": "number", "minimum": 1, "maximum": 20},
				"difficulty": {"type": "string", "enum": ["beginner", "junior", "intermediate"]},
				"focusAreas": _STR_LIST,
				"framework": {"type": "string", "enum": ["vanilla", "react", "vue", "angular", "mixed"]},
			},
			required=["numQuestions"],
		),
		ToolSpec(
			name="grade_web_test",
			description="Grade web development test answers with junior-level criteria",
			handler=checker.grade_test,
			properties={
				"test": {"type": "object"},
				"answers": {"type": "object"},
				"strictness": {"type": "string", "enum": ["lenient", "standard", "strict"]},
			},
			required=["test", "answers"],
		),
		ToolSpec(
			name="explain_web_concept",
			description="Explain a web development concept or mistake",
			handler=explainer.explain_web_concept,
			properties={
				"question": {"type": "object"},
				"studentAnswer": {"type": "string"},
				"expectedAnswer": {"type": "string"},
				"context": {"type": "string"},
			},
			required=["question"],
		),
		ToolSpec(
			name="explain_wrong_answer",
			description="Pedagogical explanation of an incorrect answer",
			handler=explainer.explain_wrong_answer,
			properties={
				"question": {"type": "object"},
				"studentAnswer": {"type": "string"},
				"correctAnswer": {"type": "string"},
				"category": {"type": "string"},
				"difficulty": {"type": "string"},
				"context": {"type": "object"},
			},
			required=["question", "studentAnswer", "correctAnswer"],
		),
		ToolSpec(
			name="derive_focus_topics",
			description="Analyze missed questions to derive focus topics for the next test",
			handler=utility.derive_focus_topics,
			properties={
				"missedQuestions": {"type": "array", "items": {"type": "object"}},
				"gradeResults": {"type": "array", "items": {"type": "object"}},
			},
			required=["missedQuestions", "gradeResults"],
			needs_llm=False,
		),
		ToolSpec(
			name="validate_web_code",
			description="Validate HTML, CSS, JavaScript or JSON snippets",
			handler=utility.validate_web_code,
			properties={
				"code": {"type": "string"},
				"language": {"type": "string", "enum": ["html", "css", "javascript", "json"]},
				"context": {"type": "string"},
			},
			required=["code", "language"],
			needs_llm=False,
		),
		ToolSpec(
			name="track_learning_progress",
			description="Track student progress and adjust difficulty based on performance",
			handler=adaptive.track_learning_progress,
			properties={
				"userId": {"type": "string"},
				"testResults": {"type": "array", "items": {"type": "object"}},
				"currentDifficulty": {"type": "string"},
				"subject": {"type": "string"},
			},
			required=["testResults"],
		),
		ToolSpec(
			name="get_progress_stats",
			description="Get progress statistics and learning analytics",
			handler=adaptive.get_progress_stats,
			properties={
				"userId": {"type": "string"},
				"timeframe": {"type": "string", "enum": ["day", "week", "month", "all"]},
			},
			needs_llm=False,
		),
	]
}

TOOL_NAMES = tuple(TOOLS)


def wrap_content(payload: dict[str, Any]) -> dict[str, Any]:
	"""MCP tool result: the ToolCallResult travels as JSON text."""
	return {"content": [{"type": "text", "text": json.dumps(payload)}]}


class ToolDispatcher:
	"""Routes ``tools/call`` requests to the registered handlers."""

	def __init__(self, llm_factory: Callable[[], Any] | None = None, tools: dict[str, ToolSpec] | None = None):
		self._llm_factory = llm_factory or LLMClient
		self._tools = tools if tools is not None else TOOLS

	@property
	def tool_names(self) -> list[str]:
		return list(self._tools)

	def list_tools(self) -> list[dict]:
		return [tool.get_schema() for tool in self._tools.values()]

	async def call_tool(self, name: str, arguments: dict[str, Any] | None) -> dict[str, Any]:
		tool = self._tools.get(name)
		if tool is None:
			raise UnknownToolError(name)
		arguments = arguments or {}
		logger.info("Calling tool %s", name)
		if not tool.needs_llm:
			return await tool.handler(arguments, None)
		llm = self._llm_factory()
		try:
			return await tool.handler(arguments, llm)
		finally:
			close = getattr(llm, "aclose", None)
			if close is not None:
				await close()

	async def handle_request(self, body: Any) -> dict[str, Any]:
		"""Answer one JSON-RPC request dict with a response envelope."""
		if not isinstance(body, dict):
			return _error(None, INVALID_PARAMS, "Request body must be a JSON object")
		request_id = body.get("id")
		method = body.get("method")
		params = body.get("params") if isinstance(body.get("params"), dict) else {}

		try:
			if method == "initialize":
				return _result(request_id, {
					"protocolVersion": PROTOCOL_VERSION,
					"capabilities": {"tools": {}},
					"serverInfo": SERVER_INFO,
				})
			if method == "ping":
				return _result(request_id, {"status": "ok", "tools": self.tool_names})
			if method == "tools/list":
				return _result(request_id, {"tools": self.list_tools()})
			if method == "tools/call":
				payload = await self.call_tool(str(params.get("name", "")), params.get("arguments"))
				return _result(request_id, wrap_content(payload))
			return _error(request_id, METHOD_NOT_FOUND, f"Unknown method: {method}")
		except UnknownToolError as exc:
			return _error(request_id, INVALID_PARAMS, str(exc))
		except MissingCredentialsError as exc:
			logger.error("Tool call rejected: %s", exc)
			return _error(request_id, SERVER_ERROR, str(exc))
		except Exception as exc:
			logger.exception("Tool %s failed", params.get("name", method))
			return _error(request_id, SERVER_ERROR, str(exc) or "Internal server error")


def _result(request_id: Any, result: Any) -> dict[str, Any]:
	return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def _error(request_id: Any, code: int, message: str) -> dict[str, Any]:
	return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": {"code": code, "message": message}}
