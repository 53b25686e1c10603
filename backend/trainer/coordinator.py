"""
Agent coordinator: the single entry point the API routes use to reach the
tool layer.

The transport is chosen once, at construction, from the deployment settings.
The first tool call performs the initialize handshake; concurrent first calls
await the same in-flight connection, so the handshake runs exactly once. If
the sidecar exits mid-session the transport reports disconnected and the
next call reconnects.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from .errors import TransportError, UnknownToolError
from .handler import TOOL_NAMES, ToolDispatcher
from .parsing import parse_error, safe_json_parse
from .settings import Settings
from .transports import Transport, select_transport

logger = logging.getLogger(__name__)


def parse_tool_response(result: Any) -> Dict[str, Any]:
	"""Decode the ToolCallResult carried in an MCP ``content[0].text`` payload."""
	if isinstance(result, dict) and isinstance(result.get("content"), list) and result["content"]:
		first = result["content"][0]
		text = first.get("text") if isinstance(first, dict) else None
		if isinstance(text, str):
			fallback = parse_error(text)
			return safe_json_parse(text, fallback)
	if isinstance(result, dict):
		return result
	return {"ok": False, "error": "Malformed tool response", "raw": json.dumps(result)}


class AgentCoordinator:
	def __init__(
		self,
		settings: Optional[Settings] = None,
		dispatcher: Optional[ToolDispatcher] = None,
		*,
		server_side: bool = True,
		transport: Optional[Transport] = None,
	):
		if settings is None:
			from .settings import settings as default_settings
			settings = default_settings
		self.settings = settings
		self.dispatcher = dispatcher or ToolDispatcher()
		self.transport = transport or select_transport(settings, self.dispatcher, server_side=server_side)
		self._connect_task: Optional[asyncio.Future] = None
		self._closed = False
		logger.info("Agent coordinator using %s transport", self.transport.kind)

	@property
	def is_connected(self) -> bool:
		return self.transport.is_connected

	async def initialize(self) -> None:
		"""Connect if needed. Safe to call concurrently."""
		if self._closed:
			raise TransportError("Agent coordinator is shut down")
		if self.transport.is_connected:
			return
		if self._connect_task is None:
			self._connect_task = asyncio.ensure_future(self.transport.connect())
		task = self._connect_task
		try:
			await asyncio.shield(task)
		finally:
			if task.done() and self._connect_task is task:
				self._connect_task = None

	async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Any:
		"""Send ``tools/call`` and return the raw MCP result."""
		if name not in TOOL_NAMES:
			raise UnknownToolError(name)
		await self.initialize()
		logger.info("Sending tool call %s", name)
		return await self.transport.request("tools/call", {"name": name, "arguments": arguments or {}})

	async def run_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
		return parse_tool_response(await self.call_tool(name, arguments))

	# High-level methods for the API routes

	async def generate_web_dev_test(self, options: Dict[str, Any]) -> Dict[str, Any]:
		return await self.run_tool("generate_jr_web_test", {
			"topics": options.get("topics") or ["javascript", "html"],
			"numQuestions": options.get("numQuestions") or 5,
			"difficulty": options.get("difficulty") or "junior",
			"focusAreas": options.get("focusTopics") or [],
			"framework": options.get("framework") or "vanilla",
		})

	async def grade_web_dev_test(self, test: Dict[str, Any], answers: Dict[str, Any], strictness: str = "standard") -> Dict[str, Any]:
		return await self.run_tool("grade_web_test", {"test": test, "answers": answers, "strictness": strictness})

	async def explain_web_concept(
		self,
		question: Any,
		student_answer: Optional[str] = None,
		expected_answer: Optional[str] = None,
		context: str = "general",
	) -> Dict[str, Any]:
		return await self.run_tool("explain_web_concept", {
			"question": question,
			"studentAnswer": student_answer,
			"expectedAnswer": expected_answer,
			"context": context,
		})

	async def explain_wrong_answer(
		self,
		question: Dict[str, Any],
		student_answer: str,
		correct_answer: str,
		category: Optional[str] = None,
		difficulty: str = "junior",
	) -> Dict[str, Any]:
		return await self.run_tool("explain_wrong_answer", {
			"question": question,
			"studentAnswer": student_answer,
			"correctAnswer": correct_answer,
			"category": category or question.get("category") or "general",
			"difficulty": difficulty,
			"context": {},
		})

	async def track_learning_progress(
		self,
		test_results: List[Dict[str, Any]],
		current_difficulty: str = "junior",
		subject: str = "general",
		user_id: str = "default",
	) -> Dict[str, Any]:
		return await self.run_tool("track_learning_progress", {
			"userId": user_id,
			"testResults": test_results,
			"currentDifficulty": current_difficulty,
			"subject": subject,
		})

	async def get_progress_stats(self, user_id: str = "default", timeframe: str = "week") -> Dict[str, Any]:
		return await self.run_tool("get_progress_stats", {"userId": user_id, "timeframe": timeframe})

	def get_status(self) -> Dict[str, Any]:
		status = self.transport.status()
		status.update({
			"serverless": self.settings.is_serverless,
			"availableTools": list(TOOL_NAMES),
			"shutDown": self._closed,
		})
		return status

	async def shutdown(self) -> None:
		if self._closed:
			return
		self._closed = True
		if self._connect_task is not None and not self._connect_task.done():
			self._connect_task.cancel()
		self._connect_task = None
		await self.transport.close()
		logger.info("Agent coordinator shut down")
