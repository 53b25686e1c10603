"""Tests for the JSON-RPC tool dispatcher."""

import json

import pytest

from trainer.errors import MissingCredentialsError
from trainer.handler import METHOD_NOT_FOUND, PROTOCOL_VERSION, TOOL_NAMES, ToolDispatcher

from conftest import FakeLLM


def _call(name: str, arguments: dict, request_id: int = 1) -> dict:
	return {"jsonrpc": "2.0", "id": request_id, "method": "tools/call", "params": {"name": name, "arguments": arguments}}


def _payload(response: dict) -> dict:
	return json.loads(response["result"]["content"][0]["text"])


@pytest.mark.asyncio
async def test_initialize_reports_protocol_version() -> None:
	response = await ToolDispatcher().handle_request({"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}})
	assert response["id"] == 1
	assert response["result"]["protocolVersion"] == PROTOCOL_VERSION
	assert response["result"]["serverInfo"]["name"] == "test-trainer-mcp"


@pytest.mark.asyncio
async def test_tools_list_has_every_registered_tool() -> None:
	response = await ToolDispatcher().handle_request({"jsonrpc": "2.0", "id": 2, "method": "tools/list"})
	names = [tool["name"] for tool in response["result"]["tools"]]
	assert names == list(TOOL_NAMES)
	assert len(names) == 8
	assert all(tool["inputSchema"]["type"] == "object" for tool in response["result"]["tools"])


@pytest.mark.asyncio
async def test_unknown_method_returns_error_with_request_id() -> None:
	response = await ToolDispatcher().handle_request({"jsonrpc": "2.0", "id": 9, "method": "resources/list"})
	assert response["id"] == 9
	assert response["error"]["code"] == METHOD_NOT_FOUND


@pytest.mark.asyncio
async def test_unknown_tool_is_an_error() -> None:
	response = await ToolDispatcher().handle_request(_call("launch_rockets", {}))
	assert response["error"]["message"] == "Unknown tool: launch_rockets"


@pytest.mark.asyncio
async def test_deterministic_tool_runs_without_model() -> None:
	def no_llm():
		raise AssertionError("model should not be created")

	response = await ToolDispatcher(llm_factory=no_llm).handle_request(_call("validate_web_code", {"code": "a { color: red }", "language": "css"}))
	payload = _payload(response)
	assert payload["ok"] is True
	assert payload["result"]["language"] == "css"


@pytest.mark.asyncio
async def test_model_tool_result_is_wrapped_and_client_closed() -> None:
	llm = FakeLLM({"questions": [{"prompt": "Q", "points": 100}]})
	response = await ToolDispatcher(llm_factory=lambda: llm).handle_request(_call("generate_jr_web_test", {"numQuestions": 1}))
	content = response["result"]["content"]
	assert content[0]["type"] == "text"
	assert _payload(response)["result"]["questions"][0]["prompt"] == "Q"
	assert llm.closed == 1


@pytest.mark.asyncio
async def test_handler_failure_becomes_server_error() -> None:
	response = await ToolDispatcher(llm_factory=FakeLLM).handle_request(_call("grade_web_test", {"answers": {}}, request_id=4))
	assert response["id"] == 4
	assert response["error"]["code"] == -32000
	assert "Missing required grading parameters" in response["error"]["message"]


@pytest.mark.asyncio
async def test_missing_api_key_is_reported() -> None:
	def missing():
		raise MissingCredentialsError("OPENAI_API_KEY environment variable is not set")

	response = await ToolDispatcher(llm_factory=missing).handle_request(_call("explain_web_concept", {"question": "CSS grid"}))
	assert "OPENAI_API_KEY" in response["error"]["message"]
