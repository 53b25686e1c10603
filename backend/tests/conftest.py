"""Pytest fixtures shared across the suite."""

import json
from typing import Any, List

import pytest

from trainer.settings import Settings


class FakeLLM:
	"""Stand-in for LLMClient: hands out queued replies in order."""

	def __init__(self, *replies: Any) -> None:
		self.replies: List[Any] = list(replies)
		self.calls: List[dict] = []
		self.closed = 0

	def queue(self, *replies: Any) -> None:
		self.replies.extend(replies)

	async def chat(self, system_prompt: str, user_prompt: str, **options: Any) -> str:
		self.calls.append({"system": system_prompt, "user": user_prompt, **options})
		if not self.replies:
			raise RuntimeError("LLM API failed: no reply queued")
		reply = self.replies.pop(0)
		if isinstance(reply, Exception):
			raise reply
		return reply if isinstance(reply, str) else json.dumps(reply)

	async def aclose(self) -> None:
		self.closed += 1


@pytest.fixture
def fake_llm() -> FakeLLM:
	return FakeLLM()


@pytest.fixture
def local_settings() -> Settings:
	"""Settings for a non-serverless run with short timings."""
	return Settings(
		_env_file=None,
		deployment_marker=None,
		deployment_host=None,
		mcp_url=None,
		openai_api_key="test-key",
		poll_interval_seconds=0.05,
		connect_attempts=100,
		request_timeout_seconds=5.0,
		stop_grace_seconds=1.0,
		restart_delay_seconds=0.01,
	)


@pytest.fixture
def serverless_settings() -> Settings:
	return Settings(
		_env_file=None,
		deployment_marker="1",
		deployment_host="trainer.example.app",
		mcp_url=None,
		openai_api_key="test-key",
	)
