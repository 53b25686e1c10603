from __future__ import annotations
import logging
import httpx
from typing import Any, Dict, List, Optional
from .errors import MissingCredentialsError
from .settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class LLMClient:
	"""Chat-completion client: system + user prompt in, text out."""

	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		base_url: Optional[str] = None,
		model: Optional[str] = None,
		config: Optional[Settings] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		cfg = config or default_settings
		self.api_key = api_key or cfg.openai_api_key
		if not self.api_key:
			raise MissingCredentialsError("OPENAI_API_KEY environment variable is not set")
		self.model = model or cfg.openai_model
		self.base_url = base_url or cfg.openai_base_url
		self._client = httpx.AsyncClient(timeout=cfg.llm_timeout_seconds, transport=transport)
		self._fallback_client: Optional[httpx.AsyncClient] = None
		self._fallback_enabled = bool(cfg.openrouter_api_key)
		self._openrouter_api_key = cfg.openrouter_api_key
		self._openrouter_model = cfg.openrouter_model
		self._openrouter_base_url = cfg.openrouter_base_url
		self._openrouter_headers = {
			"Authorization": f"Bearer {self._openrouter_api_key}" if self._openrouter_api_key else "",
			"Content-Type": "application/json",
			"HTTP-Referer": cfg.openrouter_referer,
			"X-Title": cfg.openrouter_title,
		}
		if self._fallback_enabled:
			self._fallback_client = httpx.AsyncClient(timeout=cfg.llm_timeout_seconds, transport=transport)

	async def __aenter__(self) -> "LLMClient":
		return self

	async def __aexit__(self, *exc_info: Any) -> None:
		await self.aclose()

	async def chat(
		self,
		system_prompt: str,
		user_prompt: str,
		*,
		max_tokens: int = 2000,
		temperature: float = 0.2,
		**options: Any,
	) -> str:
		messages: List[Dict[str, str]] = [
			{"role": "system", "content": system_prompt},
			{"role": "user", "content": user_prompt},
		]
		payload: Dict[str, Any] = {
			"model": self.model,
			"messages": messages,
			"max_tokens": max_tokens,
			"temperature": temperature,
			**options,
		}
		headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
		last_error: Optional[Exception] = None
		try:
			r = await self._client.post(self.base_url, headers=headers, json=payload)
			r.raise_for_status()
		except httpx.HTTPStatusError as http_err:
			last_error = http_err
		except httpx.RequestError as net_err:
			last_error = net_err
		if last_error is None:
			try:
				return _message_text(r.json())
			except Exception:
				last_error = RuntimeError(f"Unexpected chat completion response: {r.text[:500]}")
		logger.warning("Primary LLM call failed: %s", last_error)
		if not self._fallback_enabled:
			raise RuntimeError(f"LLM API failed: {last_error}") from last_error
		return await self._fallback_generate(messages, payload, last_error)

	async def aclose(self) -> None:
		await self._client.aclose()
		if self._fallback_client is not None:
			await self._fallback_client.aclose()

	async def _fallback_generate(
		self,
		messages: List[Dict[str, str]],
		payload: Dict[str, Any],
		primary_error: Optional[Exception],
	) -> str:
		if not self._fallback_client or not self._openrouter_api_key:
			raise primary_error or RuntimeError("Fallback requested but OpenRouter is not configured")
		headers = {k: v for k, v in self._openrouter_headers.items() if v}
		fallback_payload: Dict[str, Any] = {
			**payload,
			"model": self._openrouter_model,
			"messages": messages,
		}
		try:
			r = await self._fallback_client.post(
				self._openrouter_base_url,
				headers=headers,
				json=fallback_payload,
			)
			r.raise_for_status()
			return _message_text(r.json())
		except Exception as fallback_err:
			if primary_error is not None:
				raise RuntimeError(
					f"LLM primary call failed ({primary_error}); fallback via OpenRouter also failed"
				) from fallback_err
			raise fallback_err


def _message_text(data: Dict[str, Any]) -> str:
	return (data["choices"][0]["message"]["content"] or "").strip()
