"""
Transport layer for tool calls.

Implements:
  - SubprocessTransport: JSON-RPC over the sidecar's stdin/stdout pipes (local)
  - HttpTransport: JSON-RPC POSTed to the ``/api/mcp`` endpoint
  - DirectTransport: in-process dispatch, for server-side callers in a
    serverless deployment where spawning children is not allowed
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from .errors import HandshakeTimeout, ToolCallError, ToolCallTimeout, TransportError
from .handler import PROTOCOL_VERSION, ToolDispatcher
from .rpc.correlator import RequestCorrelator
from .rpc.framing import JsonRpcErrorResponse, JsonRpcRequest, JsonRpcResponse
from .settings import Settings
from .sidecar.process import SidecarProcess

logger = logging.getLogger(__name__)

CLIENT_INFO = {"name": "test-trainer-coordinator", "version": "1.0.0"}


def initialize_params() -> dict[str, Any]:
	return {"protocolVersion": PROTOCOL_VERSION, "capabilities": {}, "clientInfo": CLIENT_INFO}


def unwrap_envelope(body: Any) -> Any:
	"""Return ``result`` from a response envelope, raising ToolCallError for ``error``."""
	if not isinstance(body, dict):
		raise TransportError("Malformed JSON-RPC response")
	error = body.get("error")
	if error is not None:
		if isinstance(error, dict):
			raise ToolCallError(error.get("message"), error.get("code"))
		raise ToolCallError(str(error))
	return body.get("result")


class Transport(ABC):
	"""Abstract transport for tool calls."""

	kind = "abstract"

	@property
	@abstractmethod
	def is_connected(self) -> bool:
		...

	@abstractmethod
	async def connect(self) -> None:
		"""Bring the transport up and complete the initialize handshake."""
		...

	@abstractmethod
	async def request(self, method: str, params: dict[str, Any] | None = None) -> Any:
		"""Send one request and return its ``result``."""
		...

	async def close(self) -> None:
		pass

	def status(self) -> dict[str, Any]:
		return {"transport": self.kind, "connected": self.is_connected}


class SubprocessTransport(Transport):
	kind = "subprocess"

	def __init__(self, settings: Settings, process: SidecarProcess | None = None):
		self.settings = settings
		self.correlator = RequestCorrelator(timeout=settings.request_timeout_seconds)
		self.process = process or SidecarProcess(
			settings.sidecar_command,
			env_file=settings.sidecar_env_file,
			require_handshake=True,
			poll_interval=settings.poll_interval_seconds,
			stop_grace=settings.stop_grace_seconds,
		)
		self.process.on_message = self._on_message
		self.process.on_exit = self._on_exit

	@property
	def is_connected(self) -> bool:
		return self.process.is_connected

	async def connect(self) -> None:
		await self.process.start()
		request, future = self.correlator.issue("initialize", initialize_params())
		try:
			await self.process.send(request)
		except TransportError:
			self.correlator.discard(request.id)
			await self.process.stop()
			raise

		attempts = 0
		while not future.done() and attempts < self.settings.connect_attempts and self.process.is_alive():
			await asyncio.sleep(self.settings.poll_interval_seconds)
			attempts += 1

		if not future.done():
			self.correlator.discard(request.id)
			await self.process.stop()
			raise HandshakeTimeout("Failed to connect to MCP server within timeout")
		exc = future.exception()
		if exc is not None:
			await self.process.stop()
			raise TransportError(f"MCP initialize failed: {exc}") from exc

		self.process.mark_connected()
		logger.info("Connected to MCP server (pid %s)", self.process.pid)

	async def request(self, method: str, params: dict[str, Any] | None = None) -> Any:
		if not self.is_connected:
			raise TransportError("MCP server is not connected")
		request, future = self.correlator.issue(method, params)
		try:
			await self.process.send(request)
		except TransportError:
			self.correlator.discard(request.id)
			raise
		return await future

	def _on_message(self, message) -> None:
		if isinstance(message, (JsonRpcResponse, JsonRpcErrorResponse)):
			self.correlator.complete(message)
		else:
			logger.debug("Ignoring %s from MCP server", message.method)

	def _on_exit(self, code: int | None) -> None:
		failed = self.correlator.fail_all(TransportError(f"MCP Server exited with code {code}"))
		if failed:
			logger.warning("Failed %d pending request(s) after MCP server exit", failed)

	async def close(self) -> None:
		await self.process.stop()
		self.correlator.fail_all(TransportError("MCP transport closed"))

	def status(self) -> dict[str, Any]:
		return {
			**super().status(),
			"state": self.process.state.value,
			"pid": self.process.pid,
			"pendingRequests": self.correlator.pending_count,
		}


class HttpTransport(Transport):
	kind = "http"

	def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None):
		self.url = settings.resolved_mcp_url()
		self.timeout = settings.request_timeout_seconds
		self._owns_client = client is None
		self._client = client or httpx.AsyncClient(timeout=self.timeout)
		self._ids = itertools.count(1)
		self._connected = False

	@property
	def is_connected(self) -> bool:
		return self._connected

	async def connect(self) -> None:
		logger.info("Using HTTP MCP transport at %s", self.url)
		await self._post("initialize", initialize_params())
		self._connected = True

	async def request(self, method: str, params: dict[str, Any] | None = None) -> Any:
		return await self._post(method, params)

	async def _post(self, method: str, params: dict[str, Any] | None) -> Any:
		request = JsonRpcRequest(method=method, params=params or {}, id=next(self._ids))
		try:
			resp = await self._client.post(self.url, json=request.to_dict())
			resp.raise_for_status()
		except httpx.TimeoutException as exc:
			raise ToolCallTimeout(request.id, self.timeout) from exc
		except httpx.HTTPStatusError as exc:
			raise TransportError(f"HTTP {exc.response.status_code}: {exc.response.reason_phrase}") from exc
		except httpx.RequestError as exc:
			raise TransportError(f"MCP HTTP request failed: {exc}") from exc
		try:
			body = resp.json()
		except ValueError as exc:
			raise TransportError("MCP endpoint returned a non-JSON body") from exc
		return unwrap_envelope(body)

	async def close(self) -> None:
		self._connected = False
		if self._owns_client:
			await self._client.aclose()

	def status(self) -> dict[str, Any]:
		return {**super().status(), "url": self.url}


class DirectTransport(Transport):
	kind = "direct"

	def __init__(self, dispatcher: ToolDispatcher):
		self.dispatcher = dispatcher
		self._ids = itertools.count(1)
		self._connected = False

	@property
	def is_connected(self) -> bool:
		return self._connected

	async def connect(self) -> None:
		await self.request("initialize", initialize_params())
		self._connected = True

	async def request(self, method: str, params: dict[str, Any] | None = None) -> Any:
		request = JsonRpcRequest(method=method, params=params or {}, id=next(self._ids))
		return unwrap_envelope(await self.dispatcher.handle_request(request.to_dict()))

	async def close(self) -> None:
		self._connected = False


def select_transport(settings: Settings, dispatcher: ToolDispatcher, *, server_side: bool = True) -> Transport:
	"""Pick the transport once, from the deployment settings."""
	if not settings.is_serverless:
		return SubprocessTransport(settings)
	if server_side:
		return DirectTransport(dispatcher)
	return HttpTransport(settings)
