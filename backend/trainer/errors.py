"""
Error taxonomy for the tool-call layer.

Transport- and timeout-level errors always propagate to the caller; the
API routes decide whether to try a secondary path. Unrecoverable model output
is never raised: handlers return ``{"ok": False, "error": "ParseError", "raw": ...}``.
"""

from __future__ import annotations


class TrainerError(Exception):
	"""Base class for every error raised by the coordination layer."""


class TransportError(TrainerError):
	"""The transport could not deliver a request or receive its response."""


class SpawnError(TransportError):
	"""The sidecar process could not be started."""


class HandshakeTimeout(TransportError):
	"""The sidecar did not reach the connected state within the poll budget."""


class ToolCallTimeout(TrainerError):
	"""No response arrived before the request deadline."""

	def __init__(self, request_id: int, timeout: float) -> None:
		super().__init__(f"MCP tool call timeout (request {request_id}, {timeout:g}s)")
		self.request_id = request_id
		self.timeout = timeout


class ToolCallError(TrainerError):
	"""The tool layer answered with a JSON-RPC error envelope."""

	def __init__(self, message: str | None = None, code: int | None = None) -> None:
		super().__init__(message or "tool call failed")
		self.code = code


class UnknownToolError(TrainerError):
	def __init__(self, name: str) -> None:
		super().__init__(f"Unknown tool: {name}")
		self.name = name


class MissingCredentialsError(TrainerError, ValueError):
	"""The LLM API key is not configured."""
