"""
Newline-delimited JSON-RPC 2.0 framing.

One message per line. Incoming streams may interleave protocol traffic with
plain log output (dotenv banners, prints from dependencies); such lines are
dropped instead of aborting the stream.
"""

from __future__ import annotations

import codecs
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Union

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"

_ENVELOPE_KEYS = ("id", "method", "jsonrpc")


@dataclass
class JsonRpcRequest:
	"""JSON-RPC 2.0 request. ``id=None`` marks a notification."""
	method: str
	params: dict[str, Any] = field(default_factory=dict)
	id: int | str | None = None

	def to_dict(self) -> dict[str, Any]:
		data: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "method": self.method, "params": self.params}
		if self.id is not None:
			data["id"] = self.id
		return data


@dataclass
class JsonRpcResponse:
	"""JSON-RPC 2.0 success response."""
	id: int | str | None
	result: Any = None

	def to_dict(self) -> dict[str, Any]:
		return {"jsonrpc": JSONRPC_VERSION, "id": self.id, "result": self.result}


@dataclass
class JsonRpcErrorResponse:
	"""JSON-RPC 2.0 error response."""
	id: int | str | None
	code: int = -32000
	message: str = ""

	def to_dict(self) -> dict[str, Any]:
		return {
			"jsonrpc": JSONRPC_VERSION,
			"id": self.id,
			"error": {"code": self.code, "message": self.message},
		}


JsonRpcMessage = Union[JsonRpcRequest, JsonRpcResponse, JsonRpcErrorResponse]


def is_envelope(data: Any) -> bool:
	return isinstance(data, dict) and any(key in data for key in _ENVELOPE_KEYS)


def decode_message(data: dict[str, Any]) -> JsonRpcMessage:
	"""Turn a parsed JSON-RPC dict into the matching message dataclass."""
	if "method" in data:
		params = data.get("params")
		return JsonRpcRequest(
			method=str(data["method"]),
			params=params if isinstance(params, dict) else {},
			id=data.get("id"),
		)
	error = data.get("error")
	if error is not None:
		if isinstance(error, dict):
			code = error.get("code")
			message = error.get("message")
		else:
			code, message = None, str(error)
		return JsonRpcErrorResponse(
			id=data.get("id"),
			code=code if isinstance(code, int) else -32000,
			message=message if isinstance(message, str) else "",
		)
	return JsonRpcResponse(id=data.get("id"), result=data.get("result"))


def encode_message(message: JsonRpcMessage | dict[str, Any]) -> dict[str, Any]:
	if isinstance(message, dict):
		return message
	return message.to_dict()


class LineFramer:
	"""
	Stateful line framer for one connection.

	``feed`` returns every complete message found so far and keeps the
	trailing partial line buffered for the next chunk.
	"""

	def __init__(self) -> None:
		self._buffer = ""
		# Keeps multi-byte characters intact across chunk boundaries
		self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

	@property
	def pending(self) -> str:
		return self._buffer

	def reset(self) -> None:
		self._buffer = ""
		self._decoder.reset()

	def feed(self, chunk: str | bytes) -> list[JsonRpcMessage]:
		if isinstance(chunk, bytes):
			chunk = self._decoder.decode(chunk)
		self._buffer += chunk
		lines = self._buffer.split("\n")
		# Last segment is incomplete (empty if the chunk ended on a newline)
		self._buffer = lines.pop()

		messages: list[JsonRpcMessage] = []
		for line in lines:
			line = line.strip()
			if not line:
				continue
			try:
				data = json.loads(line)
			except json.JSONDecodeError:
				logger.debug("Ignoring non-JSON line: %s", line[:200])
				continue
			if not is_envelope(data):
				logger.debug("Ignoring non JSON-RPC line: %s", line[:200])
				continue
			messages.append(decode_message(data))
		return messages

	@staticmethod
	def serialize(message: JsonRpcMessage | dict[str, Any]) -> str:
		return json.dumps(encode_message(message), separators=(",", ":")) + "\n"
