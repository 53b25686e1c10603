"""
Request/response correlation by JSON-RPC id.

Everything here runs on the event loop thread and mutates the pending map
synchronously inside callbacks, so no lock is taken.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any

from ..errors import ToolCallError, ToolCallTimeout
from .framing import JsonRpcErrorResponse, JsonRpcRequest, JsonRpcResponse

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


@dataclass
class PendingRequest:
	id: int
	method: str
	created_at: float
	future: asyncio.Future
	timer: asyncio.TimerHandle | None = None


class RequestCorrelator:
	"""
	Allocates monotonically increasing ids and matches responses to callers.

	A response whose id is unknown (never issued, already answered, or already
	timed out) is dropped. Ids are never reused within one correlator, so a
	late response cannot be matched to an unrelated request.
	"""

	def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
		self.timeout = timeout
		self._next_id = 0
		self._pending: dict[int, PendingRequest] = {}

	@property
	def pending_count(self) -> int:
		return len(self._pending)

	def is_pending(self, request_id: int) -> bool:
		return request_id in self._pending

	def next_id(self) -> int:
		self._next_id += 1
		return self._next_id

	def issue(self, method: str, params: dict[str, Any] | None = None) -> tuple[JsonRpcRequest, asyncio.Future]:
		"""Register a new request; the returned future settles on response or timeout."""
		loop = asyncio.get_running_loop()
		request = JsonRpcRequest(method=method, params=params or {}, id=self.next_id())
		future = loop.create_future()
		pending = PendingRequest(id=request.id, method=method, created_at=time.monotonic(), future=future)
		pending.timer = loop.call_later(self.timeout, self.expire, request.id)
		self._pending[request.id] = pending
		return request, future

	def complete(self, response: JsonRpcResponse | JsonRpcErrorResponse) -> bool:
		"""Settle the matching pending request. Returns False when the response was dropped."""
		pending = self._pending.pop(response.id, None) if isinstance(response.id, int) else None
		if pending is None:
			logger.debug("Dropping response for unknown request id %r", response.id)
			return False
		if pending.timer is not None:
			pending.timer.cancel()
		if pending.future.done():
			return False
		if isinstance(response, JsonRpcErrorResponse):
			pending.future.set_exception(ToolCallError(response.message or None, response.code))
		else:
			pending.future.set_result(response.result)
		return True

	def expire(self, request_id: int) -> None:
		pending = self._pending.pop(request_id, None)
		if pending is None:
			return
		elapsed = time.monotonic() - pending.created_at
		logger.warning("Request %s (%s) timed out after %.1fs", request_id, pending.method, elapsed)
		if not pending.future.done():
			pending.future.set_exception(ToolCallTimeout(request_id, self.timeout))

	def discard(self, request_id: int) -> None:
		"""Forget a request whose message could not be written."""
		pending = self._pending.pop(request_id, None)
		if pending is not None and pending.timer is not None:
			pending.timer.cancel()

	def fail_all(self, exc: BaseException) -> int:
		"""Reject every pending request, e.g. when the peer process exits."""
		failed = 0
		for request_id in list(self._pending):
			pending = self._pending.pop(request_id)
			if pending.timer is not None:
				pending.timer.cancel()
			if not pending.future.done():
				pending.future.set_exception(exc)
				failed += 1
		return failed
