"""
Sidecar tool server: JSON-RPC over stdin/stdout.

stdout carries protocol messages only; every log line goes to stderr. Once
the read loop is attached the server prints the ready marker on stderr, which
the process manager watches for.

Requests are served concurrently, so a slow grading call does not hold up a
cheap ``ping`` that arrives after it.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import Any

from ..handler import ToolDispatcher
from ..rpc.framing import JsonRpcRequest, LineFramer

logger = logging.getLogger(__name__)

READY_MARKER = "Test Trainer MCP Server running on stdio"
# Chunked reads: request lines have no length limit, the framer reassembles them
READ_CHUNK = 65536


class StdioToolServer:
	def __init__(self, dispatcher: ToolDispatcher | None = None, reader: asyncio.StreamReader | None = None, writer: Any = None):
		self.dispatcher = dispatcher or ToolDispatcher()
		self._reader = reader
		# Anything with write(bytes) and flush(); defaults to the process stdout
		self._writer = writer
		self._framer = LineFramer()
		self._write_lock = asyncio.Lock()
		self._tasks: set[asyncio.Task] = set()
		self._stopping = asyncio.Event()

	async def _ensure_reader(self) -> asyncio.StreamReader:
		if self._reader is None:
			loop = asyncio.get_running_loop()
			reader = asyncio.StreamReader()
			protocol = asyncio.StreamReaderProtocol(reader)
			await loop.connect_read_pipe(lambda: protocol, sys.stdin)
			self._reader = reader
		return self._reader

	def stop(self) -> None:
		self._stopping.set()

	async def run(self) -> None:
		"""Serve until stdin closes or ``stop`` is called."""
		reader = await self._ensure_reader()
		logger.info("Tool server starting with %d tools: %s", len(self.dispatcher.tool_names), self.dispatcher.tool_names)
		print(READY_MARKER, file=sys.stderr, flush=True)

		while not self._stopping.is_set():
			read = asyncio.ensure_future(reader.read(READ_CHUNK))
			stop = asyncio.ensure_future(self._stopping.wait())
			done, _ = await asyncio.wait({read, stop}, return_when=asyncio.FIRST_COMPLETED)
			if stop in done:
				read.cancel()
				break
			stop.cancel()
			chunk = read.result()
			if not chunk:
				# stdin closed: parent went away. A final line may lack its newline
				if self._framer.pending:
					self._dispatch(self._framer.feed("\n"))
				break
			self._dispatch(self._framer.feed(chunk))

		if self._tasks:
			await asyncio.gather(*self._tasks, return_exceptions=True)
		logger.info("Tool server stopped")

	def _dispatch(self, messages: list) -> None:
		for message in messages:
			if not isinstance(message, JsonRpcRequest):
				continue
			task = asyncio.create_task(self._serve(message))
			self._tasks.add(task)
			task.add_done_callback(self._tasks.discard)

	async def _serve(self, request: JsonRpcRequest) -> None:
		response = await self.dispatcher.handle_request(request.to_dict())
		if request.id is None:
			return  # notification
		await self._write(response)

	async def _write(self, message: dict) -> None:
		data = LineFramer.serialize(message).encode("utf-8")
		async with self._write_lock:
			out = self._writer or sys.stdout.buffer
			out.write(data)
			out.flush()


def main() -> None:
	from ..logging_setup import configure_logging

	configure_logging(stream=sys.stderr)

	async def _run() -> None:
		server = StdioToolServer()
		loop = asyncio.get_running_loop()
		for sig in (signal.SIGTERM, signal.SIGINT):
			try:
				loop.add_signal_handler(sig, server.stop)
			except (NotImplementedError, RuntimeError):
				pass
		await server.run()

	try:
		asyncio.run(_run())
	except Exception as exc:
		print(f"MCP Server Error: {exc}", file=sys.stderr)
		sys.exit(1)


if __name__ == "__main__":
	main()
