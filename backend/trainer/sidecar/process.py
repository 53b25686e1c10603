"""
Sidecar process lifecycle.

Owns one child process at a time: spawning it with the right environment,
pumping its stdout through the line framer, watching stderr for the ready
marker, tracking the connection state and tearing it down with
SIGTERM-then-SIGKILL.

The process counts as connected either when the ready marker shows up on
stderr or, with ``require_handshake=True``, only when the owner calls
``mark_connected`` after a successful ``initialize`` exchange.
"""

from __future__ import annotations

import asyncio
import atexit
import enum
import logging
import os
import sys
import weakref
from pathlib import Path
from typing import Any, Callable

from dotenv import dotenv_values

from ..errors import HandshakeTimeout, SpawnError, TransportError
from ..rpc.framing import JsonRpcMessage, LineFramer
from .server import READY_MARKER

logger = logging.getLogger(__name__)

MessageCallback = Callable[[JsonRpcMessage], None]
ExitCallback = Callable[[int | None], None]

_live: "weakref.WeakSet[SidecarProcess]" = weakref.WeakSet()


@atexit.register
def _kill_orphans() -> None:
	for sidecar in list(_live):
		sidecar.kill()


class ConnectionState(str, enum.Enum):
	DISCONNECTED = "disconnected"
	CONNECTING = "connecting"
	CONNECTED = "connected"


def default_command() -> list[str]:
	return [sys.executable, "-m", "trainer.sidecar"]


def build_env(env_file: str | os.PathLike | None = None, overrides: dict[str, str] | None = None) -> dict[str, str]:
	"""Inherited environment, then values from ``env_file`` if it exists, then explicit overrides."""
	env = dict(os.environ)
	if env_file and Path(env_file).is_file():
		loaded = {k: v for k, v in dotenv_values(env_file).items() if v is not None}
		env.update(loaded)
		logger.info("Loaded %d environment variables from %s", len(loaded), env_file)
	if overrides:
		env.update(overrides)
	return env


class SidecarProcess:
	def __init__(
		self,
		command: list[str] | None = None,
		*,
		env_file: str | os.PathLike | None = None,
		env_overrides: dict[str, str] | None = None,
		cwd: str | os.PathLike | None = None,
		ready_marker: str = READY_MARKER,
		require_handshake: bool = False,
		poll_interval: float = 0.5,
		stop_grace: float = 5.0,
		on_message: MessageCallback | None = None,
		on_exit: ExitCallback | None = None,
	):
		self.command = command or default_command()
		self.env_file = env_file
		self.env_overrides = env_overrides
		self.cwd = cwd
		self.ready_marker = ready_marker
		self.require_handshake = require_handshake
		self.poll_interval = poll_interval
		self.stop_grace = stop_grace
		self.on_message = on_message
		self.on_exit = on_exit

		self.state = ConnectionState.DISCONNECTED
		self.returncode: int | None = None
		self._process: asyncio.subprocess.Process | None = None
		self._framer = LineFramer()
		self._tasks: list[asyncio.Task] = []
		self._stop_task: asyncio.Task | None = None
		self._stop_requested = False

	@property
	def pid(self) -> int | None:
		return self._process.pid if self._process else None

	@property
	def is_connected(self) -> bool:
		return self.state is ConnectionState.CONNECTED

	def is_alive(self) -> bool:
		return self._process is not None and self._process.returncode is None

	async def start(self) -> None:
		"""Spawn the sidecar. Raises SpawnError if the executable cannot be started."""
		if self.is_alive():
			logger.warning("Sidecar already running, stopping first")
			await self.stop()

		logger.info("Starting sidecar: %s", " ".join(self.command))
		self._framer.reset()
		self.returncode = None
		self._stop_requested = False
		self.state = ConnectionState.CONNECTING
		try:
			self._process = await asyncio.create_subprocess_exec(
				*self.command,
				stdin=asyncio.subprocess.PIPE,
				stdout=asyncio.subprocess.PIPE,
				stderr=asyncio.subprocess.PIPE,
				env=build_env(self.env_file, self.env_overrides),
				cwd=self.cwd,
			)
		except OSError as exc:
			self.state = ConnectionState.DISCONNECTED
			self._process = None
			raise SpawnError(f"Failed to start MCP server: {exc}") from exc

		_live.add(self)
		process = self._process
		self._tasks = [
			asyncio.create_task(self._pump_stdout(process)),
			asyncio.create_task(self._pump_stderr(process)),
			asyncio.create_task(self._watch_exit(process)),
		]

	def mark_connected(self) -> None:
		if self.is_alive():
			self.state = ConnectionState.CONNECTED

	async def wait_connected(self, max_attempts: int = 10) -> bool:
		"""Poll the connection state every ``poll_interval`` seconds, at most ``max_attempts`` times."""
		attempts = 0
		while not self.is_connected and attempts < max_attempts and self.is_alive():
			await asyncio.sleep(self.poll_interval)
			attempts += 1
			if attempts % 6 == 0:
				logger.info("Waiting for MCP server... (%dms)", int(attempts * self.poll_interval * 1000))
		return self.is_connected

	async def connect(self, max_attempts: int = 10) -> None:
		"""Start and wait for the ready signal, stopping the child on failure."""
		await self.start()
		if not await self.wait_connected(max_attempts):
			await self.stop()
			raise HandshakeTimeout("Failed to connect to MCP server within timeout")

	def kill(self) -> None:
		"""Synchronous SIGKILL for interpreter exit; no waiting."""
		process = self._process
		if process is not None and process.returncode is None:
			try:
				process.kill()
			except ProcessLookupError:
				pass

	async def send(self, message: Any) -> None:
		process = self._process
		if process is None or process.stdin is None or process.returncode is not None:
			raise TransportError("MCP server is not running")
		try:
			process.stdin.write(LineFramer.serialize(message).encode("utf-8"))
			await process.stdin.drain()
		except (BrokenPipeError, ConnectionResetError) as exc:
			raise TransportError(f"Failed to write to MCP server: {exc}") from exc

	async def stop(self) -> None:
		"""SIGTERM, then SIGKILL after the grace period. Safe to call repeatedly."""
		if self._stop_task is not None:
			await asyncio.shield(self._stop_task)
			return
		if self._process is None:
			return
		self._stop_task = asyncio.ensure_future(self._terminate(self._process))
		try:
			await asyncio.shield(self._stop_task)
		finally:
			self._stop_task = None

	async def _terminate(self, process: asyncio.subprocess.Process) -> None:
		self._stop_requested = True
		if process.returncode is None:
			logger.info("Cleaning up MCP process %s", process.pid)
			try:
				process.terminate()
				await asyncio.wait_for(process.wait(), timeout=self.stop_grace)
			except asyncio.TimeoutError:
				logger.warning("MCP process %s ignored SIGTERM, killing", process.pid)
				process.kill()
				await process.wait()
			except ProcessLookupError:
				pass
		self.returncode = process.returncode
		for task in self._tasks:
			if task is not asyncio.current_task():
				task.cancel()
		self._tasks = []
		if self._process is process:
			self._process = None
		_live.discard(self)
		self.state = ConnectionState.DISCONNECTED

	async def _pump_stdout(self, process: asyncio.subprocess.Process) -> None:
		assert process.stdout is not None
		while True:
			chunk = await process.stdout.read(65536)
			if not chunk:
				return
			for message in self._framer.feed(chunk):
				if self.on_message is not None:
					try:
						self.on_message(message)
					except Exception:
						logger.exception("Message handler failed")

	async def _pump_stderr(self, process: asyncio.subprocess.Process) -> None:
		assert process.stderr is not None
		while True:
			raw = await process.stderr.readline()
			if not raw:
				return
			line = raw.decode("utf-8", errors="replace").rstrip()
			if not line:
				continue
			if self.ready_marker and self.ready_marker in line:
				logger.info("MCP server ready")
				if not self.require_handshake:
					self.mark_connected()
			elif "error" in line.lower():
				logger.error("MCP Server error: %s", line)
			else:
				logger.debug("[MCP] %s", line)

	async def _watch_exit(self, process: asyncio.subprocess.Process) -> None:
		code = await process.wait()
		self.returncode = code
		if self._process is process:
			self.state = ConnectionState.DISCONNECTED
		logger.info("MCP Server exited with code %s", code)
		# Only unexpected exits are reported; stop() handles its own cleanup
		if self.on_exit is not None and not self._stop_requested:
			self.on_exit(code)
