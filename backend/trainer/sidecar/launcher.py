"""Standalone sidecar supervisor: keeps the tool server running during development."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import Optional

from ..errors import TransportError
from ..settings import Settings
from .process import SidecarProcess

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGUSR1, signal.SIGUSR2)


class Launcher:
	def __init__(self, settings: Optional[Settings] = None, process: Optional[SidecarProcess] = None):
		if settings is None:
			from ..settings import settings as default_settings
			settings = default_settings
		self.settings = settings
		self.process = process or SidecarProcess(
			settings.sidecar_command,
			env_file=settings.sidecar_env_file,
			poll_interval=settings.poll_interval_seconds,
			stop_grace=settings.stop_grace_seconds,
		)
		self.process.on_exit = self._on_exit
		self.shutting_down = False
		self.restarts = 0
		self._restart_task: Optional[asyncio.Task] = None
		self._stopped: Optional[asyncio.Event] = None

	async def start(self) -> None:
		await self.process.connect(self.settings.launcher_connect_attempts)
		logger.info("MCP Server started successfully (pid %s)", self.process.pid)

	def _on_exit(self, code: Optional[int]) -> None:
		if self.shutting_down:
			return
		if code:
			logger.warning("MCP Server exited with code %s, restarting in %gs", code, self.settings.restart_delay_seconds)
			self._restart_task = asyncio.ensure_future(self._restart())
		elif self._stopped is not None:
			self._stopped.set()

	async def _restart(self) -> None:
		await asyncio.sleep(self.settings.restart_delay_seconds)
		if self.shutting_down:
			return
		self.restarts += 1
		try:
			await self.start()
		except TransportError as exc:
			logger.error("Restart failed: %s", exc)
			if self._stopped is not None:
				self._stopped.set()

	async def shutdown(self, reason: str = "shutdown") -> None:
		if self.shutting_down:
			return
		self.shutting_down = True
		logger.info("Received %s, shutting down MCP server...", reason)
		if self._restart_task is not None and not self._restart_task.done():
			self._restart_task.cancel()
		await self.process.stop()
		if self._stopped is not None:
			self._stopped.set()

	async def run(self) -> None:
		"""Start the sidecar and supervise it until a shutdown signal arrives."""
		self._stopped = asyncio.Event()
		loop = asyncio.get_running_loop()
		for sig in SHUTDOWN_SIGNALS:
			try:
				loop.add_signal_handler(sig, lambda s=sig: asyncio.ensure_future(self.shutdown(s.name)))
			except (NotImplementedError, RuntimeError):
				pass
		await self.start()
		await self._stopped.wait()


def main() -> None:
	from ..logging_setup import configure_logging

	configure_logging()
	try:
		asyncio.run(Launcher().run())
	except TransportError as exc:
		logger.error("Failed to start MCP server: %s", exc)
		sys.exit(1)


if __name__ == "__main__":
	main()
