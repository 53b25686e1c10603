"""Tests for the sidecar supervisor's restart policy."""

import asyncio

import pytest

from trainer.sidecar.launcher import Launcher


class FakeProcess:
	def __init__(self) -> None:
		self.on_exit = None
		self.connects = 0
		self.stops = 0
		self.pid = 4242

	async def connect(self, max_attempts: int = 10) -> None:
		self.connects += 1

	async def stop(self) -> None:
		self.stops += 1


@pytest.mark.asyncio
async def test_crash_triggers_restart_after_delay(local_settings) -> None:
	process = FakeProcess()
	launcher = Launcher(local_settings, process=process)
	await launcher.start()
	process.on_exit(1)
	await asyncio.sleep(0.1)
	assert process.connects == 2
	assert launcher.restarts == 1


@pytest.mark.asyncio
async def test_clean_exit_does_not_restart(local_settings) -> None:
	process = FakeProcess()
	launcher = Launcher(local_settings, process=process)
	await launcher.start()
	process.on_exit(0)
	await asyncio.sleep(0.05)
	assert process.connects == 1


@pytest.mark.asyncio
async def test_shutdown_suppresses_restart(local_settings) -> None:
	process = FakeProcess()
	launcher = Launcher(local_settings, process=process)
	await launcher.start()
	process.on_exit(1)
	await launcher.shutdown("SIGTERM")
	process.on_exit(-15)
	await asyncio.sleep(0.05)
	assert process.connects == 1
	await launcher.shutdown("SIGINT")
	assert process.stops == 1


@pytest.mark.asyncio
async def test_run_returns_after_shutdown(local_settings) -> None:
	process = FakeProcess()
	launcher = Launcher(local_settings, process=process)
	runner = asyncio.create_task(launcher.run())
	await asyncio.sleep(0.01)
	await launcher.shutdown("SIGUSR1")
	await asyncio.wait_for(runner, timeout=1)
	assert process.connects == 1
