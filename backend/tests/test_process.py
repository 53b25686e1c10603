"""Tests for the sidecar process lifecycle and the stdio transport."""

import asyncio
import signal
import sys
from pathlib import Path

import pytest

import trainer
from trainer.errors import HandshakeTimeout, SpawnError, ToolCallError, TransportError
from trainer.sidecar.process import ConnectionState, SidecarProcess, build_env
from trainer.sidecar.server import READY_MARKER
from trainer.transports import SubprocessTransport

BACKEND_DIR = str(Path(trainer.__file__).resolve().parents[1])

MARKER_THEN_SLEEP = f"import sys, time; print({READY_MARKER!r}, file=sys.stderr, flush=True); time.sleep(30)"
SILENT = "import time; time.sleep(30)"
IGNORES_SIGTERM = (
	"import signal, sys, time; signal.signal(signal.SIGTERM, signal.SIG_IGN); "
	f"print({READY_MARKER!r}, file=sys.stderr, flush=True); time.sleep(30)"
)

# Answers initialize, then echoes the tool name; exits on the tool named "crash"
ECHO_SERVER = """
import json, sys
while True:
    line = sys.stdin.readline()
    if not line:
        break
    msg = json.loads(line)
    if msg.get("id") is None:
        continue
    if msg["method"] == "initialize":
        result = {"protocolVersion": "2024-11-05"}
    elif msg["params"]["name"] == "crash":
        sys.exit(3)
    else:
        text = json.dumps({"ok": True, "result": msg["params"]["name"]})
        result = {"content": [{"type": "text", "text": text}]}
    sys.stdout.write("log noise\\n")
    sys.stdout.write(json.dumps({"jsonrpc": "2.0", "id": msg["id"], "result": result}) + "\\n")
    sys.stdout.flush()
"""


def _python(code: str) -> list:
	return [sys.executable, "-c", code]


@pytest.mark.asyncio
async def test_marker_connects_and_stop_is_idempotent() -> None:
	process = SidecarProcess(_python(MARKER_THEN_SLEEP), poll_interval=0.05)
	await process.connect(max_attempts=200)
	assert process.state is ConnectionState.CONNECTED
	assert process.pid is not None
	await process.stop()
	assert process.state is ConnectionState.DISCONNECTED
	assert process.pid is None
	await process.stop()


@pytest.mark.asyncio
async def test_silent_child_times_out_and_is_stopped() -> None:
	process = SidecarProcess(_python(SILENT), poll_interval=0.05)
	with pytest.raises(HandshakeTimeout):
		await process.connect(max_attempts=3)
	assert not process.is_alive()
	assert process.state is ConnectionState.DISCONNECTED


@pytest.mark.asyncio
async def test_missing_executable_is_a_spawn_error() -> None:
	process = SidecarProcess(["/nonexistent/trainer-sidecar"])
	with pytest.raises(SpawnError):
		await process.start()
	assert process.state is ConnectionState.DISCONNECTED


@pytest.mark.asyncio
async def test_sigterm_ignored_then_killed() -> None:
	process = SidecarProcess(_python(IGNORES_SIGTERM), poll_interval=0.05, stop_grace=0.3)
	exits = []
	process.on_exit = exits.append
	await process.connect(max_attempts=200)
	await process.stop()
	assert process.returncode == -signal.SIGKILL
	assert exits == []


def test_env_file_values_override_inherited(tmp_path, monkeypatch) -> None:
	env_file = tmp_path / ".env.local"
	env_file.write_text("OPENAI_API_KEY=from-file\nEXTRA=1\n")
	monkeypatch.setenv("OPENAI_API_KEY", "from-env")
	env = build_env(env_file, {"EXTRA": "2"})
	assert env["OPENAI_API_KEY"] == "from-file"
	assert env["EXTRA"] == "2"
	assert build_env(tmp_path / "missing.env")["OPENAI_API_KEY"] == "from-env"


@pytest.mark.asyncio
async def test_subprocess_transport_handshake_and_calls(local_settings) -> None:
	process = SidecarProcess(_python(ECHO_SERVER), require_handshake=True, poll_interval=0.05)
	transport = SubprocessTransport(local_settings, process=process)
	await transport.connect()
	assert transport.is_connected
	first, second = await asyncio.gather(
		transport.request("tools/call", {"name": "a"}),
		transport.request("tools/call", {"name": "b"}),
	)
	assert first["content"][0]["text"] == '{"ok": true, "result": "a"}'
	assert second["content"][0]["text"] == '{"ok": true, "result": "b"}'
	assert transport.status()["pendingRequests"] == 0
	await transport.close()
	await transport.close()
	assert not transport.is_connected


@pytest.mark.asyncio
async def test_child_exit_fails_pending_requests(local_settings) -> None:
	process = SidecarProcess(_python(ECHO_SERVER), require_handshake=True, poll_interval=0.05)
	transport = SubprocessTransport(local_settings, process=process)
	await transport.connect()
	with pytest.raises(TransportError, match="exited with code 3"):
		await transport.request("tools/call", {"name": "crash"})
	assert not transport.is_connected
	with pytest.raises(TransportError):
		await transport.request("tools/call", {"name": "a"})
	await transport.close()


@pytest.mark.asyncio
async def test_real_sidecar_serves_tools(local_settings) -> None:
	process = SidecarProcess(
		env_overrides={"PYTHONPATH": BACKEND_DIR, "OPENAI_API_KEY": ""},
		require_handshake=True,
		poll_interval=0.05,
	)
	transport = SubprocessTransport(local_settings, process=process)
	await transport.connect()
	try:
		listed = await transport.request("tools/list")
		assert "validate_web_code" in [tool["name"] for tool in listed["tools"]]
		result = await transport.request("tools/call", {"name": "validate_web_code", "arguments": {"code": "{}", "language": "json"}})
		assert '"ok": true' in result["content"][0]["text"]
		with pytest.raises(ToolCallError, match="OPENAI_API_KEY"):
			await transport.request("tools/call", {"name": "explain_web_concept", "arguments": {"question": "flexbox"}})
	finally:
		await transport.close()
