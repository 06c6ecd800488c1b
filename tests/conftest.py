"""Root pytest configuration for all tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from acp_runtime.agents import AgentRegistry
from acp_runtime.config import AgentsConfig, SessionConfig, ShutdownConfig, reset_config
from acp_runtime.events import EventBus
from acp_runtime.session import AgentSessionManager
from tests.utils import EventRecorder

# Configure pytest-asyncio to use auto mode
# This is redundant with pyproject.toml but ensures it's set
pytest_plugins = ("pytest_asyncio",)


# A minimal ACP agent. FAKE_AGENT_MODE selects its behaviour:
#   ok    - normal handshake; prompts are echoed back as message chunks
#   exit  - exits with code 1 on initialize
#   auth  - fails initialize with an authentication error
#   mute  - reads requests and never answers
# A prompt of the form "write <path>" asks the client to write "new" to
# <path> and reports the outcome as a message chunk.
FAKE_AGENT = r'''
import json
import os
import sys

MODE = os.environ.get("FAKE_AGENT_MODE", "ok")
_next_id = 0


def send(msg):
    msg["jsonrpc"] = "2.0"
    sys.stdout.write(json.dumps(msg) + "\n")
    sys.stdout.flush()


def read():
    line = sys.stdin.readline()
    if not line:
        sys.exit(0)
    return json.loads(line)


def call(method, params):
    global _next_id
    _next_id += 1
    rid = "agent-%d" % _next_id
    send({"id": rid, "method": method, "params": params})
    while True:
        msg = read()
        if msg.get("id") == rid and "method" not in msg:
            return msg


def chunk(sid, text):
    send({
        "method": "session/update",
        "params": {
            "sessionId": sid,
            "update": {
                "sessionUpdate": "agent_message_chunk",
                "content": {"type": "text", "text": text},
            },
        },
    })


sys.stderr.write("fake agent starting\n")
sys.stderr.flush()

while True:
    msg = read()
    method = msg.get("method")
    mid = msg.get("id")
    params = msg.get("params") or {}
    if mid is None or MODE == "mute":
        continue
    if method == "initialize":
        if MODE == "exit":
            sys.exit(1)
        if MODE == "auth":
            send({"id": mid, "error": {"code": -32000, "message": "Authentication required"}})
            continue
        send({"id": mid, "result": {"protocolVersion": 1, "agentInfo": {"name": "fake-agent"}}})
    elif method == "session/new":
        send({"id": mid, "result": {"sessionId": "acp-%d" % os.getpid()}})
    elif method == "session/prompt":
        sid = params["sessionId"]
        text = params["prompt"][0]["text"]
        if text.startswith("write "):
            reply = call("fs/write_text_file", {"sessionId": sid, "path": text[6:], "content": "new"})
            if "error" in reply:
                chunk(sid, "write-failed: " + reply["error"]["message"])
            else:
                chunk(sid, "write-ok")
        else:
            chunk(sid, "echo: " + text)
        send({"id": mid, "result": {"stopReason": "end_turn"}})
    elif method == "session/set_mode":
        send({"id": mid, "result": {}})
    else:
        send({"id": mid, "error": {"code": -32601, "message": "Method not found: %s" % method}})
'''


@pytest.fixture(autouse=True)
def _reset_config() -> None:
    reset_config()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def recorder(bus: EventBus) -> EventRecorder:
    return EventRecorder(bus)


@pytest.fixture
def agent_bin(tmp_path: Path) -> Path:
    """A bundled bin directory holding the fake agent as ``seren-acp-codex``."""
    if sys.platform == "win32":
        pytest.skip("fake agent is launched through a shebang")
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    script = bin_dir / "seren-acp-codex"
    script.write_text(f"#!{sys.executable}\n{FAKE_AGENT}", encoding="utf-8")
    script.chmod(0o755)
    return bin_dir


@pytest.fixture
def agents_config(agent_bin: Path, tmp_path: Path) -> AgentsConfig:
    return AgentsConfig(
        bundled_dir=str(agent_bin),
        user_dir=str(tmp_path / "user-bin"),
        dev_dir=str(tmp_path / "dev-bin"),
    )


@pytest.fixture
async def manager(bus: EventBus, agents_config: AgentsConfig):
    """Session manager wired to the fake agent, shut down after the test."""
    config = SessionConfig(
        decision_timeout=5.0,
        shutdown=ShutdownConfig(interrupt_timeout=0.5, terminate_timeout=0.5),
    )
    mgr = AgentSessionManager(bus, AgentRegistry(agents_config), config)
    yield mgr
    await mgr.shutdown_all()
