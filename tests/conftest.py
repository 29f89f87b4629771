import json
import threading
import time

import pytest

from light_node.rpc.requests import RequestIdCounter
from light_node.session.guard import SessionGuard

from tests.fake_session import FakeSessionEngine

CONFIG_ENV_KEYS = (
    "GENESIS_PATH",
    "BOOT_NODE",
    "SESSION_COMMAND",
    "SESSION_STARTUP_GRACE",
    "POLL_INTERVAL",
    "RECONNECT_DELAY",
    "LOG_DIR",
    "LOG_LEVEL",
    "METRICS_PORT",
)

BOOT_NODE = "/ip4/1.2.3.4/tcp/30333"

UNHEALTHY = '{"jsonrpc":"2.0","id":7,"result":{"isSyncing":false,"peers":0,"shouldHavePeers":false}}'
HEALTHY = '{"jsonrpc":"2.0","id":8,"result":{"isSyncing":false,"peers":3,"shouldHavePeers":true}}'
NEW_HEAD = '{"jsonrpc":"2.0","method":"chain_newHead","params":{"subscription":"s1","result":{"number":"0x1"}}}'


def wait_until(predicate, timeout=5.0, interval=0.01):
    """Poll predicate until true; False on timeout."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def engine():
    return FakeSessionEngine()


@pytest.fixture
def guard(engine):
    return SessionGuard(engine)


@pytest.fixture
def request_ids():
    return RequestIdCounter()


@pytest.fixture
def stop_event():
    event = threading.Event()
    yield event
    event.set()


@pytest.fixture
def genesis_file(tmp_path):
    path = tmp_path / "genesis.json"
    path.write_text(json.dumps({"name": "test"}), encoding="utf-8")
    return path


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Isolate Config from the developer's environment and .env file."""
    for key in CONFIG_ENV_KEYS:
        # setenv first so teardown also removes values load_dotenv() adds
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    monkeypatch.setattr("light_node.core.config.DEFAULT_ENV_PATH", tmp_path / "missing.env")
    return monkeypatch
