import threading
from datetime import datetime, timezone

import pytest

from stakevue_state.config import EngineConfig
from stakevue_state.errors import RemoteProtocolError
from stakevue_state.gateway import RpcGateway
from stakevue_state.models import StateRoot

FAKE_URL = "http://fake-node/rpc"
FAKE_ROOT = "5a1e" * 16


def cl(parsed, cl_type="Any"):
    """A query_global_state / dictionary-item result carrying a CLValue."""
    return {"stored_value": {"CLValue": {"cl_type": cl_type, "bytes": "", "parsed": parsed}}}


def not_found(method="query_global_state"):
    return RemoteProtocolError(-32003, f"{method}: value not found", endpoint=FAKE_URL)


class FakeGateway(RpcGateway):
    """Gateway answering from a handler instead of the network.

    `handler(method, params)` returns the JSON-RPC result, returns None for a
    "not found" node error, or returns/raises an exception to simulate failures.
    Every call is recorded in `calls`.
    """

    def __init__(self, handler=None, *, url=FAKE_URL, state_root=FAKE_ROOT):
        super().__init__(url)
        self.handler = handler or (lambda method, params: None)
        self.state_root_hash = state_root
        self.calls = []
        self._lock = threading.Lock()

    def call(self, method, params=None, *, timeout_s=None):
        with self._lock:
            self.calls.append((method, params))
        if method == "chain_get_state_root_hash":
            if isinstance(self.state_root_hash, Exception):
                raise self.state_root_hash
            return {"state_root_hash": self.state_root_hash}
        result = self.handler(method, params or {})
        if isinstance(result, Exception):
            raise result
        if result is None:
            raise not_found(method)
        return result

    def methods(self):
        return [m for m, _ in self.calls]


@pytest.fixture
def config():
    # No explorer URLs: tests never reach the network.
    return EngineConfig(explorer_urls=(), debug=True)


@pytest.fixture
def state_root():
    return StateRoot(FAKE_ROOT, FAKE_URL)


@pytest.fixture
def now():
    return datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)
