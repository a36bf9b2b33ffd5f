"""JSON-RPC gateway to a Casper node.

The gateway issues one request per call, bounded by a timeout, and turns every
failure into a `GatewayError`. It never retries: the fallback chains in the
resolvers decide what to try next.
"""

import json
import logging
from collections.abc import Iterable, Sequence
from typing import Any

import requests
from web3 import HTTPProvider

from stakevue_state.constants import DEFAULT_RPC_TIMEOUT_S
from stakevue_state.errors import RemoteProtocolError, TransportError
from stakevue_state.models import StateRoot

logger = logging.getLogger(__name__)


class CasperHTTPProvider(HTTPProvider):
    """HTTPProvider that sends params verbatim.

    Casper methods take named params (a JSON object, possibly empty); the stock
    encoder replaces an empty object with an empty positional list.
    """

    def encode_rpc_request(self, method, params) -> bytes:
        rpc_dict = {
            "jsonrpc": "2.0",
            "method": method,
            "params": {} if params is None else params,
            "id": next(self.request_counter),
        }
        return json.dumps(rpc_dict).encode("utf-8")


class RpcGateway:
    """One Casper JSON-RPC endpoint."""

    def __init__(self, url: str, *, timeout_s: float = DEFAULT_RPC_TIMEOUT_S) -> None:
        self.url = url
        self.timeout_s = timeout_s
        self._providers: dict[float, HTTPProvider] = {}

    def __repr__(self) -> str:
        return f"RpcGateway({self.url!r}, timeout_s={self.timeout_s})"

    def _provider(self, timeout_s: float) -> HTTPProvider:
        provider = self._providers.get(timeout_s)
        if provider is None:
            provider = CasperHTTPProvider(
                self.url,
                request_kwargs={"timeout": timeout_s},
                exception_retry_configuration=None,
            )
            self._providers[timeout_s] = provider
        return provider

    def call(self, method: str, params: dict[str, Any] | None = None, *, timeout_s: float | None = None) -> Any:
        """Issue a JSON-RPC call and return its `result`.

        Raises TransportError when the endpoint cannot be reached or answers with
        something that is not a JSON-RPC response, RemoteProtocolError when the
        node returns an error object.
        """
        timeout = self.timeout_s if timeout_s is None else timeout_s
        provider = self._provider(timeout)
        try:
            response = provider.make_request(method, params if params is not None else {})
        except requests.exceptions.Timeout as ex:
            raise TransportError(f"{method}: timed out after {timeout}s", endpoint=self.url) from ex
        except (requests.exceptions.RequestException, OSError, ValueError) as ex:
            raise TransportError(f"{method}: {ex}", endpoint=self.url) from ex

        if not isinstance(response, dict):
            raise TransportError(f"{method}: unexpected response type {type(response).__name__}", endpoint=self.url)
        error = response.get("error")
        if error is not None:
            if isinstance(error, dict):
                raise RemoteProtocolError(
                    error.get("code"), str(error.get("message", "")), data=error.get("data"), endpoint=self.url
                )
            raise RemoteProtocolError(None, str(error), endpoint=self.url)
        if "result" not in response:
            raise TransportError(f"{method}: response has neither result nor error", endpoint=self.url)
        return response["result"]

    # Typed helpers for the methods the resolvers use.

    def get_state_root_hash(self) -> str:
        result = self.call("chain_get_state_root_hash", {})
        if result is None:
            return ""
        if not isinstance(result, dict):
            raise TransportError(
                f"chain_get_state_root_hash: unexpected result type {type(result).__name__}", endpoint=self.url
            )
        return str(result.get("state_root_hash") or "")

    def query_global_state(self, state_root: StateRoot, key: str, path: Sequence[str] = ()) -> Any:
        return self.call(
            "query_global_state",
            {
                "state_identifier": {"StateRootHash": state_root.hash},
                "key": key,
                "path": list(path),
            },
        )

    def query_balance(self, state_root: StateRoot, purse_identifier: dict[str, str]) -> Any:
        """Casper 2.x balance query. `purse_identifier` is e.g. {"purse_uref": "uref-..."}."""
        return self.call(
            "query_balance",
            {
                "purse_identifier": purse_identifier,
                "state_identifier": {"StateRootHash": state_root.hash},
            },
        )

    def state_get_balance(self, state_root: StateRoot, purse_uref: str) -> Any:
        """Pre-2.0 balance query."""
        return self.call("state_get_balance", {"purse_uref": purse_uref, "state_root_hash": state_root.hash})

    def get_dictionary_item(self, state_root: StateRoot, dictionary_identifier: dict[str, Any]) -> Any:
        return self.call(
            "state_get_dictionary_item",
            {"state_root_hash": state_root.hash, "dictionary_identifier": dictionary_identifier},
        )

    def get_entity(self, state_root: StateRoot, entity_addr: str) -> Any:
        return self.call(
            "state_get_entity",
            {"entity_identifier": {"EntityAddr": entity_addr}, "state_root_hash": state_root.hash},
        )

    def get_auction_info(self) -> Any:
        return self.call("state_get_auction_info", {})


def open_snapshot(gateways: Iterable[RpcGateway]) -> tuple[RpcGateway, StateRoot]:
    """Pin a request to the first endpoint that reports a state root.

    Every later read of the request goes to the same endpoint under the same root.
    """
    last_err: Exception | None = None
    tried: list[str] = []
    for gw in gateways:
        tried.append(gw.url)
        try:
            root_hash = gw.get_state_root_hash()
        except TransportError as ex:
            logger.warning("State root unavailable from %s: %s", gw.url, ex)
            last_err = ex
            continue
        except RemoteProtocolError as ex:
            logger.warning("State root query rejected by %s: %s", gw.url, ex)
            last_err = ex
            continue
        if root_hash:
            logger.debug("Pinned request to %s at state root %s", gw.url, root_hash)
            return gw, StateRoot(hash=root_hash, endpoint=gw.url)
        logger.warning("Empty state root from %s", gw.url)
    raise TransportError(f"No endpoint returned a state root (tried {len(tried)}: {', '.join(tried)})") from last_err
