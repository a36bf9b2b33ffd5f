"""Contract storage reads under a fixed state root.

Remote "not found"-style errors on individual keys are reported as None /
NotFound; transport failures propagate so the calling strategy fails as a whole.
"""

import logging
from collections.abc import Sequence
from typing import Any

from stakevue_state.config import EngineConfig
from stakevue_state.errors import NotFound, RemoteProtocolError
from stakevue_state.gateway import RpcGateway
from stakevue_state.models import StateRoot
from stakevue_state.parsing import cl_value_of, stored_value_to_int, to_int

logger = logging.getLogger(__name__)


def dictionary_identifiers(config: EngineConfig, dictionary_name: str, item_key: str) -> list[dict[str, Any]]:
    """Dictionary identifiers to try, newest storage layout first.

    Casper 2.0 addresses the contract as an entity; 1.x contracts are reached
    through the package hash, either as a contract or as an account named key.
    """
    item = {"dictionary_name": dictionary_name, "dictionary_item_key": item_key}
    return [
        {"ContractNamedKey": {"key": config.entity_addr, **item}},
        {"ContractNamedKey": {"key": config.contract_key, **item}},
        {"AccountNamedKey": {"key": config.contract_key, **item}},
    ]


def read_dictionary_item(
    gateway: RpcGateway, state_root: StateRoot, config: EngineConfig, dictionary_name: str, item_key: str
) -> Any:
    """CLValue stored under `dictionary_name[item_key]`; raises NotFound if no layout has it."""
    rejected: list[str] = []
    for identifier in dictionary_identifiers(config, dictionary_name, item_key):
        try:
            result = gateway.get_dictionary_item(state_root, identifier)
        except RemoteProtocolError as ex:
            rejected.append(f"{next(iter(identifier))}: {ex.remote_message}")
            continue
        cl = cl_value_of(result)
        if cl is not None:
            return cl
    raise NotFound(f"{dictionary_name}[{item_key}] not found ({'; '.join(rejected) or 'empty result'})")


def read_dictionary_int(
    gateway: RpcGateway, state_root: StateRoot, config: EngineConfig, dictionary_name: str, item_key: str
) -> int | None:
    try:
        cl = read_dictionary_item(gateway, state_root, config, dictionary_name, item_key)
    except NotFound:
        return None
    return to_int(cl)


def read_contract_path(gateway: RpcGateway, state_root: StateRoot, config: EngineConfig, path: Sequence[str]) -> Any:
    """Stored value at `path` under the contract package, or None if the path does not exist."""
    try:
        result = gateway.query_global_state(state_root, config.contract_key, path)
    except RemoteProtocolError as ex:
        logger.debug("Path %s not readable: %s", "/".join(path), ex)
        return None
    return (result or {}).get("stored_value") if isinstance(result, dict) else None


def read_contract_int(
    gateway: RpcGateway, state_root: StateRoot, config: EngineConfig, path: Sequence[str]
) -> int | None:
    stored = read_contract_path(gateway, state_root, config, path)
    return stored_value_to_int(stored) if stored is not None else None


def read_key_int(gateway: RpcGateway, state_root: StateRoot, key: str) -> int | None:
    """Integer stored directly under a global-state key (e.g. a named-key URef)."""
    try:
        result = gateway.query_global_state(state_root, key, ())
    except RemoteProtocolError as ex:
        logger.debug("Key %s not readable: %s", key, ex)
        return None
    return stored_value_to_int(result)


def purse_balance(gateway: RpcGateway, state_root: StateRoot, purse_identifier: dict[str, str]) -> int | None:
    """Balance via query_balance (Casper 2.x)."""
    result = gateway.query_balance(state_root, purse_identifier)
    return to_int((result or {}).get("balance")) if isinstance(result, dict) else None


def legacy_purse_balance(gateway: RpcGateway, state_root: StateRoot, purse_uref: str) -> int | None:
    """Balance via state_get_balance (Casper 1.x)."""
    result = gateway.state_get_balance(state_root, purse_uref)
    return to_int((result or {}).get("balance_value")) if isinstance(result, dict) else None
