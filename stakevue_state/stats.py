"""Pool balance, stCSPR supply and exchange rate.

Sources, most direct first:

1. purse_uref_balance  query_balance on the contract's main purse URef
2. legacy_balance      state_get_balance (pre-2.0 nodes) on the same URef
3. odra_state          versioned storage paths under the contract package
4. entity_main_purse   main purse of the entity found at the package key
5. entity_state        named keys of the addressable entity, matched by substring
6. explorer            block-explorer REST API

If every source fails the stats fall back to pool = supply = 0 and rate = 1.0.
"""

from datetime import datetime, timezone
from typing import Any

from stakevue_state.config import EngineConfig
from stakevue_state.constants import POOL_NAME_HINTS, POOL_PATHS, SOURCE_DEFAULT, SUPPLY_NAME_HINTS, SUPPLY_PATHS
from stakevue_state.errors import ExplorerError
from stakevue_state.explorer import extract_pool_and_supply, fetch_contract_package
from stakevue_state.gateway import RpcGateway
from stakevue_state.models import PoolSupply, ProtocolStats, ResolutionAttempt, StateRoot
from stakevue_state.onchain import legacy_purse_balance, purse_balance, read_contract_int, read_key_int
from stakevue_state.parsing import main_purse_of, named_keys_of
from stakevue_state.rates import exchange_rate
from stakevue_state.resolver import Resolution, Strategy, StrategyKind, StrategyResolver

SOURCE_PURSE_UREF = "purse_uref_balance"
SOURCE_LEGACY_BALANCE = "legacy_balance"
SOURCE_ODRA_STATE = "odra_state"
SOURCE_ENTITY_STATE = "entity_state"
SOURCE_ENTITY_MAIN_PURSE = "entity_main_purse"
SOURCE_EXPLORER = "explorer"


def _first_positive_path(
    gateway: RpcGateway, state_root: StateRoot, config: EngineConfig, paths, trace: list[dict[str, Any]]
) -> int | None:
    for path in paths:
        value = read_contract_int(gateway, state_root, config, path)
        trace.append({"path": list(path), "value": value})
        if value is not None and value > 0:
            return value
    return None


def _supply_or(gateway: RpcGateway, state_root: StateRoot, config: EngineConfig, pool: int, trace) -> int:
    # Without a readable supply the pool is assumed to be 1:1 with stCSPR.
    supply = _first_positive_path(gateway, state_root, config, SUPPLY_PATHS, trace)
    return supply if supply is not None else pool


def purse_uref_balance(gateway: RpcGateway, state_root: StateRoot, config: EngineConfig) -> ResolutionAttempt:
    balance = purse_balance(gateway, state_root, {"purse_uref": config.contract_purse_uref})
    if balance is None:
        return ResolutionAttempt(SOURCE_PURSE_UREF, False, None, {"purse": config.contract_purse_uref})
    trace: list[dict[str, Any]] = []
    supply = _supply_or(gateway, state_root, config, balance, trace)
    return ResolutionAttempt(SOURCE_PURSE_UREF, True, PoolSupply(balance, supply), {"supply_paths": trace})


def legacy_balance(gateway: RpcGateway, state_root: StateRoot, config: EngineConfig) -> ResolutionAttempt:
    balance = legacy_purse_balance(gateway, state_root, config.contract_purse_uref)
    if balance is None:
        return ResolutionAttempt(SOURCE_LEGACY_BALANCE, False, None, {"purse": config.contract_purse_uref})
    trace: list[dict[str, Any]] = []
    supply = _supply_or(gateway, state_root, config, balance, trace)
    return ResolutionAttempt(SOURCE_LEGACY_BALANCE, True, PoolSupply(balance, supply), {"supply_paths": trace})


def odra_state(gateway: RpcGateway, state_root: StateRoot, config: EngineConfig) -> ResolutionAttempt:
    trace: list[dict[str, Any]] = []
    pool = _first_positive_path(gateway, state_root, config, POOL_PATHS, trace) or 0
    supply = _first_positive_path(gateway, state_root, config, SUPPLY_PATHS, trace) or 0
    if pool > 0 or supply > 0:
        return ResolutionAttempt(SOURCE_ODRA_STATE, True, PoolSupply(pool, supply), {"attempts": trace})
    return ResolutionAttempt(SOURCE_ODRA_STATE, False, None, {"attempts": trace})


def entity_state(gateway: RpcGateway, state_root: StateRoot, config: EngineConfig) -> ResolutionAttempt:
    """Heuristic: any named key whose name mentions the pool or the supply.

    A name can match both families ("stcspr" contains "cspr"); the last
    readable match of each family wins.
    """
    entity = gateway.get_entity(state_root, config.entity_addr)
    named_keys = named_keys_of(entity)
    if not named_keys:
        return ResolutionAttempt(SOURCE_ENTITY_STATE, False, None, {"named_keys": []})

    pool = 0
    supply = 0
    matched: dict[str, int | None] = {}
    for name, key in named_keys.items():
        lname = name.lower()
        is_pool = any(h in lname for h in POOL_NAME_HINTS)
        is_supply = any(h in lname for h in SUPPLY_NAME_HINTS)
        if not (is_pool or is_supply):
            continue
        value = read_key_int(gateway, state_root, key)
        matched[name] = value
        if value is None:
            continue
        if is_pool:
            pool = value
        if is_supply:
            supply = value

    diagnostic = {"named_keys": sorted(named_keys), "matched": matched}
    if pool > 0 or supply > 0:
        return ResolutionAttempt(SOURCE_ENTITY_STATE, True, PoolSupply(pool, supply), diagnostic)
    return ResolutionAttempt(SOURCE_ENTITY_STATE, False, None, diagnostic)


def entity_main_purse(gateway: RpcGateway, state_root: StateRoot, config: EngineConfig) -> ResolutionAttempt:
    result = gateway.query_global_state(state_root, config.contract_key, ())
    stored = result.get("stored_value") if isinstance(result, dict) else None
    kinds = sorted(stored) if isinstance(stored, dict) else []
    if not isinstance(stored, dict) or "AddressableEntity" not in stored or not main_purse_of(stored):
        return ResolutionAttempt(SOURCE_ENTITY_MAIN_PURSE, False, None, {"stored_value_type": kinds})
    balance = purse_balance(gateway, state_root, {"main_purse_under_entity_addr": config.entity_addr})
    if balance is None:
        return ResolutionAttempt(SOURCE_ENTITY_MAIN_PURSE, False, None, {"stored_value_type": kinds, "balance": None})
    trace: list[dict[str, Any]] = []
    supply = _supply_or(gateway, state_root, config, balance, trace)
    return ResolutionAttempt(SOURCE_ENTITY_MAIN_PURSE, True, PoolSupply(balance, supply), {"supply_paths": trace})


def explorer_stats(config: EngineConfig) -> ResolutionAttempt:
    """Off-chain; not pinned to the request's state root."""
    try:
        payload = fetch_contract_package(
            config.contract_package_hash, config.explorer_urls, timeout_s=config.explorer_timeout_s
        )
    except ExplorerError as ex:
        cause = ex.__cause__
        return ResolutionAttempt(
            SOURCE_EXPLORER, False, None, {"error": str(ex), "cause": str(cause) if cause else None}
        )
    pool, supply = extract_pool_and_supply(payload)
    data = payload.get("data", payload)
    diagnostic = {"fields": sorted(str(k) for k in data)[:20] if isinstance(data, dict) else []}
    if pool or supply:
        return ResolutionAttempt(SOURCE_EXPLORER, True, PoolSupply(pool or 0, supply or 0), diagnostic)
    return ResolutionAttempt(SOURCE_EXPLORER, False, None, diagnostic)


def stats_strategies(gateway: RpcGateway, config: EngineConfig) -> list[Strategy]:
    """Pool/supply strategies in priority order."""
    return [
        Strategy(SOURCE_PURSE_UREF, lambda root: purse_uref_balance(gateway, root, config), StrategyKind.DIRECT),
        Strategy(SOURCE_LEGACY_BALANCE, lambda root: legacy_balance(gateway, root, config), StrategyKind.DIRECT),
        Strategy(SOURCE_ODRA_STATE, lambda root: odra_state(gateway, root, config), StrategyKind.PATH),
        Strategy(SOURCE_ENTITY_MAIN_PURSE, lambda root: entity_main_purse(gateway, root, config), StrategyKind.DIRECT),
        Strategy(SOURCE_ENTITY_STATE, lambda root: entity_state(gateway, root, config), StrategyKind.HEURISTIC),
        Strategy(SOURCE_EXPLORER, lambda root: explorer_stats(config), StrategyKind.EXTERNAL),
    ]


def build_protocol_stats(
    resolution: Resolution[PoolSupply],
    config: EngineConfig,
    *,
    now: datetime,
    state_root: StateRoot | None = None,
    error: str | None = None,
) -> ProtocolStats:
    pool_supply = resolution.value
    return ProtocolStats(
        total_pool_motes=pool_supply.total_pool_motes,
        total_supply_motes=pool_supply.total_supply_motes,
        exchange_rate_fixed_point=exchange_rate(
            pool_supply.total_pool_motes, pool_supply.total_supply_motes, config.precision
        ),
        source=resolution.source,
        resolved_at=now,
        contract_package_hash=config.contract_package_hash,
        state_root=state_root.hash if state_root else None,
        precision=config.precision,
        debug=resolution.debug() if config.debug else None,
        error=error,
    )


def default_protocol_stats(config: EngineConfig, *, now: datetime | None = None, error: str | None = None) -> ProtocolStats:
    """Structurally valid stats for when nothing could be resolved: rate 1.0, pool 0."""
    now = now or datetime.now(timezone.utc)
    return build_protocol_stats(Resolution(PoolSupply(0, 0), SOURCE_DEFAULT), config, now=now, error=error)


def get_protocol_stats(
    gateway: RpcGateway, state_root: StateRoot, config: EngineConfig, *, now: datetime | None = None
) -> ProtocolStats:
    """Resolve protocol stats under `state_root`. Never raises for resolution failures."""
    now = now or datetime.now(timezone.utc)
    resolver: StrategyResolver[PoolSupply] = StrategyResolver(stats_strategies(gateway, config))
    resolution = resolver.resolve(state_root, PoolSupply(0, 0))
    return build_protocol_stats(resolution, config, now=now, state_root=state_root)
