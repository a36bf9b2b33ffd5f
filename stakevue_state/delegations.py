"""How much the pool has delegated to each approved validator."""

import logging
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

from stakevue_state.config import EngineConfig
from stakevue_state.constants import MAPPING_DELEGATED_TO_VALIDATOR, SOURCE_DEFAULT
from stakevue_state.gateway import RpcGateway
from stakevue_state.models import DelegationSnapshot, ResolutionAttempt, StateRoot, ValidatorDelegation
from stakevue_state.onchain import read_contract_int
from stakevue_state.parsing import parse_auction_bids
from stakevue_state.resolver import Resolution, Strategy, StrategyKind, StrategyResolver

logger = logging.getLogger(__name__)

SOURCE_AUCTION_SNAPSHOT = "auction_snapshot"
SOURCE_CONTRACT_MAPPING = "contract_mapping"
SOURCE_KNOWN_DELEGATIONS = "known_delegations"


def _delegations(validators, amounts: Mapping[str, int]) -> list[ValidatorDelegation]:
    # Candidate order is the configured order, whatever the source returned.
    return [ValidatorDelegation(v, amounts.get(v, 0)) for v in validators]


def _any_positive(amounts: Mapping[str, int]) -> bool:
    return any(a > 0 for a in amounts.values())


def auction_snapshot(gateway: RpcGateway, config: EngineConfig) -> ResolutionAttempt:
    """Sum the pool's delegator stake per validator in the current auction state.

    The pool is recognized by substring: a delegator entry belongs to it when
    any of its identities contains one of the configured match fragments.
    """
    fragments = config.match_fragments()
    wanted = {v.lower(): v for v in config.validators}
    amounts: dict[str, int] = {}
    bids_seen = 0
    for validator, entries in parse_auction_bids(gateway.get_auction_info()):
        bids_seen += 1
        key = wanted.get(validator.lower())
        if key is None:
            continue
        for entry in entries:
            text = " ".join(entry["identities"]).lower()
            if any(f in text for f in fragments):
                amounts[key] = amounts.get(key, 0) + entry["staked_amount"]

    diagnostic = {"bids": bids_seen, "matched_validators": sorted(amounts), "fragments": list(fragments)}
    if not _any_positive(amounts):
        return ResolutionAttempt(SOURCE_AUCTION_SNAPSHOT, False, None, diagnostic)
    return ResolutionAttempt(SOURCE_AUCTION_SNAPSHOT, True, amounts, diagnostic)


def _read_validator_mapping(
    gateway: RpcGateway, state_root: StateRoot, config: EngineConfig, validator: str
) -> tuple[str, int | None]:
    for path in ([MAPPING_DELEGATED_TO_VALIDATOR, validator], [f"{MAPPING_DELEGATED_TO_VALIDATOR}:{validator}"]):
        value = read_contract_int(gateway, state_root, config, path)
        if value is not None:
            return validator, value
    return validator, None


def contract_mapping(gateway: RpcGateway, state_root: StateRoot, config: EngineConfig) -> ResolutionAttempt:
    """Per-validator amounts the contract tracks itself."""
    with ThreadPoolExecutor(max_workers=max(1, config.max_workers)) as executor:
        results = list(
            executor.map(lambda v: _read_validator_mapping(gateway, state_root, config, v), config.validators)
        )
    amounts = {v: amount for v, amount in results if amount is not None}
    diagnostic = {"readable": len(amounts), "queried": len(results)}
    if not _any_positive(amounts):
        return ResolutionAttempt(SOURCE_CONTRACT_MAPPING, False, None, diagnostic)
    return ResolutionAttempt(SOURCE_CONTRACT_MAPPING, True, amounts, diagnostic)


def known_delegations(config: EngineConfig) -> ResolutionAttempt:
    """Delegations previously confirmed out of band."""
    amounts = {v: config.known_delegations[v] for v in config.validators if v in config.known_delegations}
    if not _any_positive(amounts):
        return ResolutionAttempt(SOURCE_KNOWN_DELEGATIONS, False, None, {"entries": len(amounts)})
    return ResolutionAttempt(SOURCE_KNOWN_DELEGATIONS, True, amounts, {"entries": len(amounts)})


def delegation_strategies(gateway: RpcGateway, config: EngineConfig) -> list[Strategy]:
    return [
        Strategy(SOURCE_AUCTION_SNAPSHOT, lambda root: auction_snapshot(gateway, config), StrategyKind.HEURISTIC),
        Strategy(SOURCE_CONTRACT_MAPPING, lambda root: contract_mapping(gateway, root, config), StrategyKind.PATH),
        Strategy(SOURCE_KNOWN_DELEGATIONS, lambda root: known_delegations(config), StrategyKind.TABLE),
    ]


def build_delegation_snapshot(
    resolution: Resolution[Mapping[str, int]],
    config: EngineConfig,
    *,
    now: datetime,
    state_root: StateRoot | None = None,
    error: str | None = None,
) -> DelegationSnapshot:
    return DelegationSnapshot(
        delegations=_delegations(config.validators, resolution.value),
        source=resolution.source,
        resolved_at=now,
        contract_package_hash=config.contract_package_hash,
        state_root=state_root.hash if state_root else None,
        debug=resolution.debug() if config.debug else None,
        error=error,
    )


def default_delegations(
    config: EngineConfig, *, now: datetime | None = None, error: str | None = None
) -> DelegationSnapshot:
    now = now or datetime.now(timezone.utc)
    return build_delegation_snapshot(Resolution({}, SOURCE_DEFAULT), config, now=now, error=error)


def get_validator_delegations(
    gateway: RpcGateway, state_root: StateRoot, config: EngineConfig, *, now: datetime | None = None
) -> DelegationSnapshot:
    """Resolve per-validator delegations for every configured candidate."""
    now = now or datetime.now(timezone.utc)
    resolver: StrategyResolver[Mapping[str, int]] = StrategyResolver(delegation_strategies(gateway, config))
    resolution = resolver.resolve(state_root, {})
    logger.debug("Delegations resolved via %s", resolution.source)
    return build_delegation_snapshot(resolution, config, now=now, state_root=state_root)
