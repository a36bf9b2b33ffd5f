"""Data models for StakeVue state resolution.

Every model here is a request-scoped value object: built once while answering a
single request and never mutated or shared afterwards.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from stakevue_state.constants import MOTES_PER_CSPR, RATE_PRECISION
from stakevue_state.formatters import format_rate, iso_from_ms, iso_utc, motes_to_cspr


@dataclass(frozen=True)
class StateRoot:
    """Identifier of the global-state snapshot every read of one request is pinned to."""

    hash: str
    endpoint: str = ""

    def __str__(self) -> str:
        return self.hash


@dataclass(frozen=True)
class ResolutionAttempt:
    """Outcome of running one strategy."""

    strategy_name: str
    succeeded: bool
    value: Any = None
    diagnostic: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {"strategy": self.strategy_name, "succeeded": self.succeeded, "diagnostic": self.diagnostic}


@dataclass(frozen=True)
class PoolSupply:
    """Pool balance and liquid-token supply as read from one source."""

    total_pool_motes: int
    total_supply_motes: int


@dataclass(frozen=True)
class ProtocolStats:
    """Headline numbers for the dashboard."""

    total_pool_motes: int
    total_supply_motes: int
    # floor(pool * precision / supply), or exactly `precision` when supply is 0.
    exchange_rate_fixed_point: int
    source: str
    resolved_at: datetime
    contract_package_hash: str = ""
    state_root: str | None = None
    precision: int = RATE_PRECISION
    debug: list[dict[str, Any]] | None = None
    error: str | None = None

    @property
    def exchange_rate_formatted(self) -> str:
        return format_rate(self.exchange_rate_fixed_point, self.precision)

    @property
    def total_pool_cspr(self) -> float:
        return motes_to_cspr(self.total_pool_motes)

    @property
    def total_supply_cspr(self) -> float:
        return motes_to_cspr(self.total_supply_motes)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "exchangeRate": self.exchange_rate_fixed_point,
            "totalPool": self.total_pool_motes,
            "totalStcspr": self.total_supply_motes,
            "exchangeRateFormatted": self.exchange_rate_formatted,
            "totalPoolCspr": self.total_pool_cspr,
            "totalStcsprFormatted": self.total_supply_cspr,
            "timestamp": iso_utc(self.resolved_at),
            "source": self.source,
            "contractHash": self.contract_package_hash,
            "stateRootHash": self.state_root,
        }
        if self.debug is not None:
            out["debug"] = self.debug
        if self.error:
            out["error"] = self.error
        return out


class WithdrawalPhase(str, Enum):
    """Lifecycle phase of a withdrawal request, derived at read time."""

    REQUESTED = "requested"
    UNBONDING = "unbonding"
    READY = "ready"
    CLAIMED = "claimed"


@dataclass(frozen=True)
class WithdrawalRequest:
    """A withdrawal request record as stored by the contract."""

    request_id: int
    staker: str
    amount_motes: int
    # Block time in milliseconds (the contract stores env().get_block_time()).
    requested_at: int
    claimed: bool


@dataclass(frozen=True)
class WithdrawalStatus:
    """A withdrawal request together with its derived lifecycle phase."""

    request: WithdrawalRequest
    phase: WithdrawalPhase
    unbonding_complete_ms: int

    @property
    def is_ready(self) -> bool:
        return self.phase is WithdrawalPhase.READY

    @property
    def is_claimed(self) -> bool:
        return self.phase is WithdrawalPhase.CLAIMED

    def to_dict(self) -> dict[str, Any]:
        r = self.request
        return {
            "requestId": r.request_id,
            "staker": r.staker,
            "csprAmount": motes_to_cspr(r.amount_motes),
            "amountMotes": r.amount_motes,
            "phase": self.phase.value,
            "isReady": self.is_ready,
            "isClaimed": self.is_claimed,
            "requestBlock": r.requested_at,
            "requestTime": iso_from_ms(r.requested_at),
            "estimatedReadyTime": iso_from_ms(self.unbonding_complete_ms),
        }


@dataclass(frozen=True)
class WithdrawalsReport:
    """All resolved withdrawal requests of one account."""

    account: str
    withdrawals: list[WithdrawalStatus]
    source: str
    resolved_at: datetime
    state_root: str | None = None
    debug: list[dict[str, Any]] | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "account": self.account,
            "withdrawals": [w.to_dict() for w in self.withdrawals],
            "timestamp": iso_utc(self.resolved_at),
            "source": self.source,
            "stateRootHash": self.state_root,
        }
        if self.debug is not None:
            out["debug"] = self.debug
        if self.error:
            out["error"] = self.error
        return out


@dataclass(frozen=True)
class ValidatorDelegation:
    """Amount the pool has delegated to one candidate validator."""

    validator_public_key: str
    delegated_amount_motes: int = 0

    @property
    def is_active(self) -> bool:
        return self.delegated_amount_motes > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "publicKey": self.validator_public_key,
            "delegatedAmount": str(self.delegated_amount_motes),
            "delegatedCspr": motes_to_cspr(self.delegated_amount_motes),
            "isActive": self.is_active,
        }


@dataclass(frozen=True)
class DelegationSnapshot:
    """Per-validator delegations in configured candidate order, plus aggregates."""

    delegations: list[ValidatorDelegation]
    source: str
    resolved_at: datetime
    contract_package_hash: str = ""
    state_root: str | None = None
    debug: list[dict[str, Any]] | None = None
    error: str | None = None
    # Filled in by __post_init__; never passed by callers.
    total_delegated_motes: int = field(init=False)
    validator_count: int = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "total_delegated_motes", sum(d.delegated_amount_motes for d in self.delegations))
        object.__setattr__(self, "validator_count", sum(1 for d in self.delegations if d.is_active))

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "delegations": [d.to_dict() for d in self.delegations],
            "totalDelegated": self.total_delegated_motes / MOTES_PER_CSPR,
            "totalDelegatedMotes": str(self.total_delegated_motes),
            "validatorCount": self.validator_count,
            "timestamp": iso_utc(self.resolved_at),
            "source": self.source,
            "contractHash": self.contract_package_hash,
            "stateRootHash": self.state_root,
        }
        if self.debug is not None:
            out["debug"] = self.debug
        if self.error:
            out["error"] = self.error
        return out
