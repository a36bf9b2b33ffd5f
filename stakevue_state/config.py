"""Engine configuration."""

import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from stakevue_state.constants import (
    APPROVED_VALIDATORS,
    CONTRACT_PACKAGE_HASH,
    CONTRACT_PURSE_UREF,
    DEFAULT_EXPLORER_TIMEOUT_S,
    DEFAULT_EXPLORER_URLS,
    DEFAULT_MAX_WORKERS,
    DEFAULT_RPC_TIMEOUT_S,
    DEFAULT_RPC_URLS,
    DEFAULT_WITHDRAWAL_SCAN_WINDOW,
    ERA_DURATION_MS,
    KNOWN_DELEGATIONS,
    RATE_PRECISION,
    UNBONDING_ERAS,
)
from stakevue_state.errors import ConfigurationError


def purse_fragment(purse_uref: str) -> str:
    """Hex address of a URef: 'uref-<hex>-007' -> '<hex>'."""
    s = purse_uref.strip().lower()
    if s.startswith("uref-"):
        s = s[len("uref-") :]
    head, sep, tail = s.rpartition("-")
    if sep and tail.isdigit():
        s = head
    return s


def default_rpc_urls(env_urls: str | None) -> list[str]:
    """Env-provided URLs first (comma separated), then the public defaults, deduplicated."""
    out: list[str] = []
    for url in [u.strip() for u in (env_urls or "").split(",")] + list(DEFAULT_RPC_URLS):
        if url and url not in out:
            out.append(url)
    return out


def _env_bool(value: str | None) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class EngineConfig:
    """Everything the engine reads from outside: endpoints, contract identity, protocol constants."""

    rpc_urls: tuple[str, ...] = DEFAULT_RPC_URLS
    contract_package_hash: str = CONTRACT_PACKAGE_HASH
    contract_purse_uref: str = CONTRACT_PURSE_UREF
    precision: int = RATE_PRECISION
    unbonding_eras: int = UNBONDING_ERAS
    era_duration_ms: int = ERA_DURATION_MS
    validators: tuple[str, ...] = APPROVED_VALIDATORS
    known_delegations: Mapping[str, int] = field(default_factory=lambda: dict(KNOWN_DELEGATIONS))
    rpc_timeout_s: float = DEFAULT_RPC_TIMEOUT_S
    explorer_urls: tuple[str, ...] = DEFAULT_EXPLORER_URLS
    explorer_timeout_s: float = DEFAULT_EXPLORER_TIMEOUT_S
    withdrawal_scan_window: int = DEFAULT_WITHDRAWAL_SCAN_WINDOW
    max_workers: int = DEFAULT_MAX_WORKERS
    # Substrings that identify the pool as a delegator in the auction snapshot.
    # Empty means: derive from the purse URef and the package hash.
    delegator_match_fragments: tuple[str, ...] = ()
    show_progress: bool = False
    debug: bool = False

    @property
    def contract_key(self) -> str:
        """Global-state key of the contract package (1.x style)."""
        return f"hash-{self.contract_package_hash}"

    @property
    def entity_addr(self) -> str:
        """Addressable-entity address of the contract (2.x style)."""
        return f"entity-contract-{self.contract_package_hash}"

    @property
    def unbonding_duration_ms(self) -> int:
        return self.unbonding_eras * self.era_duration_ms

    def match_fragments(self) -> tuple[str, ...]:
        if self.delegator_match_fragments:
            return tuple(f.lower() for f in self.delegator_match_fragments if f)
        return tuple(f for f in (purse_fragment(self.contract_purse_uref), self.contract_package_hash.lower()) if f)

    def validate(self) -> None:
        """Raise ConfigurationError for configuration the engine cannot work with."""
        if not self.rpc_urls:
            raise ConfigurationError("At least one RPC URL is required")
        if not self.contract_package_hash:
            raise ConfigurationError("contract_package_hash is required")
        if self.precision <= 0:
            raise ConfigurationError(f"precision must be > 0 (got {self.precision})")
        if self.unbonding_eras < 0 or self.era_duration_ms <= 0:
            raise ConfigurationError(
                f"invalid unbonding period: {self.unbonding_eras} eras x {self.era_duration_ms} ms"
            )
        if self.rpc_timeout_s <= 0:
            raise ConfigurationError(f"rpc_timeout_s must be > 0 (got {self.rpc_timeout_s})")
        if self.withdrawal_scan_window <= 0:
            raise ConfigurationError(f"withdrawal_scan_window must be > 0 (got {self.withdrawal_scan_window})")
        if self.max_workers <= 0:
            raise ConfigurationError(f"max_workers must be > 0 (got {self.max_workers})")
        if any(amount < 0 for amount in self.known_delegations.values()):
            raise ConfigurationError("known_delegations amounts must be non-negative")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides) -> "EngineConfig":
        """Build a config from environment variables; explicit overrides win."""
        env = os.environ if environ is None else environ
        values: dict = {
            "rpc_urls": tuple(default_rpc_urls(env.get("CASPER_RPC_URLS") or env.get("CASPER_RPC_URL"))),
        }
        if env.get("STAKEVUE_CONTRACT_PACKAGE_HASH"):
            values["contract_package_hash"] = env["STAKEVUE_CONTRACT_PACKAGE_HASH"].strip()
        if env.get("STAKEVUE_PURSE_UREF"):
            values["contract_purse_uref"] = env["STAKEVUE_PURSE_UREF"].strip()
        try:
            if env.get("STAKEVUE_RPC_TIMEOUT"):
                values["rpc_timeout_s"] = float(env["STAKEVUE_RPC_TIMEOUT"])
            if env.get("STAKEVUE_SCAN_WINDOW"):
                values["withdrawal_scan_window"] = int(env["STAKEVUE_SCAN_WINDOW"])
        except ValueError as ex:
            raise ConfigurationError(f"Invalid numeric environment value: {ex}") from ex
        if env.get("STAKEVUE_DEBUG"):
            values["debug"] = _env_bool(env["STAKEVUE_DEBUG"])
        values.update({k: v for k, v in overrides.items() if v is not None})
        for key in ("rpc_urls", "validators", "explorer_urls", "delegator_match_fragments"):
            if key in values and isinstance(values[key], Sequence) and not isinstance(values[key], str):
                values[key] = tuple(values[key])
        return cls(**values)
