"""Ordered, fallback-driven strategy resolution.

A metric is resolved by running a list of named strategies in priority order
against one state root and taking the first that succeeds. Strategies never
run concurrently with each other: the order is a reliability ranking and the
first success must be unambiguous.
"""

import dataclasses
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from stakevue_state.constants import SOURCE_DEFAULT
from stakevue_state.errors import GatewayError, NotFound, StateResolutionError, UnrecognizedEncoding
from stakevue_state.models import ResolutionAttempt, StateRoot

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StrategyKind(str, Enum):
    """What a strategy reads. Purely descriptive; order alone decides priority."""

    DIRECT = "direct"  # a known resource reference
    PATH = "path"  # versioned contract-storage paths
    HEURISTIC = "heuristic"  # substring matching on names or references
    EXTERNAL = "external"  # off-chain API
    TABLE = "table"  # hardcoded, previously confirmed values


@dataclass(frozen=True)
class Strategy:
    """One self-contained attempt to resolve a metric."""

    name: str
    fn: Callable[[StateRoot], ResolutionAttempt]
    kind: StrategyKind = StrategyKind.DIRECT

    def run(self, state_root: StateRoot) -> ResolutionAttempt:
        """Run the strategy; any error becomes a failed attempt."""
        try:
            attempt = self.fn(state_root)
        except (GatewayError, UnrecognizedEncoding, NotFound) as ex:
            logger.debug("Strategy %s failed: %s", self.name, ex)
            return ResolutionAttempt(self.name, False, None, _error_diagnostic(ex))
        except StateResolutionError as ex:
            logger.warning("Strategy %s failed: %s", self.name, ex)
            return ResolutionAttempt(self.name, False, None, _error_diagnostic(ex))
        except Exception as ex:  # pylint: disable=broad-exception-caught
            logger.exception("Strategy %s raised unexpectedly", self.name)
            return ResolutionAttempt(self.name, False, None, _error_diagnostic(ex))

        if not isinstance(attempt, ResolutionAttempt):
            logger.warning("Strategy %s returned %s instead of an attempt", self.name, type(attempt).__name__)
            return ResolutionAttempt(self.name, False, None, {"error": "invalid strategy result"})
        if attempt.strategy_name != self.name:
            attempt = dataclasses.replace(attempt, strategy_name=self.name)
        return attempt


def _error_diagnostic(ex: Exception) -> dict[str, Any]:
    diag: dict[str, Any] = {"error": type(ex).__name__, "message": str(ex)}
    endpoint = getattr(ex, "endpoint", None)
    if endpoint:
        diag["endpoint"] = endpoint
    code = getattr(ex, "code", None)
    if code is not None:
        diag["code"] = code
    return diag


@dataclass(frozen=True)
class Resolution(Generic[T]):
    """Resolved value with its provenance and the trace of attempts that led to it."""

    value: T
    source: str
    attempts: tuple[ResolutionAttempt, ...] = field(default_factory=tuple)

    @property
    def is_default(self) -> bool:
        return self.source == SOURCE_DEFAULT

    def debug(self) -> list[dict[str, Any]]:
        return [a.to_dict() for a in self.attempts]


class StrategyResolver(Generic[T]):
    """Runs strategies in order and returns the first success, or the default."""

    def __init__(self, strategies: Sequence[Strategy]) -> None:
        names = [s.name for s in strategies]
        if len(set(names)) != len(names):
            raise ValueError(f"Strategy names must be unique: {names}")
        if SOURCE_DEFAULT in names:
            raise ValueError(f"'{SOURCE_DEFAULT}' is reserved for the fallback value")
        self.strategies = tuple(strategies)

    def resolve(self, state_root: StateRoot, default: T) -> Resolution[T]:
        attempts: list[ResolutionAttempt] = []
        for strategy in self.strategies:
            attempt = strategy.run(state_root)
            attempts.append(attempt)
            if attempt.succeeded:
                logger.debug("Resolved via %s after %d attempt(s)", strategy.name, len(attempts))
                return Resolution(attempt.value, strategy.name, tuple(attempts))
        logger.warning(
            "All %d strategies failed (%s); using default", len(attempts), ", ".join(a.strategy_name for a in attempts)
        )
        return Resolution(default, SOURCE_DEFAULT, tuple(attempts))
