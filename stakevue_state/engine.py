"""Request-level facade over the three metric families.

Every call pins one endpoint and one state root, resolves its metric family
under that root, and never raises: on any fault it answers with the family's
default value and the error text. An invalid configuration is kept as
`config_error` and every call answers with defaults until it is fixed.
"""

import dataclasses
import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from stakevue_state.config import EngineConfig
from stakevue_state.constants import RATE_PRECISION
from stakevue_state.delegations import default_delegations, get_validator_delegations
from stakevue_state.errors import ConfigurationError
from stakevue_state.gateway import RpcGateway, open_snapshot
from stakevue_state.models import DelegationSnapshot, ProtocolStats, WithdrawalsReport
from stakevue_state.stats import default_protocol_stats, get_protocol_stats
from stakevue_state.withdrawals import default_withdrawals, get_withdrawals

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StateEngine:
    """Resolves protocol stats, withdrawals and validator delegations."""

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        gateways: Sequence[RpcGateway] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.config = config or EngineConfig.from_env()
        self.config_error: str | None = None
        try:
            self.config.validate()
        except ConfigurationError as ex:
            logger.info("Invalid configuration: %s", ex)
            self.config_error = str(ex)
        if gateways is None:
            gateways = [RpcGateway(url, timeout_s=self.config.rpc_timeout_s) for url in self.config.rpc_urls]
        self.gateways = list(gateways)
        self.clock = clock

    def _default_config(self) -> EngineConfig:
        # Defaults must render even when the configured precision is unusable.
        if self.config.precision > 0:
            return self.config
        return dataclasses.replace(self.config, precision=RATE_PRECISION)

    def get_protocol_stats(self) -> ProtocolStats:
        now = self.clock()
        if self.config_error:
            return default_protocol_stats(self._default_config(), now=now, error=self.config_error)
        try:
            gateway, state_root = open_snapshot(self.gateways)
            return get_protocol_stats(gateway, state_root, self.config, now=now)
        except Exception as ex:  # pylint: disable=broad-exception-caught
            logger.info("Protocol stats unavailable: %s", ex)
            return default_protocol_stats(self.config, now=now, error=str(ex))

    def get_withdrawals(self, account: str) -> WithdrawalsReport:
        now = self.clock()
        account = (account or "").strip()
        if self.config_error:
            return default_withdrawals(account, self._default_config(), now=now, error=self.config_error)
        if not account:
            return default_withdrawals(account, self.config, now=now, error="account is required")
        try:
            gateway, state_root = open_snapshot(self.gateways)
            return get_withdrawals(gateway, state_root, account, self.config, now=now)
        except Exception as ex:  # pylint: disable=broad-exception-caught
            logger.info("Withdrawals of %s unavailable: %s", account, ex)
            return default_withdrawals(account, self.config, now=now, error=str(ex))

    def get_validator_delegations(self) -> DelegationSnapshot:
        now = self.clock()
        if self.config_error:
            return default_delegations(self._default_config(), now=now, error=self.config_error)
        try:
            gateway, state_root = open_snapshot(self.gateways)
            return get_validator_delegations(gateway, state_root, self.config, now=now)
        except Exception as ex:  # pylint: disable=broad-exception-caught
            logger.info("Validator delegations unavailable: %s", ex)
            return default_delegations(self.config, now=now, error=str(ex))
