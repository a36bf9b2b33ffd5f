"""Withdrawal requests of an account and their lifecycle phase.

A request is created with the block time of the request transaction. After
`unbonding_eras` eras it can be claimed; once claimed it stays claimed.
"""

import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any

from tqdm import tqdm

from stakevue_state.config import EngineConfig
from stakevue_state.constants import (
    DICT_USER_REQUEST_COUNT,
    DICT_USER_REQUESTS,
    DICT_WITHDRAWAL_REQUESTS,
    MAX_USER_REQUESTS,
    SOURCE_DEFAULT,
    VAR_NEXT_REQUEST_ID,
)
from stakevue_state.errors import GatewayError, NotFound
from stakevue_state.formatters import datetime_to_ms
from stakevue_state.gateway import RpcGateway
from stakevue_state.models import (
    ResolutionAttempt,
    StateRoot,
    WithdrawalPhase,
    WithdrawalRequest,
    WithdrawalsReport,
    WithdrawalStatus,
)
from stakevue_state.onchain import read_contract_int, read_dictionary_int, read_dictionary_item
from stakevue_state.parsing import parse_withdrawal_record
from stakevue_state.resolver import Resolution, Strategy, StrategyKind, StrategyResolver

logger = logging.getLogger(__name__)

SOURCE_USER_INDEX = "user_index"
SOURCE_ID_SCAN = "id_scan"


def withdrawal_phase(
    requested_at: int, now_ms: int, *, unbonding_eras: int, era_duration_ms: int, claimed: bool
) -> WithdrawalPhase:
    """Phase of a request at `now_ms`.

    REQUESTED is never returned: a stored record already carries its request
    time, so it is unbonding from the moment it can be read.
    """
    if claimed:
        return WithdrawalPhase.CLAIMED
    if now_ms >= requested_at + unbonding_eras * era_duration_ms:
        return WithdrawalPhase.READY
    return WithdrawalPhase.UNBONDING


def withdrawal_status(request: WithdrawalRequest, now_ms: int, config: EngineConfig) -> WithdrawalStatus:
    phase = withdrawal_phase(
        request.requested_at,
        now_ms,
        unbonding_eras=config.unbonding_eras,
        era_duration_ms=config.era_duration_ms,
        claimed=request.claimed,
    )
    return WithdrawalStatus(
        request=request,
        phase=phase,
        unbonding_complete_ms=request.requested_at + config.unbonding_duration_ms,
    )


def staker_fragment(account: str) -> str:
    """Part of an account identifier matched against stored stakers.

    Stakers are stored as account hashes while callers usually pass a public
    key; both share no prefix, so only a short slice after the 2-char tag is used.
    """
    return account.lower()[2:10]


def read_withdrawal(
    gateway: RpcGateway, state_root: StateRoot, config: EngineConfig, request_id: int
) -> WithdrawalRequest | None:
    try:
        cl = read_dictionary_item(gateway, state_root, config, DICT_WITHDRAWAL_REQUESTS, str(request_id))
    except NotFound:
        return None
    record = parse_withdrawal_record(cl, request_id)
    if record is None:
        logger.debug("Withdrawal request %d has an unrecognized encoding", request_id)
    return record


def _read_user_request(
    gateway: RpcGateway, state_root: StateRoot, config: EngineConfig, account: str, index: int
) -> tuple[int, int | None, WithdrawalRequest | None]:
    request_id = read_dictionary_int(gateway, state_root, config, DICT_USER_REQUESTS, f"{account}_{index}")
    if request_id is None:
        return index, None, None
    return index, request_id, read_withdrawal(gateway, state_root, config, request_id)


def user_index(gateway: RpcGateway, state_root: StateRoot, config: EngineConfig, account: str) -> ResolutionAttempt:
    """Per-user index: user_request_count -> user_requests -> withdrawal_requests.

    Only the newest MAX_USER_REQUESTS indices are read.
    """
    count = read_dictionary_int(gateway, state_root, config, DICT_USER_REQUEST_COUNT, account)
    if not count or count < 0:
        return ResolutionAttempt(SOURCE_USER_INDEX, False, None, {"request_count": count})
    indices = range(max(0, count - MAX_USER_REQUESTS), count)
    if len(indices) < count:
        logger.warning("user_request_count of %s is %d; reading the last %d", account, count, len(indices))

    workers = max(1, min(config.max_workers, len(indices)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [
            executor.submit(_read_user_request, gateway, state_root, config, account, index) for index in indices
        ]
        results = sorted((f.result() for f in futures), key=lambda r: r[0])

    records = [record for _, _, record in results if record is not None]
    diagnostic: dict[str, Any] = {
        "request_count": count,
        "request_ids": [request_id for _, request_id, _ in results],
        "resolved": len(records),
    }
    if len(indices) < count:
        diagnostic["truncated_to"] = len(indices)
    if not records:
        return ResolutionAttempt(SOURCE_USER_INDEX, False, None, diagnostic)
    return ResolutionAttempt(SOURCE_USER_INDEX, True, records, diagnostic)


def id_scan(gateway: RpcGateway, state_root: StateRoot, config: EngineConfig, account: str) -> ResolutionAttempt:
    """HEURISTIC: scan the most recent request ids and keep the account's.

    An id whose read fails is skipped; the scan goes on with the next one.
    """
    next_id = read_contract_int(gateway, state_root, config, [VAR_NEXT_REQUEST_ID]) or 1
    start = max(1, next_id - config.withdrawal_scan_window)
    ids = range(start, next_id)
    fragment = staker_fragment(account)

    records: list[WithdrawalRequest] = []
    skipped: list[int] = []
    for request_id in tqdm(
        ids, desc="Scanning withdrawal ids", unit="id", file=sys.stderr, disable=not config.show_progress
    ):
        try:
            record = read_withdrawal(gateway, state_root, config, request_id)
        except GatewayError as ex:
            logger.warning("Skipping withdrawal request %d: %s", request_id, ex)
            skipped.append(request_id)
            continue
        if record is not None and fragment and fragment in record.staker.lower():
            records.append(record)

    diagnostic = {
        "next_request_id": next_id,
        "scanned": [start, next_id - 1],
        "matched": len(records),
        "skipped": skipped,
    }
    if not records:
        return ResolutionAttempt(SOURCE_ID_SCAN, False, None, diagnostic)
    return ResolutionAttempt(SOURCE_ID_SCAN, True, records, diagnostic)


def withdrawal_strategies(gateway: RpcGateway, config: EngineConfig, account: str) -> list[Strategy]:
    return [
        Strategy(SOURCE_USER_INDEX, lambda root: user_index(gateway, root, config, account), StrategyKind.DIRECT),
        Strategy(SOURCE_ID_SCAN, lambda root: id_scan(gateway, root, config, account), StrategyKind.HEURISTIC),
    ]


def build_withdrawals_report(
    account: str,
    resolution: Resolution[list[WithdrawalRequest]],
    config: EngineConfig,
    *,
    now: datetime,
    state_root: StateRoot | None = None,
    error: str | None = None,
) -> WithdrawalsReport:
    now_ms = datetime_to_ms(now)
    return WithdrawalsReport(
        account=account,
        withdrawals=[withdrawal_status(r, now_ms, config) for r in resolution.value],
        source=resolution.source,
        resolved_at=now,
        state_root=state_root.hash if state_root else None,
        debug=resolution.debug() if config.debug else None,
        error=error,
    )


def default_withdrawals(
    account: str, config: EngineConfig, *, now: datetime | None = None, error: str | None = None
) -> WithdrawalsReport:
    now = now or datetime.now(timezone.utc)
    return build_withdrawals_report(account, Resolution([], SOURCE_DEFAULT), config, now=now, error=error)


def get_withdrawals(
    gateway: RpcGateway, state_root: StateRoot, account: str, config: EngineConfig, *, now: datetime | None = None
) -> WithdrawalsReport:
    """Resolve the withdrawal requests of `account` under `state_root`."""
    now = now or datetime.now(timezone.utc)
    resolver: StrategyResolver[list[WithdrawalRequest]] = StrategyResolver(
        withdrawal_strategies(gateway, config, account)
    )
    resolution = resolver.resolve(state_root, [])
    return build_withdrawals_report(account, resolution, config, now=now, state_root=state_root)
