import dataclasses
import time

import pytest

from conftest import FakeGateway, cl

from stakevue_state.console import print_withdrawals
from stakevue_state.constants import MAX_USER_REQUESTS
from stakevue_state.errors import TransportError
from stakevue_state.formatters import datetime_to_ms
from stakevue_state.models import WithdrawalPhase
from stakevue_state.onchain import dictionary_identifiers
from stakevue_state.withdrawals import get_withdrawals, staker_fragment, withdrawal_phase

T = 1_700_000_000_000
UNBONDING_MS = 7 * 7_200_000
ACCOUNT = "01abcdef1234567890aabbccddeeff00112233445566778899aabbccddeeff0011"


@pytest.mark.parametrize(
    ("now_ms", "claimed", "expected"),
    [
        (T, False, WithdrawalPhase.UNBONDING),
        (T + UNBONDING_MS - 1, False, WithdrawalPhase.UNBONDING),
        (T + UNBONDING_MS, False, WithdrawalPhase.READY),
        (T + 10 * UNBONDING_MS, False, WithdrawalPhase.READY),
        (T - 1, False, WithdrawalPhase.UNBONDING),
        (T, True, WithdrawalPhase.CLAIMED),
        (T + UNBONDING_MS, True, WithdrawalPhase.CLAIMED),
        (T - 1, True, WithdrawalPhase.CLAIMED),
    ],
)
def test_withdrawal_phase(now_ms, claimed, expected):
    assert UNBONDING_MS == 50_400_000
    phase = withdrawal_phase(T, now_ms, unbonding_eras=7, era_duration_ms=7_200_000, claimed=claimed)
    assert phase is expected


def test_staker_fragment():
    assert staker_fragment(ACCOUNT) == "abcdef12"
    assert staker_fragment("01ABCDEF12") == "abcdef12"


def _dict_handler(dictionaries, *, identifier_form="ContractNamedKey", key=None, delay=None):
    """Answer state_get_dictionary_item from {dictionary_name: {item_key: parsed}}."""

    def handler(method, params):
        if method != "state_get_dictionary_item":
            return None
        ident = params["dictionary_identifier"]
        form, body = next(iter(ident.items()))
        if form != identifier_form or (key is not None and body["key"] != key):
            return None
        item_key = body["dictionary_item_key"]
        if delay is not None:
            delay(body["dictionary_name"], item_key)
        value = dictionaries.get(body["dictionary_name"], {}).get(item_key)
        return None if value is None else {"dictionary_key": "dictionary-x", **cl(value)}

    return handler


def test_user_index_strategy_reads_records_in_index_order(config, state_root, now):
    now_ms = datetime_to_ms(now)

    def slow_first(name, item_key):
        # Make earlier indices finish last.
        if name == "user_requests":
            time.sleep(0.02 * (3 - int(item_key.rsplit("_", 1)[1])))

    dictionaries = {
        "user_request_count": {ACCOUNT: "3"},
        "user_requests": {f"{ACCOUNT}_0": "11", f"{ACCOUNT}_1": "12", f"{ACCOUNT}_2": "13"},
        "withdrawal_requests": {
            "11": ["account-hash-abcdef12", "1000000000", str(now_ms - UNBONDING_MS - 1), "false"],
            "12": {"staker": "account-hash-abcdef12", "cspr_amount": "2000000000", "request_block": now_ms, "claimed": "false"},
            "13": ["account-hash-abcdef12", "3000000000", "1", "true"],
        },
    }
    gw = FakeGateway(_dict_handler(dictionaries, delay=slow_first))
    report = get_withdrawals(gw, state_root, ACCOUNT, config, now=now)

    assert report.source == "user_index"
    assert [w.request.request_id for w in report.withdrawals] == [11, 12, 13]
    assert [w.phase for w in report.withdrawals] == [
        WithdrawalPhase.READY,
        WithdrawalPhase.UNBONDING,
        WithdrawalPhase.CLAIMED,
    ]
    first = report.withdrawals[0].to_dict()
    assert first["isReady"] is True
    assert first["csprAmount"] == 1.0
    assert first["amountMotes"] == 1_000_000_000
    assert report.withdrawals[1].unbonding_complete_ms == now_ms + UNBONDING_MS
    assert not report.withdrawals[2].is_ready


def test_dictionary_lookup_falls_back_to_account_named_key(config, state_root, now):
    dictionaries = {
        "user_request_count": {ACCOUNT: "1"},
        "user_requests": {f"{ACCOUNT}_0": "4"},
        "withdrawal_requests": {"4": ["s", "5", "0", "false"]},
    }
    gw = FakeGateway(_dict_handler(dictionaries, identifier_form="AccountNamedKey"))
    report = get_withdrawals(gw, state_root, ACCOUNT, config, now=now)
    assert report.source == "user_index"
    assert [w.request.request_id for w in report.withdrawals] == [4]

    forms = [next(iter(ident)) for ident in dictionary_identifiers(config, "user_request_count", ACCOUNT)]
    assert forms == ["ContractNamedKey", "ContractNamedKey", "AccountNamedKey"]
    tried = [
        (next(iter(p["dictionary_identifier"])), next(iter(p["dictionary_identifier"].values()))["key"])
        for m, p in gw.calls
        if m == "state_get_dictionary_item" and next(iter(p["dictionary_identifier"].values()))["dictionary_name"] == "user_request_count"
    ]
    assert tried == [
        ("ContractNamedKey", config.entity_addr),
        ("ContractNamedKey", config.contract_key),
        ("AccountNamedKey", config.contract_key),
    ]


def test_id_scan_fallback_matches_staker_fragment(config, state_root, now):
    dictionaries = {
        "withdrawal_requests": {
            "1": ["account-hash-ffffffff", "5", "0", "false"],
            "2": ["account-hash-ABCDEF12aa", "6", "0", "false"],
            "3": ["account-hash-abcdef12bb", "7", "0", "true"],
        },
    }
    dict_handler = _dict_handler(dictionaries)

    def handler(method, params):
        if method == "query_global_state" and params["path"] == ["next_request_id"]:
            return cl("4", "U64")
        return dict_handler(method, params)

    gw = FakeGateway(handler)
    report = get_withdrawals(gw, state_root, ACCOUNT, config, now=now)
    assert report.source == "id_scan"
    assert [w.request.request_id for w in report.withdrawals] == [2, 3]
    assert report.withdrawals[1].phase is WithdrawalPhase.CLAIMED
    assert [a["strategy"] for a in report.debug] == ["user_index", "id_scan"]
    assert report.debug[1]["diagnostic"]["scanned"] == [1, 3]


def test_id_scan_window_is_bounded(config, state_root, now):
    narrow = dataclasses.replace(config, withdrawal_scan_window=5)

    def handler(method, params):
        if method == "query_global_state" and params["path"] == ["next_request_id"]:
            return cl("100")
        return None

    gw = FakeGateway(handler)
    report = get_withdrawals(gw, state_root, ACCOUNT, narrow, now=now)
    scanned = {
        p["dictionary_identifier"]["ContractNamedKey"]["dictionary_item_key"]
        for m, p in gw.calls
        if m == "state_get_dictionary_item" and "ContractNamedKey" in p["dictionary_identifier"]
        and p["dictionary_identifier"]["ContractNamedKey"]["dictionary_name"] == "withdrawal_requests"
    }
    assert scanned == {"95", "96", "97", "98", "99"}
    assert report.source == "default"
    assert report.withdrawals == []


def test_no_withdrawals_is_a_default_empty_list(config, state_root, now):
    report = get_withdrawals(FakeGateway(), state_root, ACCOUNT, config, now=now)
    assert report.source == "default"
    assert report.withdrawals == []
    assert report.to_dict()["withdrawals"] == []


def test_id_scan_skips_ids_that_fail_to_read(config, state_root, now):
    dictionaries = {
        "withdrawal_requests": {
            "1": ["account-hash-abcdef12", "5", "0", "false"],
            "2": ["account-hash-abcdef12", "6", "0", "false"],
            "3": ["account-hash-ffffffff", "7", "0", "false"],
        },
    }

    def time_out_first(name, item_key):
        if name == "withdrawal_requests" and item_key == "1":
            raise TransportError("state_get_dictionary_item: timed out after 5.0s", endpoint="http://fake-node/rpc")

    dict_handler = _dict_handler(dictionaries, delay=time_out_first)

    def handler(method, params):
        if method == "query_global_state" and params["path"] == ["next_request_id"]:
            return cl("4", "U64")
        return dict_handler(method, params)

    report = get_withdrawals(FakeGateway(handler), state_root, ACCOUNT, config, now=now)
    assert report.source == "id_scan"
    assert [w.request.request_id for w in report.withdrawals] == [2]
    assert report.debug[1]["diagnostic"]["skipped"] == [1]


def test_user_index_reads_are_capped(config, state_root, now):
    count = 1_000_000
    newest = f"{ACCOUNT}_{count - 1}"
    dictionaries = {
        "user_request_count": {ACCOUNT: str(count)},
        "user_requests": {newest: "7"},
        "withdrawal_requests": {"7": ["account-hash-abcdef12", "5", "0", "false"]},
    }
    gw = FakeGateway(_dict_handler(dictionaries))
    report = get_withdrawals(gw, state_root, ACCOUNT, config, now=now)

    assert report.source == "user_index"
    assert [w.request.request_id for w in report.withdrawals] == [7]
    assert report.debug[0]["diagnostic"]["truncated_to"] == MAX_USER_REQUESTS
    read = {
        next(iter(p["dictionary_identifier"].values()))["dictionary_item_key"]
        for m, p in gw.calls
        if m == "state_get_dictionary_item"
        and next(iter(p["dictionary_identifier"].values()))["dictionary_name"] == "user_requests"
    }
    assert len(read) == MAX_USER_REQUESTS
    assert f"{ACCOUNT}_{count - MAX_USER_REQUESTS}" in read
    assert f"{ACCOUNT}_{count - MAX_USER_REQUESTS - 1}" not in read


def test_out_of_range_request_time_renders(config, state_root, now, capsys):
    dictionaries = {
        "user_request_count": {ACCOUNT: "1"},
        "user_requests": {f"{ACCOUNT}_0": "9"},
        "withdrawal_requests": {"9": ["account-hash-abcdef12", "5", str(2**64 - 1), "false"]},
    }
    report = get_withdrawals(FakeGateway(_dict_handler(dictionaries)), state_root, ACCOUNT, config, now=now)
    assert report.withdrawals[0].phase is WithdrawalPhase.UNBONDING
    out = report.to_dict()["withdrawals"][0]
    assert out["requestBlock"] == 2**64 - 1
    assert out["requestTime"] is None
    assert out["estimatedReadyTime"] is None

    print_withdrawals(report)
    out = capsys.readouterr().out
    assert f"Requested: {2**64 - 1}" in out
    assert "Ready at:  unknown" in out
