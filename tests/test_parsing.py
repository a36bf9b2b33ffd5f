import pytest

from stakevue_state.errors import UnrecognizedEncoding
from stakevue_state.parsing import (
    main_purse_of,
    named_keys_of,
    normalize,
    parse_auction_bids,
    parse_withdrawal_record,
    require_int,
    stored_value_to_int,
    to_bool,
    to_int,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (5, 5),
        ("500000000000", 500_000_000_000),
        ("  42 ", 42),
        ("0x10", 16),
        (3.0, 3),
        ("true", True),
        ("False", False),
        (True, True),
        ("account-hash-abc", "account-hash-abc"),
        ({"cl_type": "U512", "bytes": "0400", "parsed": "1000"}, 1000),
        ({"CLValue": {"cl_type": "U64", "parsed": 7}}, 7),
        (["a", "1"], ["a", 1]),
        ([{"key": "x", "value": "1"}, {"key": "y", "value": "true"}], {"x": 1, "y": True}),
    ],
)
def test_normalize_recognized(value, expected):
    assert normalize(value) == expected


@pytest.mark.parametrize("value", [None, -1, "-5", 1.5, "", object(), ["a", None], ("1", -2)])
def test_normalize_unrecognized_is_none(value):
    assert normalize(value) is None


def test_to_int_and_to_bool():
    assert to_int("12") == 12
    assert to_int(True) is None
    assert to_int("abc") is None
    assert to_bool(1) is True
    assert to_bool("0") is False
    assert to_bool(2) is None
    assert require_int("9") == 9
    with pytest.raises(UnrecognizedEncoding):
        require_int("nine", "amount")


def test_stored_value_to_int_accepts_envelopes():
    assert stored_value_to_int({"stored_value": {"CLValue": {"cl_type": "U512", "parsed": "77"}}}) == 77
    assert stored_value_to_int({"CLValue": {"parsed": 78}}) == 78
    assert stored_value_to_int({"parsed": "79"}) == 79
    assert stored_value_to_int("80") == 80
    assert stored_value_to_int({"stored_value": {"Account": {}}}) is None


def test_withdrawal_record_tuple_and_map_encodings_agree():
    tuple_form = parse_withdrawal_record(["stakerABC", "500000000000", "1000", "false"], 3)
    map_form = parse_withdrawal_record(
        {"staker": "stakerABC", "cspr_amount": "500000000000", "request_block": "1000", "claimed": "false"}, 3
    )
    assert tuple_form is not None
    assert tuple_form == map_form
    assert tuple_form.staker == "stakerABC"
    assert tuple_form.amount_motes == 500_000_000_000
    assert tuple_form.requested_at == 1000
    assert tuple_form.claimed is False


def test_withdrawal_record_inside_clvalue_with_address_staker():
    record = parse_withdrawal_record(
        {
            "cl_type": "Any",
            "parsed": {
                "staker": {"Account": "account-hash-abcdef1234"},
                "amount": "7",
                "requested_at": 5,
                "is_claimed": True,
            },
        },
        9,
    )
    assert record is not None
    assert record.request_id == 9
    assert record.staker == "account-hash-abcdef1234"
    assert record.claimed is True


def test_withdrawal_record_defaults_and_rejections():
    short = parse_withdrawal_record(["s", "5"], 1)
    assert short is not None and short.requested_at == 0 and short.claimed is False
    assert parse_withdrawal_record({"staker": "s"}, 1) is None
    assert parse_withdrawal_record(["s", "5", "1", "maybe"], 1) is None
    assert parse_withdrawal_record("garbage", 1) is None
    assert parse_withdrawal_record([], 1) is None


def test_named_keys_list_and_mapping_forms():
    v1 = {"stored_value": {"Contract": {"named_keys": [{"name": "total_pool", "key": "uref-aa-007"}]}}}
    v2 = {"entity": {"AddressableEntity": {"main_purse": "uref-mp-007", "named_keys": {"total_supply": "uref-bb-007"}}}}
    assert named_keys_of(v1) == {"total_pool": "uref-aa-007"}
    assert named_keys_of(v2) == {"total_supply": "uref-bb-007"}
    assert main_purse_of(v2) == "uref-mp-007"
    assert named_keys_of({"nothing": 1}) == {}
    assert main_purse_of(v1) is None


def test_parse_auction_bids_handles_node_versions():
    auction = {
        "auction_state": {
            "bids": [
                # 1.4
                {"public_key": "01aa", "bid": {"delegators": [{"public_key": "02d1", "staked_amount": "5", "bonding_purse": "uref-p1-007"}]}},
                # 1.5
                {
                    "public_key": "01bb",
                    "bid": {
                        "delegators": [
                            {"delegator_public_key": "02d2", "delegator": {"staked_amount": "6", "bonding_purse": "uref-p2-007"}}
                        ]
                    },
                },
                # 2.x
                {
                    "public_key": "01cc",
                    "bid": {"Validator": {"delegators": [{"delegator_kind": {"Purse": "uref-p3-007"}, "staked_amount": 7}]}},
                },
            ]
        }
    }
    parsed = dict(parse_auction_bids(auction))
    assert list(parsed) == ["01aa", "01bb", "01cc"]
    assert parsed["01aa"] == [{"identities": ["02d1", "uref-p1-007"], "staked_amount": 5}]
    assert parsed["01bb"] == [{"identities": ["02d2", "uref-p2-007"], "staked_amount": 6}]
    assert parsed["01cc"] == [{"identities": ["uref-p3-007"], "staked_amount": 7}]
    assert list(parse_auction_bids(None)) == []
