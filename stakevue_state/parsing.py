"""Normalization of Casper tagged values.

Contract storage layouts changed across versions, so the same logical value can
arrive as a CLValue envelope, a bare `parsed` payload, a numeric string, a raw
number, a positional tuple or a named map. Everything here returns None for a
shape it does not recognize instead of raising; callers treat None like any
other negative result.
"""

from collections.abc import Iterator
from typing import Any, Union

from stakevue_state.errors import UnrecognizedEncoding
from stakevue_state.models import WithdrawalRequest

# Strings that are not numbers or booleans are kept as identifiers
# (staker addresses, public keys, URefs).
CanonicalValue = Union[int, bool, str, list["CanonicalValue"], dict[str, "CanonicalValue"]]

_NAMED_KEYS_SEARCH_DEPTH = 4


def _is_key_value_list(value: list) -> bool:
    # Map CLValues are rendered as [{"key": k, "value": v}, ...].
    return bool(value) and all(isinstance(item, dict) and set(item) == {"key", "value"} for item in value)


def normalize(value: Any) -> CanonicalValue | None:
    """Convert a tagged value into its canonical form, or None if unrecognized."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float):
        if value.is_integer() and value >= 0:
            return int(value)
        return None
    if isinstance(value, str):
        v = value.strip()
        if not v:
            return None
        low = v.lower()
        if low in ("true", "false"):
            return low == "true"
        if low.startswith("0x"):
            try:
                return int(v, 16)
            except ValueError:
                return v
        if v.isdigit():
            return int(v)
        if v.startswith("-") and v[1:].isdigit():
            return None
        return v
    if isinstance(value, dict):
        if "CLValue" in value:
            return normalize(value["CLValue"])
        if "parsed" in value and (set(value) <= {"parsed", "cl_type", "bytes"}):
            return normalize(value["parsed"])
        record: dict[str, CanonicalValue] = {}
        for k, v in value.items():
            n = normalize(v)
            if n is not None:
                record[str(k)] = n
        return record
    if isinstance(value, (list, tuple)):
        if isinstance(value, list) and _is_key_value_list(value):
            record = {}
            for item in value:
                n = normalize(item["value"])
                if n is not None:
                    record[str(item["key"])] = n
            return record
        seq: list[CanonicalValue] = []
        for item in value:
            n = normalize(item)
            if n is None:
                # Positional encodings are meaningless with a hole in them.
                return None
            seq.append(n)
        return seq
    return None


def to_int(value: Any) -> int | None:
    """Canonical unsigned integer, or None."""
    n = normalize(value)
    if isinstance(n, bool) or not isinstance(n, int):
        return None
    return n


def to_bool(value: Any) -> bool | None:
    """Canonical boolean, or None. 0 and 1 are accepted."""
    n = normalize(value)
    if isinstance(n, bool):
        return n
    if isinstance(n, int) and n in (0, 1):
        return bool(n)
    return None


def require_int(value: Any, what: str = "value") -> int:
    """Like to_int but raises UnrecognizedEncoding."""
    n = to_int(value)
    if n is None:
        raise UnrecognizedEncoding(f"{what}: cannot interpret {value!r} as an unsigned integer")
    return n


def cl_value_of(result: Any) -> Any:
    """Extract the CLValue from a query result or stored value, if there is one."""
    if not isinstance(result, dict):
        return None
    stored = result.get("stored_value", result)
    if isinstance(stored, dict) and "CLValue" in stored:
        return stored["CLValue"]
    return None


def stored_value_to_int(stored: Any) -> int | None:
    """Integer from a query result, stored value, CLValue, raw number or numeric string."""
    if isinstance(stored, dict):
        cl = cl_value_of(stored)
        if cl is not None:
            return to_int(cl)
        if "parsed" in stored:
            return to_int(stored["parsed"])
        return None
    return to_int(stored)


def _identity_text(value: CanonicalValue | None) -> str | None:
    # Odra renders Address either as a string or as {"Account": "account-hash-..."}.
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (str, int)):
        return str(value)
    if isinstance(value, dict):
        parts = [p for p in (_identity_text(v) for v in value.values()) if p]
        return " ".join(parts) or None
    if isinstance(value, list):
        parts = [p for p in (_identity_text(v) for v in value) if p]
        return " ".join(parts) or None
    return None


def _first(record: dict[str, CanonicalValue], *names: str) -> CanonicalValue | None:
    for name in names:
        if name in record:
            return record[name]
    return None


def parse_withdrawal_record(value: Any, request_id: int) -> WithdrawalRequest | None:
    """Parse a WithdrawalRequest stored either as a tuple or as a map.

    Tuple format: [staker, cspr_amount, request_block, claimed]
    Map format:   {staker, cspr_amount, request_block, claimed}

    `staker` and `cspr_amount` are required; a missing `request_block` reads as
    0 and a missing `claimed` as false. An unparseable `claimed` rejects the
    record, since reporting a claimed request as pending is never acceptable.
    """
    n = normalize(value)
    if isinstance(n, list):
        if len(n) < 2:
            return None
        staker_raw = n[0]
        amount_raw = n[1]
        block_raw = n[2] if len(n) > 2 else 0
        claimed_raw = n[3] if len(n) > 3 else False
    elif isinstance(n, dict) and n:
        staker_raw = _first(n, "staker", "owner", "account")
        amount_raw = _first(n, "cspr_amount", "amount", "amount_motes")
        block_raw = _first(n, "request_block", "requested_at", "request_time")
        claimed_raw = _first(n, "claimed", "is_claimed")
        if block_raw is None:
            block_raw = 0
        if claimed_raw is None:
            claimed_raw = False
    else:
        return None

    staker = _identity_text(staker_raw)
    amount = to_int(amount_raw)
    requested_at = to_int(block_raw)
    claimed = to_bool(claimed_raw)
    if not staker or amount is None or requested_at is None or claimed is None:
        return None
    return WithdrawalRequest(
        request_id=request_id,
        staker=staker,
        amount_motes=amount,
        requested_at=requested_at,
        claimed=claimed,
    )


def _find_field(obj: Any, field: str, depth: int) -> Any:
    if depth < 0 or not isinstance(obj, dict):
        return None
    if field in obj:
        return obj[field]
    for v in obj.values():
        found = _find_field(v, field, depth - 1)
        if found is not None:
            return found
    return None


def named_keys_of(obj: Any) -> dict[str, str]:
    """Name -> key mapping of a contract, account or addressable entity.

    Accepts a query result, a stored value (Contract/Account/AddressableEntity)
    or a state_get_entity result; the list form [{"name", "key"}] and the plain
    mapping form are both understood.
    """
    raw = _find_field(obj, "named_keys", _NAMED_KEYS_SEARCH_DEPTH)
    out: dict[str, str] = {}
    if isinstance(raw, dict):
        for name, key in raw.items():
            if isinstance(key, str):
                out[str(name)] = key
    elif isinstance(raw, list):
        for nk in raw:
            if isinstance(nk, dict) and isinstance(nk.get("name"), str) and isinstance(nk.get("key"), str):
                out[nk["name"]] = nk["key"]
    return out


def main_purse_of(obj: Any) -> str | None:
    """main_purse URef of an account or entity, if present."""
    purse = _find_field(obj, "main_purse", _NAMED_KEYS_SEARCH_DEPTH)
    return purse if isinstance(purse, str) and purse else None


_DELEGATOR_IDENTITY_FIELDS = ("public_key", "delegator_public_key", "bonding_purse", "delegator_kind", "delegator")


def _delegator_entry(raw: dict[str, Any]) -> dict[str, Any]:
    # 1.5 wraps the payload: {"delegator_public_key": pk, "delegator": {...}}.
    merged = dict(raw)
    inner = raw.get("delegator")
    if isinstance(inner, dict):
        merged.pop("delegator")
        merged.update(inner)
    identities: list[str] = []
    for name in _DELEGATOR_IDENTITY_FIELDS:
        text = _identity_text(normalize(merged.get(name)))
        if text:
            identities.append(text)
    return {
        "identities": identities,
        "staked_amount": to_int(merged.get("staked_amount")) or 0,
    }


def parse_auction_bids(auction_result: Any) -> Iterator[tuple[str, list[dict[str, Any]]]]:
    """Yield (validator_public_key, delegator_entries) from a state_get_auction_info result.

    Each delegator entry is {"identities": [...], "staked_amount": int}; identities
    gathers every string that names the delegator (public key, bonding purse,
    2.x delegator_kind).
    """
    if not isinstance(auction_result, dict):
        return
    state = auction_result.get("auction_state", auction_result)
    bids = state.get("bids") if isinstance(state, dict) else None
    if isinstance(bids, dict):
        # Older nodes keyed bids by validator public key.
        bids = [{"public_key": k, "bid": v} for k, v in bids.items()]
    if not isinstance(bids, list):
        return
    for item in bids:
        if not isinstance(item, dict):
            continue
        validator = item.get("public_key") or item.get("validator_public_key")
        body = item.get("bid", item)
        if isinstance(body, dict) and len(body) == 1:
            # 2.x tags the bid kind: {"Validator": {...}}.
            (only,) = body.values()
            if isinstance(only, dict):
                body = only
        if not isinstance(validator, str) or not isinstance(body, dict):
            continue
        delegators = body.get("delegators") or []
        if isinstance(delegators, dict):
            delegators = list(delegators.values())
        entries = [_delegator_entry(d) for d in delegators if isinstance(d, dict)]
        yield validator, entries
