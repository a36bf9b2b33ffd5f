"""Block-explorer REST fallback."""

from collections.abc import Iterable
from typing import Any

import requests

from stakevue_state.constants import EXPLORER_PATH_TEMPLATES, EXPLORER_USER_AGENT
from stakevue_state.errors import ExplorerError
from stakevue_state.parsing import to_int


def build_explorer_url(base_url: str, template: str, package_hash: str) -> str:
    """Join an explorer base URL and a path template."""
    return f"{base_url.rstrip('/')}/{template.format(package_hash=package_hash).lstrip('/')}"


def fetch_contract_package(package_hash: str, base_urls: Iterable[str], *, timeout_s: float) -> dict[str, Any]:
    """GET the contract package from the first explorer that answers with JSON."""
    last_err: Exception | None = None
    tried = 0
    for base in base_urls:
        for template in EXPLORER_PATH_TEMPLATES:
            url = build_explorer_url(base, template, package_hash)
            tried += 1
            try:
                resp = requests.get(
                    url,
                    headers={"Accept": "application/json", "User-Agent": EXPLORER_USER_AGENT},
                    timeout=timeout_s,
                )
                resp.raise_for_status()
                payload = resp.json()
            except (requests.exceptions.RequestException, ValueError) as ex:
                last_err = ex
                continue
            if isinstance(payload, dict):
                return payload
            last_err = ExplorerError(f"{url}: expected a JSON object, got {type(payload).__name__}")
    raise ExplorerError(f"Failed to fetch contract package {package_hash} ({tried} URLs tried)") from last_err


# Field names are not documented; these are matched by substring (lowercased).
_POOL_FIELD_HINTS = ("total_cspr_pool", "total_pool", "pool", "balance")
_SUPPLY_FIELD_HINTS = ("total_supply", "supply")


def _walk(obj: Any, depth: int = 3):
    if depth < 0 or not isinstance(obj, dict):
        return
    for k, v in obj.items():
        yield str(k).lower(), v
        if isinstance(v, dict):
            yield from _walk(v, depth - 1)


def _match_field(payload: dict[str, Any], hints: tuple[str, ...]) -> int | None:
    fields = list(_walk(payload))
    for hint in hints:
        for name, value in fields:
            if hint in name:
                n = to_int(value)
                if n is not None and n > 0:
                    return n
    return None


def extract_pool_and_supply(payload: dict[str, Any]) -> tuple[int | None, int | None]:
    """Best-effort (pool, supply) from an explorer payload; either may be None."""
    data = payload.get("data", payload)
    if not isinstance(data, dict):
        return None, None
    supply = _match_field(data, _SUPPLY_FIELD_HINTS)
    pool_fields = {k: v for k, v in data.items() if "supply" not in str(k).lower()}
    pool = _match_field(pool_fields, _POOL_FIELD_HINTS)
    return pool, supply
