"""Exchange rate between pooled CSPR and stCSPR supply.

All arithmetic is on Python ints. Pool balances are U512 on chain; a float
intermediate would silently lose motes on the amounts users see.
"""

from stakevue_state.constants import RATE_PRECISION


def exchange_rate(pool: int, supply: int, precision: int = RATE_PRECISION) -> int:
    """floor(pool * precision / supply); exactly `precision` (1.0) when supply is 0."""
    if supply <= 0:
        return precision
    return (pool * precision) // supply


def cspr_to_stcspr(amount_motes: int, rate: int, precision: int = RATE_PRECISION) -> int:
    """stCSPR minted for staking `amount_motes` at `rate`."""
    if rate <= 0:
        return 0
    return (amount_motes * precision) // rate


def stcspr_to_cspr(amount: int, rate: int, precision: int = RATE_PRECISION) -> int:
    """CSPR (motes) received for unstaking `amount` stCSPR at `rate`."""
    if amount <= 0 or rate <= 0:
        return 0
    return (amount * rate) // precision
