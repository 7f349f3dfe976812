"""
Fixed-point arithmetic for the rebase ledger.

Every stored quantity is an unsigned 256-bit integer. Rates are per-second
values scaled by PRECISION_FACTOR, so a rate of 5e10 means 5e-8 per second.
Any result outside the unsigned range raises ArithmeticOverflow instead of
wrapping.
"""

from .errors import ArithmeticOverflow
from .models import Account

PRECISION_FACTOR = 10**18
MAX_UINT256 = 2**256 - 1

# (5 * 10**-8) * 10**18
DEFAULT_INTEREST_RATE = 5 * 10**10

def checked(value: int) -> int:
    if value < 0 or value > MAX_UINT256:
        raise ArithmeticOverflow(f"Value {value} is outside the unsigned 256-bit range")
    return value


def checked_add(a: int, b: int) -> int:
    return checked(a + b)


def checked_sub(a: int, b: int) -> int:
    return checked(a - b)


def checked_mul(a: int, b: int) -> int:
    return checked(a * b)


def interest_factor(rate: int, elapsed: int) -> int:
    """Linear growth factor since the last settlement, scaled by PRECISION_FACTOR."""
    return checked_add(PRECISION_FACTOR, checked_mul(rate, elapsed))


def accrued_balance(principal: int, rate: int, elapsed: int) -> int:
    """principal * (F + rate * elapsed) / F, rounded down."""
    checked(elapsed)
    return checked_mul(principal, interest_factor(rate, elapsed)) // PRECISION_FACTOR


def elapsed_since(account: Account, now: int) -> int:
    # A clock that runs backwards is treated like an unsigned underflow.
    return checked_sub(now, account.last_settled)


def balance_at(account: Account, now: int) -> int:
    return accrued_balance(account.principal, account.locked_rate, elapsed_since(account, now))


def settle_account(account: Account, now: int) -> tuple[Account, int]:
    """
    Fold accrued interest into principal and move last_settled to now.

    Returns the settled account and the interest realized. Settling twice at
    the same timestamp realizes nothing the second time.
    """
    balance = balance_at(account, now)
    delta = checked_sub(balance, account.principal)
    settled = account.model_copy(update={"principal": balance, "last_settled": now})
    return settled, delta
