"""
Rebase Token Ledger

This module provides:
- An interest-bearing ledger whose balances grow linearly per second
- Per-account interest rates locked at first deposit or inherited on transfer
- A global rate ceiling that can only be lowered
- A vault exchanging the base asset 1:1 for ledger claims
- A token pool that carries locked rates across networks
"""

from .models import (
    Account,
    Amount,
    EventType,
    LedgerEvent,
    AccountView,
)
from .errors import (
    LedgerServiceError,
    Unauthorized,
    InsufficientAllowance,
    RateIncreaseRejected,
    InsufficientBalance,
    ArithmeticOverflow,
    PayoutFailed,
    UnsupportedChain,
)
from .fixed_point import PRECISION_FACTOR, MAX_UINT256, DEFAULT_INTEREST_RATE
from .service import AccountStore, LedgerService
from .vault import BaseAssetReserve, VaultService
from .bridge import BridgeTransfer, ChainUpdate, RateLimiterConfig, TokenPool
from .config import LedgerSettings, build_services

__all__ = [
    "Account",
    "Amount",
    "EventType",
    "LedgerEvent",
    "AccountView",
    "LedgerServiceError",
    "Unauthorized",
    "InsufficientAllowance",
    "RateIncreaseRejected",
    "InsufficientBalance",
    "ArithmeticOverflow",
    "PayoutFailed",
    "UnsupportedChain",
    "PRECISION_FACTOR",
    "MAX_UINT256",
    "DEFAULT_INTEREST_RATE",
    "AccountStore",
    "LedgerService",
    "BaseAssetReserve",
    "VaultService",
    "BridgeTransfer",
    "ChainUpdate",
    "RateLimiterConfig",
    "TokenPool",
    "LedgerSettings",
    "build_services",
]
