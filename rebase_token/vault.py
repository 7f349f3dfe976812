"""
Vault: exchanges the base asset 1:1 for rebase token claims and back.

The vault must hold enough base asset to pay out accrued interest; anything
beyond deposits is added with fund(). A redemption whose payout fails is
rolled back together with its ledger burn.
"""

import logging
from typing import Optional, Protocol, Union

from .errors import PayoutFailed
from .fixed_point import checked, checked_add
from .models import Amount, DepositReceipt, EventType, RedemptionReceipt
from .service import LedgerService

logger = logging.getLogger(__name__)


class BaseAssetTransport(Protocol):
    def receive(self, payer: str, amount: int) -> None: ...

    def release(self, recipient: str, amount: int) -> bool: ...


class BaseAssetReserve:
    """In-process base asset custody. release() reports failure instead of raising."""

    def __init__(self, held: int = 0):
        self.held = checked(held)
        self.paid_out: dict[str, int] = {}

    def receive(self, payer: str, amount: int) -> None:
        self.held = checked_add(self.held, amount)

    def release(self, recipient: str, amount: int) -> bool:
        if amount > self.held:
            return False
        self.held -= amount
        self.paid_out[recipient] = self.paid_out.get(recipient, 0) + amount
        return True


class VaultService:
    def __init__(
        self,
        ledger: LedgerService,
        reserve: Optional[BaseAssetTransport] = None,
        address: str = "vault",
    ):
        self.ledger = ledger
        self.reserve = reserve if reserve is not None else BaseAssetReserve()
        self.address = address

    @property
    def ledger_address(self) -> str:
        return self.ledger.address

    def deposit(self, payer: str, amount: int) -> DepositReceipt:
        amount = checked(amount)
        store = self.ledger.store
        with store.transaction():
            account = self.ledger.issue(self.address, payer, amount, self.ledger.get_global_rate())
            self.reserve.receive(payer, amount)
            store.record(EventType.DEPOSITED, account.last_settled, account=payer,
                         counterparty=self.address, amount=amount, rate=account.locked_rate)
        logger.info("Deposit of %d from %s at rate %d", amount, payer, account.locked_rate)
        return DepositReceipt(
            payer=payer,
            amount=amount,
            locked_rate=account.locked_rate,
            balance_after=account.principal,
        )

    def redeem(self, caller: str, requested: Union[Amount, int]) -> RedemptionReceipt:
        store = self.ledger.store
        with store.transaction():
            if isinstance(requested, Amount) and requested.is_all:
                requested = self.ledger.current_balance(caller)
            amount = checked(requested.value if isinstance(requested, Amount) else requested)
            self.ledger.redeem(self.address, caller, Amount.exact(amount))
            if not self.reserve.release(caller, amount):
                logger.warning("Payout of %d to %s failed; burn rolled back", amount, caller)
                raise PayoutFailed(f"Vault could not release {amount} to {caller}")
            store.record(EventType.REDEEMED, self.ledger.clock(), account=caller,
                         counterparty=self.address, amount=amount)
            balance_after = self.ledger.principal_balance(caller)
        logger.info("Redeemed %d for %s", amount, caller)
        return RedemptionReceipt(
            account=caller,
            amount=amount,
            balance_after=balance_after,
        )

    def fund(self, payer: str, amount: int) -> int:
        """Add base asset to the reserve without minting claims."""
        amount = checked(amount)
        with self.ledger.store.transaction() as store:
            self.reserve.receive(payer, amount)
            store.record(EventType.FUNDED, self.ledger.clock(), account=payer,
                         counterparty=self.address, amount=amount)
            held = self.reserve.held
        logger.info("Vault funded with %d by %s", amount, payer)
        return held
