import logging
import threading
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator, Optional, Union
from uuid import uuid4

from .access import AccessControl, Role
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
from .fixed_point import (
    MAX_UINT256,
    balance_at,
    checked,
    checked_add,
    settle_account,
)
from .models import (
    Account,
    AccountView,
    Amount,
    EventType,
    EventHistoryResponse,
    LedgerEvent,
)

__all__ = [
    "LedgerServiceError",
    "Unauthorized",
    "InsufficientAllowance",
    "RateIncreaseRejected",
    "InsufficientBalance",
    "ArithmeticOverflow",
    "PayoutFailed",
    "UnsupportedChain",
    "AccountStore",
    "LedgerService",
    "system_clock",
]

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def system_clock() -> int:
    return int(time.time())


class AccountStore:
    """
    Ledger state keyed by account identity.

    Mutations made inside transaction() are undone if the block raises.
    Transactions nest; only the outermost one snapshots and restores. The
    outermost transaction holds the store lock until it ends, so operations
    from different threads never interleave.
    """

    def __init__(self, global_rate: int):
        self.accounts: dict[str, Account] = {}
        self.allowances: dict[tuple[str, str], int] = {}
        self.events: list[LedgerEvent] = []
        self.global_rate = checked(global_rate)
        self.lock = threading.RLock()
        self._depth = 0

    def get(self, identity: str) -> Account:
        return self.accounts.get(identity) or Account()

    def put(self, identity: str, account: Account) -> None:
        self.accounts[identity] = account

    def record(self, event_type: EventType, timestamp: int, **fields) -> LedgerEvent:
        event = LedgerEvent(
            id=uuid4(),
            event_type=event_type,
            timestamp=timestamp,
            created_at=datetime.now(timezone.utc),
            **fields,
        )
        self.events.append(event)
        return event

    @contextmanager
    def transaction(self) -> Iterator["AccountStore"]:
        with self.lock:
            if self._depth:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            snapshot = (dict(self.accounts), dict(self.allowances), len(self.events), self.global_rate)
            self._depth = 1
            try:
                yield self
            except BaseException:
                self.accounts, self.allowances, event_count, self.global_rate = snapshot
                del self.events[event_count:]
                raise
            finally:
                self._depth = 0


class LedgerService:
    """
    The rebase ledger: principal, locked rate and last settlement per account,
    plus one global rate ceiling that only moves down.

    Interest is never pushed. Every mutating operation settles the accounts it
    touches before changing them.
    """

    def __init__(
        self,
        owner: str,
        initial_rate: int,
        store: Optional[AccountStore] = None,
        clock: Clock = system_clock,
        address: str = "rebase-token",
    ):
        self.store = store or AccountStore(initial_rate)
        self.access = AccessControl(owner)
        self.clock = clock
        self.address = address

    # -- administration --------------------------------------------------

    def grant_mint_burn_role(self, caller: str, identity: str) -> None:
        with self.store.transaction() as store:
            granted = self.access.grant(caller, identity, Role.MINT_AND_BURN)
            if granted:
                store.record(EventType.ROLE_GRANTED, self.clock(), account=identity, counterparty=caller)
        if granted:
            logger.info("Granted mint/burn role to %s", identity)

    def set_global_rate(self, caller: str, new_rate: int) -> LedgerEvent:
        self.access.require(caller, Role.OWNER)
        checked(new_rate)
        with self.store.transaction() as store:
            if new_rate > store.global_rate:
                raise RateIncreaseRejected(
                    f"Interest rate can only decrease: current {store.global_rate}, proposed {new_rate}"
                )
            previous = store.global_rate
            store.global_rate = new_rate
            event = store.record(
                EventType.RATE_CHANGED, self.clock(), rate=new_rate, metadata={"previous_rate": previous}
            )
        logger.info("Global interest rate changed from %d to %d", previous, new_rate)
        return event

    def get_global_rate(self) -> int:
        with self.store.lock:
            return self.store.global_rate

    # -- mint / burn -----------------------------------------------------

    def issue(self, caller: str, account: str, amount: int, proposed_rate: int) -> Account:
        self.access.require(caller, Role.MINT_AND_BURN)
        amount = checked(amount)
        checked(proposed_rate)
        with self.store.transaction() as store:
            now = self.clock()
            current = self._settle(account, now)
            if current.principal == 0:
                if proposed_rate > store.global_rate:
                    raise RateIncreaseRejected(
                        f"Rate {proposed_rate} exceeds the current ceiling {store.global_rate}"
                    )
                current = current.model_copy(update={"locked_rate": proposed_rate})
            current = current.model_copy(update={"principal": checked_add(current.principal, amount)})
            store.put(account, current)
            store.record(EventType.MINTED, now, account=account, counterparty=caller, amount=amount,
                         rate=current.locked_rate)
        return current

    def redeem(self, caller: str, account: str, amount: Union[Amount, int]) -> int:
        self.access.require(caller, Role.MINT_AND_BURN)
        amount = self._coerce_amount(amount)
        with self.store.transaction() as store:
            now = self.clock()
            current = self._settle(account, now)
            burned = checked(amount.resolve(current.principal))
            if burned > current.principal:
                raise InsufficientBalance(
                    f"Cannot burn {burned} from {account}: balance is {current.principal}"
                )
            store.put(account, current.model_copy(update={"principal": current.principal - burned}))
            store.record(EventType.BURNED, now, account=account, counterparty=caller, amount=burned)
        return burned

    # -- transfers -------------------------------------------------------

    def transfer(self, caller: str, sender: str, recipient: str, amount: Union[Amount, int]) -> int:
        if caller != sender:
            raise Unauthorized(f"{caller} cannot transfer on behalf of {sender}")
        return self._move(sender, recipient, self._coerce_amount(amount))

    def approve(self, owner: str, spender: str, amount: int) -> None:
        amount = checked(amount)
        with self.store.transaction() as store:
            store.allowances[(owner, spender)] = amount
            store.record(EventType.APPROVED, self.clock(), account=owner, counterparty=spender, amount=amount)

    def allowance(self, owner: str, spender: str) -> int:
        with self.store.lock:
            return self.store.allowances.get((owner, spender), 0)

    def transfer_from(self, caller: str, owner: str, recipient: str, amount: Union[Amount, int]) -> int:
        amount = self._coerce_amount(amount)
        with self.store.transaction() as store:
            moved = self._move(owner, recipient, amount)
            allowed = self.allowance(owner, caller)
            if moved > allowed:
                raise InsufficientAllowance(
                    f"{caller} may spend {allowed} of {owner}'s balance, requested {moved}"
                )
            if allowed != MAX_UINT256:
                store.allowances[(owner, caller)] = allowed - moved
        return moved

    def _move(self, sender: str, recipient: str, amount: Amount) -> int:
        with self.store.transaction() as store:
            now = self.clock()
            source = self._settle(sender, now)
            target = self._settle(recipient, now)
            moved = checked(amount.resolve(source.principal))
            if moved > source.principal:
                raise InsufficientBalance(
                    f"Cannot transfer {moved} from {sender}: balance is {source.principal}"
                )
            if sender != recipient:
                if target.principal == 0:
                    target = target.model_copy(update={"locked_rate": source.locked_rate})
                store.put(sender, source.model_copy(update={"principal": source.principal - moved}))
                store.put(recipient, target.model_copy(update={"principal": checked_add(target.principal, moved)}))
            store.record(EventType.TRANSFERRED, now, account=sender, counterparty=recipient, amount=moved)
        logger.debug("Transferred %d from %s to %s", moved, sender, recipient)
        return moved

    # -- reads -----------------------------------------------------------

    def current_balance(self, account: str) -> int:
        with self.store.lock:
            return balance_at(self.store.get(account), self.clock())

    def principal_balance(self, account: str) -> int:
        with self.store.lock:
            return self.store.get(account).principal

    def interest_rate_of(self, account: str) -> int:
        with self.store.lock:
            return self.store.get(account).locked_rate

    def total_principal(self) -> int:
        with self.store.lock:
            return sum(a.principal for a in self.store.accounts.values())

    def get_account(self, account: str) -> AccountView:
        with self.store.lock:
            now = self.clock()
            state = self.store.get(account)
        return AccountView(
            identity=account,
            principal_balance=state.principal,
            current_balance=balance_at(state, now),
            locked_rate=state.locked_rate,
            last_settled=state.last_settled,
            as_of=now,
        )

    def get_event_history(self, account: Optional[str] = None, limit: int = 50, offset: int = 0) -> EventHistoryResponse:
        with self.store.lock:
            events = [
                e for e in self.store.events
                if account is None or account in (e.account, e.counterparty)
            ]
        events.reverse()
        return EventHistoryResponse(
            account=account,
            events=events[offset:offset + limit],
            total_count=len(events),
        )

    # -- internals -------------------------------------------------------

    def _settle(self, account: str, now: int) -> Account:
        settled, delta = settle_account(self.store.get(account), now)
        self.store.put(account, settled)
        if delta:
            self.store.record(EventType.INTEREST_ACCRUED, now, account=account, amount=delta,
                              rate=settled.locked_rate)
            logger.debug("Settled %d interest for %s", delta, account)
        return settled

    @staticmethod
    def _coerce_amount(amount: Union[Amount, int]) -> Amount:
        if isinstance(amount, Amount):
            if not amount.is_all:
                checked(amount.value)
            return amount
        return Amount.exact(checked(amount))
