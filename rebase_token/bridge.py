"""
Token pool for moving rebase token balances between networks.

Outbound movements burn on this ledger and carry the sender's locked rate in
the payload; inbound movements mint with the carried rate. Rate limiting and
message relay belong to the bridging layer and are only described here by
their configuration.
"""

import logging
from typing import Iterable, Optional, Union

from pydantic import BaseModel, Field, model_validator

from .access import Role
from .errors import Unauthorized, UnsupportedChain
from .models import Account, Amount, EventType
from .service import LedgerService

logger = logging.getLogger(__name__)


class RateLimiterConfig(BaseModel):
    is_enabled: bool = False
    capacity: int = Field(default=0, ge=0)
    rate: int = Field(default=0, ge=0, description="Refill rate in units per second")

    @model_validator(mode="after")
    def _check_bounds(self) -> "RateLimiterConfig":
        if self.is_enabled:
            if self.rate == 0 or self.rate >= self.capacity:
                raise ValueError("An enabled limiter needs 0 < rate < capacity")
        elif self.rate or self.capacity:
            raise ValueError("A disabled limiter must have zero rate and capacity")
        return self


class ChainUpdate(BaseModel):
    remote_chain_selector: int = Field(..., ge=0)
    remote_pool_address: str
    remote_token_address: str
    outbound_rate_limiter: RateLimiterConfig = Field(default_factory=RateLimiterConfig)
    inbound_rate_limiter: RateLimiterConfig = Field(default_factory=RateLimiterConfig)


class BridgeTransfer(BaseModel):
    sender: str
    receiver: str
    amount: int = Field(..., ge=0)
    user_rate: int = Field(..., ge=0)
    remote_chain_selector: int
    remote_pool_address: str
    remote_token_address: str


class TokenPool:
    """
    Burn/mint endpoint of the bridge. Outbound movements are started by the
    holder or the router; inbound movements are delivered by the router only.
    """

    def __init__(
        self,
        ledger: LedgerService,
        address: str = "token-pool",
        owner: Optional[str] = None,
        router: str = "router",
    ):
        self.ledger = ledger
        self.address = address
        self.owner = owner or ledger.access.owner
        self.router = router
        self.chains: dict[int, ChainUpdate] = {}

    def apply_chain_updates(self, caller: str, updates: Iterable[ChainUpdate], removes: Iterable[int] = ()) -> None:
        if caller != self.owner:
            self.ledger.access.require(caller, Role.OWNER)
        removes = list(dict.fromkeys(removes))
        with self.ledger.store.lock:
            for selector in removes:
                self._chain(selector)
            for selector in removes:
                del self.chains[selector]
                logger.info("Removed remote chain %d", selector)
            for update in updates:
                self.chains[update.remote_chain_selector] = update
                logger.info("Configured remote chain %d -> pool %s", update.remote_chain_selector,
                            update.remote_pool_address)

    def is_supported_chain(self, selector: int) -> bool:
        return selector in self.chains

    def _chain(self, selector: int) -> ChainUpdate:
        try:
            return self.chains[selector]
        except KeyError:
            raise UnsupportedChain(f"Chain {selector} is not configured") from None

    def lock_or_burn(
        self, caller: str, sender: str, receiver: str, amount: Union[Amount, int], remote_chain_selector: int
    ) -> BridgeTransfer:
        if caller not in (sender, self.router):
            raise Unauthorized(f"{caller} cannot bridge tokens out of {sender}")
        chain = self._chain(remote_chain_selector)
        store = self.ledger.store
        with store.transaction():
            user_rate = self.ledger.interest_rate_of(sender)
            burned = self.ledger.redeem(self.address, sender, amount)
            store.record(EventType.BRIDGED_OUT, self.ledger.clock(), account=sender, counterparty=receiver,
                         amount=burned, rate=user_rate,
                         metadata={"remote_chain_selector": remote_chain_selector})
        logger.info("Burned %d from %s for chain %d", burned, sender, remote_chain_selector)
        return BridgeTransfer(
            sender=sender,
            receiver=receiver,
            amount=burned,
            user_rate=user_rate,
            remote_chain_selector=remote_chain_selector,
            remote_pool_address=chain.remote_pool_address,
            remote_token_address=chain.remote_token_address,
        )

    def release_or_mint(self, caller: str, transfer: BridgeTransfer, source_chain_selector: int) -> Account:
        if caller != self.router:
            raise Unauthorized(f"Only the router may deliver inbound transfers, not {caller}")
        self._chain(source_chain_selector)
        store = self.ledger.store
        with store.transaction():
            ceiling = self.ledger.get_global_rate()
            rate = min(transfer.user_rate, ceiling)
            if rate != transfer.user_rate:
                logger.warning("Carried rate %d for %s exceeds local ceiling %d; locking at the ceiling",
                               transfer.user_rate, transfer.receiver, ceiling)
            account = self.ledger.issue(self.address, transfer.receiver, transfer.amount, rate)
            store.record(EventType.BRIDGED_IN, account.last_settled, account=transfer.receiver,
                         counterparty=transfer.sender, amount=transfer.amount, rate=rate,
                         metadata={"source_chain_selector": source_chain_selector})
        logger.info("Minted %d to %s from chain %d", transfer.amount, transfer.receiver, source_chain_selector)
        return account
