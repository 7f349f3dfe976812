import os
from typing import Optional

from pydantic import BaseModel, Field

from .bridge import TokenPool
from .fixed_point import DEFAULT_INTEREST_RATE, MAX_UINT256
from .service import Clock, LedgerService, system_clock
from .vault import VaultService


class LedgerSettings(BaseModel):
    owner: str = "owner"
    initial_rate: int = Field(default=DEFAULT_INTEREST_RATE, ge=0, le=MAX_UINT256)
    ledger_address: str = "rebase-token"
    vault_address: str = "vault"
    pool_address: str = "token-pool"
    router_address: str = "router"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "LedgerSettings":
        values = {
            "owner": os.getenv("REBASE_OWNER"),
            "initial_rate": os.getenv("REBASE_INITIAL_RATE"),
            "ledger_address": os.getenv("REBASE_LEDGER_ADDRESS"),
            "vault_address": os.getenv("REBASE_VAULT_ADDRESS"),
            "pool_address": os.getenv("REBASE_POOL_ADDRESS"),
            "router_address": os.getenv("REBASE_ROUTER_ADDRESS"),
            "log_level": os.getenv("REBASE_LOG_LEVEL"),
        }
        return cls(**{k: v for k, v in values.items() if v is not None})


def build_services(
    settings: Optional[LedgerSettings] = None, clock: Clock = system_clock
) -> tuple[LedgerService, VaultService, TokenPool]:
    """Wire a ledger with its vault and pool, both holding the mint/burn role."""
    settings = settings or LedgerSettings.from_env()
    ledger = LedgerService(
        owner=settings.owner,
        initial_rate=settings.initial_rate,
        clock=clock,
        address=settings.ledger_address,
    )
    vault = VaultService(ledger, address=settings.vault_address)
    pool = TokenPool(ledger, address=settings.pool_address, router=settings.router_address)
    ledger.grant_mint_burn_role(settings.owner, vault.address)
    ledger.grant_mint_burn_role(settings.owner, pool.address)
    return ledger, vault, pool
