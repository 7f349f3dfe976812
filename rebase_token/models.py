from datetime import datetime
from enum import Enum
from typing import Literal, Optional, Union
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict


class EventType(str, Enum):
    RATE_CHANGED = "RATE_CHANGED"
    ROLE_GRANTED = "ROLE_GRANTED"
    INTEREST_ACCRUED = "INTEREST_ACCRUED"
    MINTED = "MINTED"
    BURNED = "BURNED"
    TRANSFERRED = "TRANSFERRED"
    APPROVED = "APPROVED"
    DEPOSITED = "DEPOSITED"
    REDEEMED = "REDEEMED"
    FUNDED = "FUNDED"
    BRIDGED_OUT = "BRIDGED_OUT"
    BRIDGED_IN = "BRIDGED_IN"


class Account(BaseModel):
    principal: int = 0
    locked_rate: int = 0
    last_settled: int = 0

    model_config = ConfigDict(frozen=True)


class Amount(BaseModel):
    """Either an exact number of units or everything the holder has."""

    value: Optional[int] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def exact(cls, value: int) -> "Amount":
        return cls(value=value)

    @classmethod
    def all(cls) -> "Amount":
        return cls()

    @property
    def is_all(self) -> bool:
        return self.value is None

    def resolve(self, balance: int) -> int:
        return balance if self.is_all else self.value


class LedgerEvent(BaseModel):
    id: UUID
    event_type: EventType
    account: Optional[str] = None
    counterparty: Optional[str] = None
    amount: Optional[int] = None
    rate: Optional[int] = None
    timestamp: int
    created_at: datetime
    metadata: dict = Field(default_factory=dict)

    model_config = ConfigDict(from_attributes=True)


class AccountView(BaseModel):
    identity: str
    principal_balance: int
    current_balance: int
    locked_rate: int
    last_settled: int
    as_of: int


class DepositReceipt(BaseModel):
    payer: str
    amount: int
    locked_rate: int
    balance_after: int


class RedemptionReceipt(BaseModel):
    account: str
    amount: int
    balance_after: int


class DepositRequest(BaseModel):
    amount: int = Field(..., ge=0, description="Base-asset units already sent to the vault")

    model_config = ConfigDict(json_schema_extra={
        "example": {"amount": 100000}
    })


class RedeemRequest(BaseModel):
    amount: Union[Literal["max"], int] = Field(..., description='Units to redeem, or "max" for the full balance')

    model_config = ConfigDict(json_schema_extra={
        "example": {"amount": "max"}
    })

    def to_amount(self) -> Amount:
        return Amount.all() if self.amount == "max" else Amount.exact(self.amount)


class TransferRequest(BaseModel):
    recipient: str
    amount: Union[Literal["max"], int]

    model_config = ConfigDict(json_schema_extra={
        "example": {"recipient": "bob", "amount": 2500}
    })

    def to_amount(self) -> Amount:
        return Amount.all() if self.amount == "max" else Amount.exact(self.amount)


class FundRequest(BaseModel):
    amount: int = Field(..., ge=0)


class SetRateRequest(BaseModel):
    new_rate: int = Field(..., ge=0, description="Per-second rate scaled by 1e18")


class GrantRoleRequest(BaseModel):
    identity: str


class RateResponse(BaseModel):
    global_rate: int


class TransferResponse(BaseModel):
    sender: str
    recipient: str
    amount: int


class EventHistoryResponse(BaseModel):
    account: Optional[str] = None
    events: list[LedgerEvent]
    total_count: int
