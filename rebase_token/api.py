import logging
from typing import Optional

from fastapi import APIRouter, FastAPI, Header, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware

from .config import LedgerSettings, build_services
from .models import (
    AccountView, DepositReceipt, DepositRequest, EventHistoryResponse, FundRequest,
    GrantRoleRequest, RateResponse, RedeemRequest, RedemptionReceipt, SetRateRequest,
    TransferRequest, TransferResponse,
)
from .service import (
    Clock, LedgerServiceError, Unauthorized, RateIncreaseRejected, InsufficientBalance,
    ArithmeticOverflow, PayoutFailed, UnsupportedChain, system_clock,
)

ERROR_STATUS = [
    (Unauthorized, status.HTTP_403_FORBIDDEN),
    (RateIncreaseRejected, status.HTTP_409_CONFLICT),
    (InsufficientBalance, status.HTTP_400_BAD_REQUEST),
    (ArithmeticOverflow, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (PayoutFailed, status.HTTP_502_BAD_GATEWAY),
    (UnsupportedChain, status.HTTP_404_NOT_FOUND),
]

router = APIRouter()


def _http_error(error: LedgerServiceError) -> HTTPException:
    for error_type, code in ERROR_STATUS:
        if isinstance(error, error_type):
            return HTTPException(status_code=code, detail=str(error))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))


@router.get("/health", tags=["System"])
def health_check():
    return {"status": "healthy", "service": "rebase-token-ledger"}


@router.get("/rate", response_model=RateResponse, tags=["Rate"])
def get_rate(request: Request) -> RateResponse:
    return RateResponse(global_rate=request.app.state.ledger.get_global_rate())


@router.post("/admin/rate", response_model=RateResponse, tags=["Admin"])
def set_rate(body: SetRateRequest, request: Request, x_caller_id: str = Header(...)) -> RateResponse:
    ledger = request.app.state.ledger
    try:
        ledger.set_global_rate(x_caller_id, body.new_rate)
    except LedgerServiceError as e:
        raise _http_error(e)
    return RateResponse(global_rate=ledger.get_global_rate())


@router.post("/admin/roles", status_code=status.HTTP_204_NO_CONTENT, tags=["Admin"])
def grant_role(body: GrantRoleRequest, request: Request, x_caller_id: str = Header(...)) -> None:
    try:
        request.app.state.ledger.grant_mint_burn_role(x_caller_id, body.identity)
    except LedgerServiceError as e:
        raise _http_error(e)


@router.post("/vault/deposit", response_model=DepositReceipt, status_code=status.HTTP_201_CREATED, tags=["Vault"])
def deposit(body: DepositRequest, request: Request, x_caller_id: str = Header(...)) -> DepositReceipt:
    try:
        return request.app.state.vault.deposit(x_caller_id, body.amount)
    except LedgerServiceError as e:
        raise _http_error(e)


@router.post("/vault/redeem", response_model=RedemptionReceipt, tags=["Vault"])
def redeem(body: RedeemRequest, request: Request, x_caller_id: str = Header(...)) -> RedemptionReceipt:
    try:
        return request.app.state.vault.redeem(x_caller_id, body.to_amount())
    except LedgerServiceError as e:
        raise _http_error(e)


@router.post("/vault/fund", tags=["Vault"])
def fund(body: FundRequest, request: Request, x_caller_id: str = Header(...)):
    try:
        held = request.app.state.vault.fund(x_caller_id, body.amount)
    except LedgerServiceError as e:
        raise _http_error(e)
    return {"reserve": held}


@router.post("/transfers", response_model=TransferResponse, tags=["Accounts"])
def transfer(body: TransferRequest, request: Request, x_caller_id: str = Header(...)) -> TransferResponse:
    try:
        moved = request.app.state.ledger.transfer(x_caller_id, x_caller_id, body.recipient, body.to_amount())
    except LedgerServiceError as e:
        raise _http_error(e)
    return TransferResponse(sender=x_caller_id, recipient=body.recipient, amount=moved)


@router.get("/accounts/{identity}", response_model=AccountView, tags=["Accounts"])
def get_account(identity: str, request: Request) -> AccountView:
    return request.app.state.ledger.get_account(identity)


@router.get("/events", response_model=EventHistoryResponse, tags=["Accounts"])
def get_events(request: Request, account: Optional[str] = None, limit: int = 50, offset: int = 0) -> EventHistoryResponse:
    return request.app.state.ledger.get_event_history(account, limit, offset)


def create_app(settings: Optional[LedgerSettings] = None, clock: Clock = system_clock) -> FastAPI:
    settings = settings or LedgerSettings.from_env()
    app = FastAPI(
        title="Rebase Token Ledger API",
        description="Interest-bearing ledger with a 1:1 base asset vault and lazily settled interest",
        version="1.0.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    app.state.ledger, app.state.vault, app.state.pool = build_services(settings, clock)
    app.include_router(router)
    return app


if __name__ == "__main__":
    import uvicorn
    settings = LedgerSettings.from_env()
    logging.basicConfig(level=settings.log_level)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=8000)
