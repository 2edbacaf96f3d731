"""
FastAPI REST API Module

Host service for the transfer engine: executes transfers, reads accounts
and maps transfer errors to HTTP status codes. Runs on port 8090.
"""

from decimal import Decimal
from datetime import datetime, timezone
from typing import Optional
from fastapi import FastAPI, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
import uvicorn

from .config import LedgerConfig, get_config
from .currency import Money, CurrencyConverter
from .fees import FeePolicy
from .storage import AccountStore, create_account_store
from .accounts import Account, AccountManager
from .transfers import TransferEngine, TransferRequest
from .errors import (
    TransferError, AccountNotFoundError, CurrencyMismatchError,
    UnsupportedCurrencyError, InsufficientFundsError,
    ConcurrentModificationError, InvalidRequestError
)
from .seed import seed_demo_accounts
from .logging_config import get_logger

logger = get_logger("fx_ledger.api")

ERROR_STATUS = {
    AccountNotFoundError.kind: 404,
    CurrencyMismatchError.kind: 400,
    UnsupportedCurrencyError.kind: 400,
    InsufficientFundsError.kind: 400,
    InvalidRequestError.kind: 400,
    ConcurrentModificationError.kind: 409,
}


# Pydantic models for API requests/responses
class MoneyModel(BaseModel):
    amount: str = Field(..., description="Decimal amount as string")
    currency: str = Field(..., description="Currency code (USD, JPN, AUD, CNY)")

    @classmethod
    def from_money(cls, money: Money) -> 'MoneyModel':
        return cls(amount=str(money.amount), currency=money.currency.code)


class TransferRequestModel(BaseModel):
    from_account_id: str = Field(..., alias="fromAccountId")
    to_account_id: str = Field(..., alias="toAccountId")
    amount: Decimal = Field(..., description="Amount in the sender's currency")
    currency: str = Field(..., description="Currency code; must be the sender's currency")

    model_config = ConfigDict(populate_by_name=True)


def account_to_dict(account: Account) -> dict:
    return {
        "id": account.id,
        "name": account.name,
        "balance": str(account.balance),
        "currency": account.currency.code,
        "version": account.version,
        "updated_at": account.updated_at.isoformat()
    }


class LedgerSystem:
    """Ledger components wired from configuration"""

    def __init__(self, store: Optional[AccountStore] = None, config: Optional[LedgerConfig] = None):
        self.config = config or get_config()
        self.store = store or create_account_store(self.config.database_url)
        self.converter = CurrencyConverter()
        self.fee_policy = FeePolicy(self.config.fee_rate_decimal)
        self.account_manager = AccountManager(self.store)
        self.transfer_engine = TransferEngine(self.store, self.converter, self.fee_policy)

        if self.config.seed_demo_data:
            seed_demo_accounts(self.store)

    def close(self) -> None:
        self.store.close()


# Global ledger system instance, created on first use
ledger_system: Optional[LedgerSystem] = None


def get_ledger_system() -> LedgerSystem:
    global ledger_system
    if ledger_system is None:
        ledger_system = LedgerSystem()
    return ledger_system


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="FX Ledger API",
        description="Cross-currency transfers with optimistic concurrency",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc"
    )

    @app.exception_handler(TransferError)
    async def transfer_error_handler(request: Request, exc: TransferError):
        return JSONResponse(
            status_code=ERROR_STATUS.get(exc.kind, 400),
            content={"error": exc.kind, "detail": exc.message}
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": "internal_error", "detail": "Internal server error"}
        )

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.post("/api/accounts/transfer")
    def transfer_money(
        request: TransferRequestModel,
        system: LedgerSystem = Depends(get_ledger_system)
    ):
        """Transfer funds between two accounts"""
        receipt = system.transfer_engine.transfer(TransferRequest(
            from_account_id=request.from_account_id,
            to_account_id=request.to_account_id,
            amount=request.amount,
            currency=request.currency,
        ))
        return {
            "message": receipt.message,
            "transfer_id": receipt.transfer_id,
            "from_account_id": receipt.from_account_id,
            "to_account_id": receipt.to_account_id,
            "debited": MoneyModel.from_money(receipt.debited).model_dump(),
            "fee": MoneyModel.from_money(receipt.fee).model_dump(),
            "credited": MoneyModel.from_money(receipt.credited).model_dump(),
        }

    @app.get("/api/accounts/{account_id}")
    def get_account(
        account_id: str,
        system: LedgerSystem = Depends(get_ledger_system)
    ):
        """Get account details"""
        return account_to_dict(system.account_manager.get_account(account_id))

    return app


app = create_app()


def run_server(host: str = "0.0.0.0", port: int = 8090, debug: bool = False):
    """Run the FastAPI server"""
    uvicorn.run(
        "fx_ledger.api:app",
        host=host,
        port=port,
        reload=debug,
        log_level="info"
    )
