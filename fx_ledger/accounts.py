"""
Account Module

The account record moved by transfers, plus provisioning and lookup helpers.
Accounts are owned by the storage layer; everything outside it works on
copies and hands them back for a conditional write.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TYPE_CHECKING, Union
import uuid

from .currency import Currency, Money, quantize_to_currency
from .errors import AccountNotFoundError
from .logging_config import get_logger, log_action

if TYPE_CHECKING:
    from .storage import AccountStore


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Account:
    """
    Single-currency account with an optimistic-concurrency version
    """
    id: str
    name: str
    balance: Decimal
    currency: Currency
    version: int = 0
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        if not isinstance(self.balance, Decimal):
            self.balance = Decimal(str(self.balance))
        if not isinstance(self.currency, Currency):
            self.currency = Currency.from_code(self.currency)
        if self.balance < Decimal('0'):
            raise ValueError("Account balance cannot be negative")

    @property
    def money(self) -> Money:
        """Balance as a Money value"""
        return Money(self.balance, self.currency)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        return {
            "id": self.id,
            "name": self.name,
            "balance": str(self.balance),
            "currency": self.currency.code,
            "version": self.version,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Account':
        """Create instance from dictionary"""
        data = dict(data)
        if isinstance(data.get('created_at'), str):
            data['created_at'] = datetime.fromisoformat(data['created_at'])
        if isinstance(data.get('updated_at'), str):
            data['updated_at'] = datetime.fromisoformat(data['updated_at'])
        data['balance'] = Decimal(str(data['balance']))
        data['currency'] = Currency.from_code(data['currency'])
        data['version'] = int(data.get('version', 0))
        return cls(**data)


class AccountManager:
    """
    Provisions and looks up accounts in an AccountStore
    """

    def __init__(self, store: 'AccountStore'):
        self.store = store
        self.logger = get_logger("fx_ledger.accounts")

    def open_account(
        self,
        name: str,
        currency: Union[Currency, str],
        initial_balance: Union[Decimal, str] = Decimal('0'),
        account_id: Optional[str] = None
    ) -> Account:
        """
        Create and store a new account

        Args:
            name: Display name of the holder
            currency: Account currency
            initial_balance: Opening balance, rounded to the currency scale
            account_id: Specific id (generated if not provided)

        Returns:
            The stored Account at version 0
        """
        currency = Currency.from_code(currency)
        if not isinstance(initial_balance, Decimal):
            initial_balance = Decimal(str(initial_balance))

        account = Account(
            id=account_id or str(uuid.uuid4()),
            name=name,
            balance=quantize_to_currency(initial_balance, currency),
            currency=currency,
        )
        self.store.add(account)

        log_action(
            self.logger, "info", f"Account opened: {account.name}",
            action="open_account", resource=f"account:{account.id}",
            extra={"currency": currency.code, "balance": str(account.balance)}
        )
        return account

    def get_account(self, account_id: str) -> Account:
        """Get account by ID, raising AccountNotFoundError if missing"""
        account = self.store.get(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    def list_accounts(self) -> List[Account]:
        """All stored accounts"""
        return self.store.list_accounts()
