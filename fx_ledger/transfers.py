"""
Transfer Processing Module

Moves funds between two accounts that may hold different currencies. The
sender pays a percentage fee in its own currency; the recipient is credited
the converted amount. Both accounts are committed together through the
store's version-guarded write, so a transfer either lands on both accounts
or on neither.
"""

from decimal import Decimal
from dataclasses import dataclass
from typing import Optional, Union
import uuid

from .currency import Currency, CurrencyConverter, Money
from .fees import FeePolicy
from .storage import AccountStore
from .accounts import Account
from .errors import (
    AccountNotFoundError, CurrencyMismatchError, InsufficientFundsError,
    InvalidAmountError, SameAccountError, TransferError, UnsupportedCurrencyError
)
from .logging_config import get_logger, log_action


@dataclass(frozen=True)
class TransferRequest:
    """
    Caller's instruction to move amount (in currency) between two accounts
    """
    from_account_id: str
    to_account_id: str
    amount: Decimal
    currency: Currency

    def __post_init__(self):
        if not isinstance(self.currency, Currency):
            object.__setattr__(self, 'currency', Currency.from_code(self.currency))
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', Decimal(str(self.amount)))

        if not self.amount.is_finite() or self.amount <= Decimal('0'):
            raise InvalidAmountError(self.amount, "amount must be positive")

        if self.from_account_id == self.to_account_id:
            raise SameAccountError(self.from_account_id)


@dataclass(frozen=True)
class TransferReceipt:
    """Outcome of a committed transfer"""
    transfer_id: str
    from_account_id: str
    to_account_id: str
    debited: Money
    fee: Money
    credited: Money
    from_version: int
    to_version: int

    @property
    def message(self) -> str:
        """Confirmation naming source and destination currencies"""
        return (
            f"Transfer successful from {self.debited.currency.code} "
            f"to {self.credited.currency.code}."
        )

    @property
    def total_debited(self) -> Money:
        """Amount plus fee taken from the sender"""
        return self.debited + self.fee


class TransferEngine:
    """
    Validates and executes cross-currency transfers with optimistic concurrency.

    The engine never retries: a ConcurrentModificationError is surfaced to
    the caller, who may re-submit against freshly read accounts.
    """

    def __init__(
        self,
        store: AccountStore,
        converter: Optional[CurrencyConverter] = None,
        fee_policy: Optional[FeePolicy] = None
    ):
        self.store = store
        self.converter = converter or CurrencyConverter()
        self.fee_policy = fee_policy or FeePolicy()
        self.logger = get_logger("fx_ledger.transfers")

    def _load(self, account_id: str, side: str) -> Account:
        account = self.store.get(account_id)
        if account is None:
            raise AccountNotFoundError(account_id, side=side)
        return account

    def transfer(self, request: TransferRequest) -> TransferReceipt:
        """
        Execute a transfer

        Args:
            request: Validated transfer request

        Returns:
            TransferReceipt whose message confirms the currencies involved

        Raises:
            AccountNotFoundError: Either account does not exist
            CurrencyMismatchError: Request currency is not the sender's, or
                conversion into the recipient's currency is not possible
            InvalidAmountError: Amount is finer than the sender currency allows
            InsufficientFundsError: Sender cannot cover amount plus fee
            ConcurrentModificationError: Either account changed since it was read
        """
        transfer_id = str(uuid.uuid4())
        try:
            receipt = self._execute(transfer_id, request)
        except TransferError as e:
            log_action(
                self.logger, "warning", f"Transfer rejected: {e.message}",
                action="transfer", resource=f"transfer:{transfer_id}",
                correlation_id=transfer_id,
                extra={
                    "kind": e.kind,
                    "from_account": request.from_account_id,
                    "to_account": request.to_account_id,
                    "amount": str(request.amount),
                    "currency": request.currency.code,
                }
            )
            raise

        log_action(
            self.logger, "info", receipt.message,
            action="transfer", resource=f"transfer:{transfer_id}",
            correlation_id=transfer_id,
            extra={
                "from_account": receipt.from_account_id,
                "to_account": receipt.to_account_id,
                "debited": receipt.debited.to_string(),
                "fee": receipt.fee.to_string(),
                "total_debited": receipt.total_debited.to_string(),
                "credited": receipt.credited.to_string(),
            }
        )
        return receipt

    def _execute(self, transfer_id: str, request: TransferRequest) -> TransferReceipt:
        from_account = self._load(request.from_account_id, "from")
        to_account = self._load(request.to_account_id, "to")
        from_version = from_account.version
        to_version = to_account.version

        if request.currency != from_account.currency:
            raise CurrencyMismatchError()

        amount = request.amount
        # Amounts finer than the minor unit would leave the balance off scale
        if amount != amount.quantize(from_account.currency.quantum):
            raise InvalidAmountError(
                amount,
                f"{from_account.currency.code} allows at most "
                f"{from_account.currency.precision} decimal places"
            )

        debited = Money(amount, from_account.currency)
        fee = Money(self.fee_policy.fee(amount, from_account.currency), from_account.currency)
        total_deduction = debited + fee

        if from_account.money < total_deduction:
            raise InsufficientFundsError(from_account.id, total_deduction.amount, from_account.balance)

        try:
            credited = self.converter.convert_money(debited, to_account.currency)
        except UnsupportedCurrencyError as e:
            raise CurrencyMismatchError(
                f"Error during currency conversion calculation: {e.message}"
            ) from e

        # Store hands out copies, so nothing is visible until the commit below
        from_account.balance = (from_account.money - total_deduction).amount
        to_account.balance = (to_account.money + credited).amount

        new_from_version, new_to_version = self.store.conditional_save_all([
            (from_account, from_version),
            (to_account, to_version),
        ])

        return TransferReceipt(
            transfer_id=transfer_id,
            from_account_id=from_account.id,
            to_account_id=to_account.id,
            debited=debited,
            fee=fee,
            credited=credited,
            from_version=new_from_version,
            to_version=new_to_version,
        )

    def transfer_money(
        self,
        from_account_id: str,
        to_account_id: str,
        amount: Union[Decimal, str],
        currency: Union[Currency, str]
    ) -> TransferReceipt:
        """Convenience wrapper building the TransferRequest from raw values"""
        request = TransferRequest(
            from_account_id=from_account_id,
            to_account_id=to_account_id,
            amount=amount,
            currency=currency,
        )
        return self.transfer(request)
