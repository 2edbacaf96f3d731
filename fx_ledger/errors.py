"""
Transfer Error Taxonomy

Every failure the transfer engine can surface. Each error carries a stable
``kind`` string so host services can map it to a response without
inspecting the message.
"""

from decimal import Decimal
from typing import Optional


class TransferError(Exception):
    """Base class for all transfer failures"""

    kind = "transfer_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class AccountNotFoundError(TransferError):
    """Referenced account does not exist in the store"""

    kind = "account_not_found"

    def __init__(self, account_id: str, side: Optional[str] = None):
        self.account_id = account_id
        self.side = side
        if side == "from":
            message = "From account not found"
        elif side == "to":
            message = "To account not found"
        else:
            message = f"Account not found with id: {account_id}"
        super().__init__(message)


class CurrencyMismatchError(TransferError):
    """Request currency differs from the sender's currency, or conversion failed"""

    kind = "currency_mismatch"

    def __init__(self, message: str = "Transfer currency must match the sender's account base currency."):
        super().__init__(message)


class UnsupportedCurrencyError(TransferError):
    """Currency outside the supported set or missing from the rate table"""

    kind = "unsupported_currency"

    def __init__(self, currency, message: Optional[str] = None):
        self.currency = currency
        super().__init__(message or f"Unsupported currency for conversion: {currency}")


class InsufficientFundsError(TransferError):
    """Sender balance does not cover amount plus fee"""

    kind = "insufficient_funds"

    def __init__(self, account_id: str, required: Decimal, available: Decimal):
        self.account_id = account_id
        self.required = required
        self.available = available
        super().__init__("Insufficient funds in sender's account.")


class ConcurrentModificationError(TransferError):
    """Stored version advanced since the account was read"""

    kind = "concurrent_modification"

    def __init__(self, account_id: str, expected_version: int):
        self.account_id = account_id
        self.expected_version = expected_version
        super().__init__(
            f"Account {account_id} was modified concurrently "
            f"(expected version {expected_version})"
        )


class InvalidRequestError(TransferError):
    """Transfer request is malformed"""

    kind = "invalid_request"


class InvalidAmountError(InvalidRequestError):
    """Amount is not positive or is finer than the currency allows"""

    def __init__(self, amount, reason: str):
        self.amount = amount
        self.reason = reason
        super().__init__(f"Invalid amount {amount}: {reason}")


class SameAccountError(InvalidRequestError):
    """Source and destination are the same account"""

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Cannot transfer to the same account: {account_id}")
