"""Demo data for the FX ledger

Provisions a small fixed set of accounts covering every supported currency.
Seeding is idempotent: accounts whose id already exists are left untouched.

Run with: python -m fx_ledger.seed
"""

from decimal import Decimal
from typing import List

from .accounts import Account, AccountManager
from .currency import Currency
from .storage import AccountStore
from .logging_config import get_logger

DEMO_ACCOUNTS = [
    ("1", "Alice", Currency.USD, Decimal("1000.00")),
    ("2", "Bob", Currency.JPN, Decimal("50000")),
    ("3", "Charlie", Currency.AUD, Decimal("200.00")),
    ("4", "Dandan", Currency.CNY, Decimal("5000.00")),
]

logger = get_logger("fx_ledger.seed")


def seed_demo_accounts(store: AccountStore) -> List[Account]:
    """Create the demo accounts that do not exist yet; returns those created"""
    manager = AccountManager(store)
    created = []
    for account_id, name, currency, balance in DEMO_ACCOUNTS:
        if store.exists(account_id):
            continue
        created.append(manager.open_account(
            name=name, currency=currency, initial_balance=balance, account_id=account_id
        ))
    logger.info("Seeded %d demo accounts", len(created))
    return created


if __name__ == "__main__":
    from .config import get_config
    from .logging_config import setup_logging
    from .storage import create_account_store

    cfg = get_config()
    setup_logging(cfg.log_level, cfg.log_format)
    account_store = create_account_store(cfg.database_url)
    try:
        for account in seed_demo_accounts(account_store):
            print(f"{account.id}: {account.name} {account.money.to_string()}")
    finally:
        account_store.close()
