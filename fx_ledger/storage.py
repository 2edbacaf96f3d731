"""
Account Storage Module

Abstract account store with an optimistic-concurrency write path, and
implementations for in-memory (testing), SQLite (persistence) and
PostgreSQL. All monetary values stored as Decimal strings.

Every store exposes a conditional write keyed on the version the caller
read. ``conditional_save_all`` commits several accounts as one unit: either
every expected version still matches and all rows advance, or nothing is
written.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Sequence, Tuple, Union
from datetime import datetime, timezone
import sqlite3
import json
import threading
from pathlib import Path

from .accounts import Account
from .errors import AccountNotFoundError, ConcurrentModificationError
from .logging_config import get_logger

VersionedWrite = Tuple[Account, int]

logger = get_logger("fx_ledger.storage")


def _check_distinct(writes: Sequence[VersionedWrite]) -> None:
    ids = [account.id for account, _ in writes]
    if len(ids) != len(set(ids)):
        raise ValueError("Each account may appear only once in a conditional write")


def _versioned_payload(account: Account, new_version: int, now: datetime) -> Dict[str, Any]:
    data = account.to_dict()
    data['version'] = new_version
    data['updated_at'] = now.isoformat()
    return data


class AccountStore(ABC):
    """Abstract interface for account storage backends"""

    @abstractmethod
    def get(self, account_id: str) -> Optional[Account]:
        """Load a private copy of an account, or None if it does not exist"""
        pass

    @abstractmethod
    def add(self, account: Account) -> None:
        """Insert a new account; raises ValueError if the id is taken"""
        pass

    @abstractmethod
    def list_accounts(self) -> List[Account]:
        """Load all accounts"""
        pass

    @abstractmethod
    def conditional_save_all(self, writes: Sequence[VersionedWrite]) -> List[int]:
        """
        Atomically write several accounts, each guarded by its expected version

        Args:
            writes: (account, expected_version) pairs, one per account id

        Returns:
            New version of each account, in the order given

        Raises:
            ConcurrentModificationError: If any stored version differs from
                the expected one. Nothing is written in that case.
            AccountNotFoundError: If any account no longer exists
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close storage connection"""
        pass

    def conditional_save(self, account: Account, expected_version: int) -> int:
        """Write one account if its stored version still equals expected_version"""
        return self.conditional_save_all([(account, expected_version)])[0]

    def exists(self, account_id: str) -> bool:
        """Check if an account exists"""
        return self.get(account_id) is not None


class InMemoryAccountStore(AccountStore):
    """In-memory storage implementation for testing"""

    def __init__(self):
        self._data: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.RLock()

    def get(self, account_id: str) -> Optional[Account]:
        """Load an account from memory"""
        with self._lock:
            record = self._data.get(account_id)
            if record:
                # Deep copy to prevent external mutation
                return Account.from_dict(json.loads(json.dumps(record)))
            return None

    def add(self, account: Account) -> None:
        """Save a new account to memory"""
        with self._lock:
            if account.id in self._data:
                raise ValueError(f"Account {account.id} already exists")
            self._data[account.id] = account.to_dict()

    def list_accounts(self) -> List[Account]:
        """Load all accounts"""
        with self._lock:
            return [Account.from_dict(dict(record)) for record in self._data.values()]

    def conditional_save_all(self, writes: Sequence[VersionedWrite]) -> List[int]:
        """Check every expected version, then apply every write, under one lock"""
        _check_distinct(writes)
        with self._lock:
            for account, expected_version in writes:
                record = self._data.get(account.id)
                if record is None:
                    raise AccountNotFoundError(account.id)
                if record['version'] != expected_version:
                    raise ConcurrentModificationError(account.id, expected_version)

            now = datetime.now(timezone.utc)
            new_versions = []
            for account, expected_version in writes:
                new_version = expected_version + 1
                self._data[account.id] = _versioned_payload(account, new_version, now)
                new_versions.append(new_version)
            return new_versions

    def close(self) -> None:
        """Close storage (no-op for in-memory)"""
        pass


class SQLiteAccountStore(AccountStore):
    """SQLite storage implementation for persistence"""

    def __init__(self, db_path: Union[str, Path] = ":memory:", timeout: float = 5.0):
        self.db_path = str(db_path)
        self._connection = sqlite3.connect(
            self.db_path, timeout=timeout, check_same_thread=False, isolation_level='DEFERRED'
        )
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()

        # Enable WAL mode for better concurrent access
        if self.db_path != ":memory:":
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
                self._connection.commit()

        self._ensure_table()

    def _ensure_table(self) -> None:
        """Ensure the accounts table exists"""
        with self._lock:
            self._connection.execute("""
                CREATE TABLE IF NOT EXISTS accounts (
                    id TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    version INTEGER NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            self._connection.commit()

    def _row_to_account(self, row) -> Account:
        data = json.loads(row['data'])
        data['version'] = row['version']
        return Account.from_dict(data)

    def get(self, account_id: str) -> Optional[Account]:
        """Load an account from SQLite"""
        with self._lock:
            cursor = self._connection.execute(
                "SELECT data, version FROM accounts WHERE id = ?", (account_id,)
            )
            row = cursor.fetchone()
            if row:
                return self._row_to_account(row)
            return None

    def add(self, account: Account) -> None:
        """Insert a new account"""
        with self._lock:
            data = account.to_dict()
            try:
                self._connection.execute("""
                    INSERT INTO accounts (id, data, version, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                """, (account.id, json.dumps(data), account.version,
                      data['created_at'], data['updated_at']))
                self._connection.commit()
            except sqlite3.IntegrityError:
                self._connection.rollback()
                raise ValueError(f"Account {account.id} already exists") from None

    def list_accounts(self) -> List[Account]:
        """Load all accounts"""
        with self._lock:
            cursor = self._connection.execute(
                "SELECT data, version FROM accounts ORDER BY created_at"
            )
            return [self._row_to_account(row) for row in cursor.fetchall()]

    def exists(self, account_id: str) -> bool:
        """Check if an account exists"""
        with self._lock:
            cursor = self._connection.execute(
                "SELECT 1 FROM accounts WHERE id = ? LIMIT 1", (account_id,)
            )
            return cursor.fetchone() is not None

    def conditional_save_all(self, writes: Sequence[VersionedWrite]) -> List[int]:
        """Run one version-guarded UPDATE per account inside a single transaction"""
        _check_distinct(writes)
        with self._lock:
            now = datetime.now(timezone.utc)
            new_versions = []
            try:
                for account, expected_version in writes:
                    new_version = expected_version + 1
                    data = _versioned_payload(account, new_version, now)
                    try:
                        cursor = self._connection.execute("""
                            UPDATE accounts SET data = ?, version = ?, updated_at = ?
                            WHERE id = ? AND version = ?
                        """, (json.dumps(data), new_version, data['updated_at'],
                              account.id, expected_version))
                    except sqlite3.OperationalError as e:
                        # Another process holds the database write lock
                        if "locked" not in str(e) and "busy" not in str(e):
                            raise
                        self._connection.rollback()
                        logger.warning("Write to account %s aborted: %s", account.id, e)
                        raise ConcurrentModificationError(account.id, expected_version) from None
                    if cursor.rowcount != 1:
                        self._connection.rollback()
                        if not self.exists(account.id):
                            raise AccountNotFoundError(account.id)
                        raise ConcurrentModificationError(account.id, expected_version)
                    new_versions.append(new_version)
                self._connection.commit()
            except sqlite3.Error:
                self._connection.rollback()
                raise
            return new_versions

    def close(self) -> None:
        """Close SQLite connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


class PostgreSQLAccountStore(AccountStore):
    """PostgreSQL storage backend with ACID transaction support"""

    def __init__(self, connection_string: str):
        try:
            import psycopg2
            import psycopg2.errors
            import psycopg2.extras
            self.psycopg2 = psycopg2
            self.extras = psycopg2.extras
        except ImportError:
            raise ImportError("psycopg2 is required for PostgreSQL storage. Install with: pip install psycopg2-binary")

        self.connection_string = connection_string
        self._lock = threading.RLock()
        self._connection = self.psycopg2.connect(
            self.connection_string,
            cursor_factory=self.extras.RealDictCursor
        )
        self._connection.autocommit = False  # We handle transactions manually
        self._ensure_table()

    def _ensure_table(self) -> None:
        """Ensure the accounts table exists"""
        with self._lock:
            cursor = self._connection.cursor()
            try:
                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS accounts (
                        id TEXT PRIMARY KEY,
                        data JSONB NOT NULL,
                        version BIGINT NOT NULL,
                        created_at TIMESTAMPTZ DEFAULT NOW(),
                        updated_at TIMESTAMPTZ DEFAULT NOW()
                    )
                """)
                self._connection.commit()
            finally:
                cursor.close()

    def _row_to_account(self, row) -> Account:
        data = dict(row['data'])
        data['version'] = row['version']
        return Account.from_dict(data)

    def get(self, account_id: str) -> Optional[Account]:
        """Load an account from PostgreSQL"""
        with self._lock:
            cursor = self._connection.cursor()
            try:
                cursor.execute(
                    "SELECT data, version FROM accounts WHERE id = %s", (account_id,)
                )
                row = cursor.fetchone()
                self._connection.commit()
                if row:
                    return self._row_to_account(row)
                return None
            finally:
                cursor.close()

    def add(self, account: Account) -> None:
        """Insert a new account"""
        with self._lock:
            cursor = self._connection.cursor()
            try:
                cursor.execute("""
                    INSERT INTO accounts (id, data, version, created_at, updated_at)
                    VALUES (%s, %s, %s, %s, %s)
                """, (account.id, json.dumps(account.to_dict()), account.version,
                      account.created_at, account.updated_at))
                self._connection.commit()
            except self.psycopg2.IntegrityError:
                self._connection.rollback()
                raise ValueError(f"Account {account.id} already exists") from None
            finally:
                cursor.close()

    def list_accounts(self) -> List[Account]:
        """Load all accounts"""
        with self._lock:
            cursor = self._connection.cursor()
            try:
                cursor.execute("SELECT data, version FROM accounts ORDER BY created_at")
                rows = cursor.fetchall()
                self._connection.commit()
                return [self._row_to_account(row) for row in rows]
            finally:
                cursor.close()

    def conditional_save_all(self, writes: Sequence[VersionedWrite]) -> List[int]:
        """
        Run one version-guarded UPDATE per account inside a single transaction

        Rows are locked in account id order, so two transfers touching the
        same pair of accounts in opposite directions cannot deadlock. Lock
        contention the server aborts anyway is reported as a version conflict.
        """
        _check_distinct(writes)
        ordered = sorted(range(len(writes)), key=lambda i: writes[i][0].id)
        rollback_errors = (
            self.psycopg2.errors.DeadlockDetected,
            self.psycopg2.errors.SerializationFailure,
        )
        with self._lock:
            now = datetime.now(timezone.utc)
            new_versions: List[Optional[int]] = [None] * len(writes)
            conflict = None
            cursor = self._connection.cursor()
            try:
                for index in ordered:
                    account, expected_version = writes[index]
                    new_version = expected_version + 1
                    data = _versioned_payload(account, new_version, now)
                    try:
                        cursor.execute("""
                            UPDATE accounts SET data = %s, version = %s, updated_at = %s
                            WHERE id = %s AND version = %s
                        """, (json.dumps(data), new_version, now, account.id, expected_version))
                    except rollback_errors:
                        self._connection.rollback()
                        logger.warning("Write to account %s aborted by lock contention", account.id)
                        raise ConcurrentModificationError(account.id, expected_version) from None
                    if cursor.rowcount != 1:
                        conflict = (account.id, expected_version)
                        break
                    new_versions[index] = new_version

                if conflict:
                    self._connection.rollback()
                else:
                    self._connection.commit()
            except self.psycopg2.Error:
                self._connection.rollback()
                raise
            finally:
                cursor.close()

        if conflict:
            account_id, expected_version = conflict
            if not self.exists(account_id):
                raise AccountNotFoundError(account_id)
            raise ConcurrentModificationError(account_id, expected_version)
        return new_versions

    def close(self) -> None:
        """Close PostgreSQL connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


def create_account_store(database_url: str) -> AccountStore:
    """
    Build a store from a database URL

    Supports ``memory://``, ``sqlite:///<path>`` (``sqlite:///:memory:``
    for a private in-memory database) and ``postgresql://...``.
    """
    if database_url in ("memory://", ":memory:"):
        return InMemoryAccountStore()

    if database_url.startswith("sqlite:///"):
        path = database_url[len("sqlite:///"):] or ":memory:"
        logger.info("Using SQLite account store at %s", path)
        return SQLiteAccountStore(path)

    if database_url.startswith(("postgresql://", "postgres://")):
        logger.info("Using PostgreSQL account store")
        return PostgreSQLAccountStore(database_url)

    raise ValueError(f"Unsupported database URL: {database_url}")
