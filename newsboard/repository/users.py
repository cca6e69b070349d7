"""
Account repository for dashboard sign-in.

Connects to PostgreSQL when NEWSBOARD_ACCOUNTS_DB_URL is set. Falls back
to in-memory storage when no database is configured or the connection
drops, so a single-screen deployment needs no database server.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any

import psycopg
from psycopg import OperationalError
from psycopg.rows import dict_row

from newsboard.config import settings
from newsboard.domain import Identity
from newsboard.exceptions import DatabaseError, ValidationError

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS newsboard_accounts (
    uid TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    is_admin BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
)
"""


@dataclass
class Account:
    uid: str
    email: str
    password_hash: str
    is_admin: bool
    created_at: str

    def identity(self) -> Identity:
        return Identity(uid=self.uid, email=self.email, is_admin=self.is_admin)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Account":
        created = row.get("created_at")
        return cls(
            uid=row["uid"],
            email=row["email"],
            password_hash=row["password_hash"],
            is_admin=bool(row.get("is_admin")),
            created_at=created.isoformat() if isinstance(created, datetime) else str(created or ""),
        )


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class AccountRepo:
    """
    Repository for admin dashboard accounts.

    Uses PostgreSQL via psycopg. Falls back to in-memory storage if the
    database is unavailable.
    """

    def __init__(self, db_url: str | None = None) -> None:
        self._db_url = db_url if db_url is not None else settings.accounts_db_url
        self._in_memory: dict[str, Account] = {}
        self._lock = threading.Lock()
        self._use_db = bool(self._db_url) and self._test_connection()

    @property
    def uses_database(self) -> bool:
        return self._use_db

    def _test_connection(self) -> bool:
        """Test database connection and create the table, fall back to in-memory if failed."""
        try:
            with psycopg.connect(self._db_url, row_factory=dict_row) as conn:
                with conn.cursor() as cur:
                    cur.execute(_SCHEMA)
            logger.info("AccountRepo: Connected to PostgreSQL for accounts")
            return True
        except OperationalError as e:
            logger.warning("AccountRepo: DB connection failed, using in-memory storage: %s", e)
            return False
        except OSError as e:
            logger.warning("AccountRepo: Network error, using in-memory storage: %s", e)
            return False

    def _execute(self, sql: str, params: tuple = (), fetch: bool = False) -> list[dict[str, Any]] | None:
        """
        Execute SQL with connection management.

        None means the DB is unavailable; any other database error raises
        DatabaseError.
        """
        if not self._use_db:
            return None

        try:
            with psycopg.connect(self._db_url, row_factory=dict_row) as conn:
                conn.autocommit = True
                with conn.cursor() as cur:
                    cur.execute(sql, params)
                    if fetch:
                        return cur.fetchall()
                    return []
        except OperationalError as e:
            logger.warning("AccountRepo: DB connection lost, falling back to in-memory: %s", e)
            self._use_db = False
            return None
        except OSError as e:
            logger.warning("AccountRepo: Network error, falling back to in-memory: %s", e)
            self._use_db = False
            return None
        except psycopg.Error as e:
            raise DatabaseError(
                f"Account query failed: {e}",
                operation=sql.split(None, 1)[0].lower(),
                table="newsboard_accounts",
            ) from e

    def get_by_email(self, email: str) -> Account | None:
        email = normalize_email(email)
        if not email:
            return None

        rows = self._execute(
            "SELECT uid, email, password_hash, is_admin, created_at FROM newsboard_accounts WHERE email = %s",
            (email,),
            fetch=True,
        )
        if rows is None:
            with self._lock:
                return next((a for a in self._in_memory.values() if a.email == email), None)
        return Account.from_row(rows[0]) if rows else None

    def get_by_uid(self, uid: str) -> Account | None:
        if not uid:
            return None

        rows = self._execute(
            "SELECT uid, email, password_hash, is_admin, created_at FROM newsboard_accounts WHERE uid = %s",
            (uid,),
            fetch=True,
        )
        if rows is None:
            with self._lock:
                return self._in_memory.get(uid)
        return Account.from_row(rows[0]) if rows else None

    def create_account(self, email: str, password_hash: str, *, is_admin: bool = False) -> Account:
        email = normalize_email(email)
        if not email or "@" not in email:
            raise ValidationError("A valid email address is required.", field="email")
        if self.get_by_email(email) is not None:
            raise ValidationError("An account with this email already exists.", field="email")

        account = Account(
            uid=uuid.uuid4().hex,
            email=email,
            password_hash=password_hash,
            is_admin=is_admin,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        rows = self._execute(
            "INSERT INTO newsboard_accounts (uid, email, password_hash, is_admin) VALUES (%s, %s, %s, %s)",
            (account.uid, account.email, account.password_hash, account.is_admin),
        )
        if rows is None:
            with self._lock:
                self._in_memory[account.uid] = account
        logger.info("Account created", extra={"user_id": account.uid, "is_admin": is_admin})
        return account

    def set_admin(self, uid: str, is_admin: bool) -> Account | None:
        account = self.get_by_uid(uid)
        if account is None:
            return None
        updated = replace(account, is_admin=is_admin)
        rows = self._execute("UPDATE newsboard_accounts SET is_admin = %s WHERE uid = %s", (is_admin, uid))
        if rows is None:
            with self._lock:
                self._in_memory[uid] = updated
        return updated

    def set_password_hash(self, uid: str, password_hash: str) -> Account | None:
        account = self.get_by_uid(uid)
        if account is None:
            return None
        updated = replace(account, password_hash=password_hash)
        rows = self._execute("UPDATE newsboard_accounts SET password_hash = %s WHERE uid = %s", (password_hash, uid))
        if rows is None:
            with self._lock:
                self._in_memory[uid] = updated
        return updated
