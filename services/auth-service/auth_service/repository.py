"""Account persistence: the store contract used by the core and its Postgres adapter."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol

import psycopg
from psycopg import errors as pg_errors
from psycopg.rows import tuple_row
from psycopg_pool import ConnectionPool

from .domain.account import Account, Role
from .errors import PersistenceError, UniquenessViolation

logger = logging.getLogger(__name__)


class AccountStore(Protocol):
    """Narrow persistence contract consumed by the directory and session issuer.

    Emails passed in are already normalised. ``save`` inserts or updates by
    ``account_id`` and raises :class:`UniquenessViolation` when a unique
    constraint on email or phone is broken, including by a concurrent writer.
    """

    def exists_by_email(self, email: str) -> bool: ...

    def exists_by_phone(self, phone: str) -> bool: ...

    def find_by_email(self, email: str) -> Account | None: ...

    def find_by_email_and_active(self, email: str) -> Account | None: ...

    def find_by_id(self, account_id: str) -> Account | None: ...

    def save(self, account: Account) -> Account: ...

    def record_login(
        self, account_id: str, at: datetime, password_hash: str | None = None
    ) -> None: ...


_COLUMNS = (
    "account_id, email, password_hash, name, role, created_at, updated_at, "
    "phone, is_active, is_verified, last_login_at"
)

# Constraint names from db/schema.sql mapped to the field they protect.
_CONSTRAINT_FIELDS = {
    "accounts_email_key": "email",
    "accounts_phone_key": "phone",
}


class PostgresAccountStore:
    """Postgres-backed account persistence."""

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    def exists_by_email(self, email: str) -> bool:
        return self._exists("SELECT 1 FROM auth.accounts WHERE lower(email) = %s", email)

    def exists_by_phone(self, phone: str) -> bool:
        return self._exists("SELECT 1 FROM auth.accounts WHERE phone = %s", phone)

    def find_by_email(self, email: str) -> Account | None:
        return self._fetch_one(
            f"SELECT {_COLUMNS} FROM auth.accounts WHERE lower(email) = %s", (email,)
        )

    def find_by_email_and_active(self, email: str) -> Account | None:
        return self._fetch_one(
            f"SELECT {_COLUMNS} FROM auth.accounts WHERE lower(email) = %s AND is_active",
            (email,),
        )

    def find_by_id(self, account_id: str) -> Account | None:
        return self._fetch_one(
            f"SELECT {_COLUMNS} FROM auth.accounts WHERE account_id = %s", (account_id,)
        )

    def save(self, account: Account) -> Account:
        """Insert or update ``account`` and return the stored row."""
        params = (
            account.account_id,
            account.email,
            account.password_hash,
            account.name,
            account.role.value,
            account.created_at,
            account.updated_at,
            account.phone,
            account.is_active,
            account.is_verified,
            account.last_login_at,
        )
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        f"""
                        INSERT INTO auth.accounts ({_COLUMNS})
                        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                        ON CONFLICT (account_id) DO UPDATE SET
                            name = EXCLUDED.name,
                            phone = EXCLUDED.phone,
                            password_hash = EXCLUDED.password_hash,
                            is_active = EXCLUDED.is_active,
                            is_verified = EXCLUDED.is_verified,
                            updated_at = EXCLUDED.updated_at,
                            last_login_at = EXCLUDED.last_login_at
                        RETURNING {_COLUMNS}
                        """,
                        params,
                    )
                    row = cur.fetchone()
                conn.commit()
        except pg_errors.UniqueViolation as exc:
            constraint = exc.diag.constraint_name or ""
            field = _CONSTRAINT_FIELDS.get(constraint, "email")
            logger.info("save rejected by unique constraint %s", constraint)
            raise UniquenessViolation(field) from exc
        except psycopg.Error as exc:
            logger.exception("account store write failed")
            raise PersistenceError() from exc
        return self._map_record(row)

    def record_login(
        self, account_id: str, at: datetime, password_hash: str | None = None
    ) -> None:
        """Stamp a successful login, optionally swapping in an upgraded hash.

        Only ``last_login_at``, ``updated_at`` and ``password_hash`` are written.
        """
        query = "UPDATE auth.accounts SET last_login_at = %s, updated_at = %s"
        params: tuple = (at, at)
        if password_hash is not None:
            query += ", password_hash = %s"
            params += (password_hash,)
        query += " WHERE account_id = %s"
        params += (account_id,)
        try:
            with self._pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, params)
                conn.commit()
        except psycopg.Error as exc:
            logger.exception("account store write failed")
            raise PersistenceError() from exc

    def _exists(self, query: str, value: str) -> bool:
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(query, (value,))
                    return cur.fetchone() is not None
        except psycopg.Error as exc:
            logger.exception("account store read failed")
            raise PersistenceError() from exc

    def _fetch_one(self, query: str, params: tuple) -> Account | None:
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(query, params)
                    row = cur.fetchone()
        except psycopg.Error as exc:
            logger.exception("account store read failed")
            raise PersistenceError() from exc
        if not row:
            return None
        return self._map_record(row)

    def _map_record(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            account_id=str(row[0]),
            email=row[1],
            password_hash=row[2],
            name=row[3],
            role=Role(row[4]),
            created_at=row[5],
            updated_at=row[6],
            phone=row[7],
            is_active=row[8],
            is_verified=row[9],
            last_login_at=row[10],
        )
