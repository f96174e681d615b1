import sqlite3
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from ...domain.models import Account, CodePurpose, PendingCode, Profile, normalize_email
from ...domain.ports.clock import Clock
from ...domain.ports.persistence import CredentialStore, DuplicateEmailError
from ..clock import SystemClock

_CODE_COLUMNS: Dict[CodePurpose, Tuple[str, str]] = {
    CodePurpose.EMAIL_VERIFICATION: ("email_code_hash", "email_code_expires_at"),
    CodePurpose.PASSWORD_RESET: ("reset_code_hash", "reset_code_expires_at"),
}

_PROFILE_COLUMNS = frozenset({"display_name", "first_name", "last_name", "avatar_url"})


class SQLiteCredentialStore(CredentialStore):
    """SQLite-backed implementation of the credential store."""

    def __init__(self, path: Path, clock: Optional[Clock] = None) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._clock = clock or SystemClock()
        self._initialize()

    def _initialize(self) -> None:
        with self._conn:
            self._conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS accounts (
                    id TEXT PRIMARY KEY,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    display_name TEXT,
                    email_verified INTEGER NOT NULL DEFAULT 0,
                    email_code_hash TEXT,
                    email_code_expires_at TEXT,
                    reset_code_hash TEXT,
                    reset_code_expires_at TEXT,
                    first_name TEXT,
                    last_name TEXT,
                    avatar_url TEXT,
                    last_login_at TEXT,
                    failed_login_count INTEGER NOT NULL DEFAULT 0,
                    locked_until TEXT,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_accounts_email_verified
                    ON accounts(email, email_verified);

                CREATE INDEX IF NOT EXISTS idx_accounts_email_code_expiry
                    ON accounts(email_code_expires_at);

                CREATE INDEX IF NOT EXISTS idx_accounts_reset_code_expiry
                    ON accounts(reset_code_expires_at);
                """
            )

    def close(self) -> None:
        self._conn.close()

    def health_check(self) -> Dict[str, Any]:
        started = time.perf_counter()
        try:
            with self._lock:
                self._conn.execute("SELECT 1").fetchone()
        except sqlite3.Error as exc:
            return {"status": "unhealthy", "error": str(exc)}
        return {"status": "healthy", "response_time_ms": round((time.perf_counter() - started) * 1000, 2)}

    # Lookups ---------------------------------------------------------------
    def find_by_email(self, email: str) -> Optional[Account]:
        with self._lock:
            cur = self._conn.execute(
                "SELECT * FROM accounts WHERE email = ?", (normalize_email(email),)
            )
            row = cur.fetchone()
        return self._row_to_account(row) if row else None

    def find_by_id(self, account_id: str) -> Optional[Account]:
        with self._lock:
            cur = self._conn.execute("SELECT * FROM accounts WHERE id = ?", (account_id,))
            row = cur.fetchone()
        return self._row_to_account(row) if row else None

    # Writes ----------------------------------------------------------------
    def insert(self, account: Account) -> Account:
        account.email = normalize_email(account.email)
        values = self._account_to_values(account)
        columns = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    f"INSERT INTO accounts ({columns}) VALUES ({placeholders})",
                    tuple(values.values()),
                )
        except sqlite3.IntegrityError as exc:
            raise DuplicateEmailError(account.email) from exc
        return account

    def set_pending_code(
        self,
        account_id: str,
        purpose: CodePurpose,
        code_hash: str,
        expires_at: datetime,
    ) -> bool:
        hash_column, expiry_column = _CODE_COLUMNS[purpose]
        condition = "AND email_verified = 0" if purpose is CodePurpose.EMAIL_VERIFICATION else ""
        with self._lock, self._conn:
            cur = self._conn.execute(
                f"UPDATE accounts SET {hash_column} = ?, {expiry_column} = ?, updated_at = ? "
                f"WHERE id = ? AND is_active = 1 {condition}",
                (code_hash, self._serialize(expires_at), self._now(), account_id),
            )
        return cur.rowcount == 1

    def record_failed_login(
        self,
        account_id: str,
        now: datetime,
        max_attempts: int,
        lock_until: datetime,
    ) -> int:
        timestamp = self._serialize(now)
        # A lapsed lock restarts the count at 1; an active lock is never extended.
        next_count = (
            "CASE WHEN locked_until IS NOT NULL AND locked_until <= :now "
            "THEN 1 ELSE failed_login_count + 1 END"
        )
        with self._lock, self._conn:
            cur = self._conn.execute(
                f"""
                UPDATE accounts
                SET failed_login_count = {next_count},
                    locked_until = CASE
                        WHEN locked_until IS NOT NULL AND locked_until > :now THEN locked_until
                        WHEN {next_count} >= :max_attempts THEN :lock_until
                        ELSE NULL
                    END,
                    updated_at = :now
                WHERE id = :id AND is_active = 1
                """,
                {
                    "now": timestamp,
                    "max_attempts": max_attempts,
                    "lock_until": self._serialize(lock_until),
                    "id": account_id,
                },
            )
            if cur.rowcount != 1:
                return 0
            row = self._conn.execute(
                "SELECT failed_login_count FROM accounts WHERE id = ?", (account_id,)
            ).fetchone()
        return row["failed_login_count"]

    def record_successful_login(self, account_id: str, password_hash: str, now: datetime) -> bool:
        timestamp = self._serialize(now)
        with self._lock, self._conn:
            cur = self._conn.execute(
                """
                UPDATE accounts
                SET failed_login_count = 0, locked_until = NULL,
                    last_login_at = ?, updated_at = ?
                WHERE id = ? AND is_active = 1 AND email_verified = 1
                    AND password_hash = ?
                    AND (locked_until IS NULL OR locked_until <= ?)
                """,
                (timestamp, timestamp, account_id, password_hash, timestamp),
            )
        return cur.rowcount == 1

    def update_profile(self, account_id: str, changes: Dict[str, Optional[str]]) -> bool:
        unknown = set(changes) - _PROFILE_COLUMNS
        if unknown:
            raise ValueError(f"Not profile columns: {', '.join(sorted(unknown))}")
        assignments = "".join(f"{column} = ?, " for column in changes)
        with self._lock, self._conn:
            cur = self._conn.execute(
                f"UPDATE accounts SET {assignments}updated_at = ? WHERE id = ? AND is_active = 1",
                (*changes.values(), self._now(), account_id),
            )
        return cur.rowcount == 1

    def deactivate(self, account_id: str) -> bool:
        with self._lock, self._conn:
            cur = self._conn.execute(
                "UPDATE accounts SET is_active = 0, updated_at = ? WHERE id = ? AND is_active = 1",
                (self._now(), account_id),
            )
        return cur.rowcount == 1

    def mark_email_verified(self, account_id: str) -> bool:
        with self._lock, self._conn:
            cur = self._conn.execute(
                """
                UPDATE accounts
                SET email_verified = 1, email_code_hash = NULL,
                    email_code_expires_at = NULL, updated_at = ?
                WHERE id = ?
                """,
                (self._now(), account_id),
            )
        return cur.rowcount == 1

    def set_password_hash(self, account_id: str, password_hash: str) -> bool:
        with self._lock, self._conn:
            cur = self._conn.execute(
                "UPDATE accounts SET password_hash = ?, updated_at = ? WHERE id = ?",
                (password_hash, self._now(), account_id),
            )
        return cur.rowcount == 1

    def consume_email_code(self, account_id: str, code_hash: str, now: datetime) -> bool:
        timestamp = self._serialize(now)
        with self._lock, self._conn:
            cur = self._conn.execute(
                """
                UPDATE accounts
                SET email_verified = 1, email_code_hash = NULL,
                    email_code_expires_at = NULL, updated_at = ?
                WHERE id = ? AND is_active = 1 AND email_verified = 0
                    AND email_code_hash = ? AND email_code_expires_at >= ?
                """,
                (timestamp, account_id, code_hash, timestamp),
            )
        return cur.rowcount == 1

    def consume_reset_code(
        self,
        account_id: str,
        code_hash: str,
        now: datetime,
        new_password_hash: str,
    ) -> bool:
        timestamp = self._serialize(now)
        with self._lock, self._conn:
            cur = self._conn.execute(
                """
                UPDATE accounts
                SET password_hash = ?, reset_code_hash = NULL,
                    reset_code_expires_at = NULL, failed_login_count = 0,
                    locked_until = NULL, updated_at = ?
                WHERE id = ? AND is_active = 1
                    AND reset_code_hash = ? AND reset_code_expires_at >= ?
                """,
                (new_password_hash, timestamp, account_id, code_hash, timestamp),
            )
        return cur.rowcount == 1

    def clear_pending_code(
        self, account_id: str, purpose: CodePurpose, code_hash: Optional[str] = None
    ) -> None:
        hash_column, expiry_column = _CODE_COLUMNS[purpose]
        query = (
            f"UPDATE accounts SET {hash_column} = NULL, {expiry_column} = NULL, "
            "updated_at = ? WHERE id = ?"
        )
        params: Tuple[Any, ...] = (self._now(), account_id)
        if code_hash is not None:
            query += f" AND {hash_column} = ?"
            params += (code_hash,)
        with self._lock, self._conn:
            self._conn.execute(query, params)

    def purge_expired_codes(self, now: datetime) -> int:
        timestamp = self._serialize(now)
        purged = 0
        with self._lock, self._conn:
            for hash_column, expiry_column in _CODE_COLUMNS.values():
                cur = self._conn.execute(
                    f"UPDATE accounts SET {hash_column} = NULL, {expiry_column} = NULL "
                    f"WHERE {expiry_column} IS NOT NULL AND {expiry_column} < ?",
                    (timestamp,),
                )
                purged += cur.rowcount
        return purged

    # Helpers ----------------------------------------------------------------
    def _now(self) -> Optional[str]:
        return self._serialize(self._clock.now())

    @staticmethod
    def _serialize(value: Optional[datetime]) -> Optional[str]:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        # Fixed width so lexical comparison in SQL is chronological.
        return value.astimezone(timezone.utc).isoformat(timespec="microseconds")

    @staticmethod
    def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
        if not value:
            return None
        result = datetime.fromisoformat(value)
        if result.tzinfo is None:
            return result.replace(tzinfo=timezone.utc)
        return result.astimezone(timezone.utc)

    def _account_to_values(self, account: Account) -> Dict[str, Any]:
        email_code = account.pending_email_code
        reset_code = account.pending_reset_code
        return {
            "id": account.id,
            "email": account.email,
            "password_hash": account.password_hash,
            "display_name": account.display_name,
            "email_verified": int(account.email_verified),
            "email_code_hash": email_code.code_hash if email_code else None,
            "email_code_expires_at": self._serialize(email_code.expires_at) if email_code else None,
            "reset_code_hash": reset_code.code_hash if reset_code else None,
            "reset_code_expires_at": self._serialize(reset_code.expires_at) if reset_code else None,
            "first_name": account.profile.first_name,
            "last_name": account.profile.last_name,
            "avatar_url": account.profile.avatar_url,
            "last_login_at": self._serialize(account.last_login_at),
            "failed_login_count": account.failed_login_count,
            "locked_until": self._serialize(account.locked_until),
            "is_active": int(account.is_active),
            "created_at": self._serialize(account.created_at),
            "updated_at": self._serialize(account.updated_at),
        }

    def _row_to_pending(self, row: sqlite3.Row, purpose: CodePurpose) -> Optional[PendingCode]:
        hash_column, expiry_column = _CODE_COLUMNS[purpose]
        if not row[hash_column] or not row[expiry_column]:
            return None
        return PendingCode(
            code_hash=row[hash_column],
            expires_at=self._parse_datetime(row[expiry_column]),
        )

    def _row_to_account(self, row: sqlite3.Row) -> Account:
        return Account(
            id=row["id"],
            email=row["email"],
            password_hash=row["password_hash"],
            display_name=row["display_name"],
            email_verified=bool(row["email_verified"]),
            pending_email_code=self._row_to_pending(row, CodePurpose.EMAIL_VERIFICATION),
            pending_reset_code=self._row_to_pending(row, CodePurpose.PASSWORD_RESET),
            profile=Profile(
                first_name=row["first_name"],
                last_name=row["last_name"],
                avatar_url=row["avatar_url"],
            ),
            last_login_at=self._parse_datetime(row["last_login_at"]),
            failed_login_count=row["failed_login_count"],
            locked_until=self._parse_datetime(row["locked_until"]),
            is_active=bool(row["is_active"]),
            created_at=self._parse_datetime(row["created_at"]),
            updated_at=self._parse_datetime(row["updated_at"]),
        )
