"""SQLite-backed persistence for user accounts."""
from __future__ import annotations

import secrets
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from passlib.context import CryptContext

from .models import User


BCRYPT_ROUNDS = 10

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)


class DuplicateUserError(ValueError):
    """Raised when an email address is already registered."""

    def __init__(self, message: str = "User with this email already exists") -> None:
        super().__init__(message)


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _generate_user_id() -> str:
    return secrets.token_hex(12)


def hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def check_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    try:
        return _pwd_context.verify(password, hashed)
    except (ValueError, TypeError):
        return False


class Database:
    """Simple wrapper around SQLite for persisting user records."""

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    name TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                """
            )

    # ------------------------------------------------------------------
    # User management
    # ------------------------------------------------------------------
    def create_user(self, email: str, password: str, name: Optional[str] = None) -> User:
        """Create a new user with a bcrypt-hashed password.

        The returned record still carries the password hash; callers must pass
        it through :func:`autocall.models.get_safe_user` before returning it to a
        client.
        """

        if not password:
            raise ValueError("Password must not be empty")

        if self.get_user_by_email(email) is not None:
            raise DuplicateUserError()

        now = _current_timestamp()
        user = User(
            id=_generate_user_id(),
            email=email,
            password_hash=hash_password(password),
            name=name,
            created_at=now,
            updated_at=now,
        )

        with self._connect() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO users (id, email, password_hash, name, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        user.id,
                        user.email,
                        user.password_hash,
                        user.name,
                        _serialize_datetime(user.created_at),
                        _serialize_datetime(user.updated_at),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                # Lost a race against a concurrent registration for the same email.
                raise DuplicateUserError() from exc

        return user

    def get_user(self, user_id: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def list_users(self) -> List[User]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY created_at").fetchall()
        return [self._row_to_user(row) for row in rows]

    def verify_password(self, user: User, candidate: str) -> bool:
        """Return ``True`` if ``candidate`` matches the stored hash for ``user``."""

        return check_password(candidate, user.password_hash)

    def update_user(self, user_id: str, **fields: object) -> Optional[User]:
        """Apply a partial update; ``password`` is re-hashed before it is stored."""

        allowed = {"email": "email", "name": "name", "password": "password_hash"}
        unknown = set(fields) - set(allowed)
        if unknown:
            raise ValueError(f"Unsupported user fields: {', '.join(sorted(unknown))}")

        updates: List[str] = []
        values: List[object] = []
        for key, column in allowed.items():
            if key not in fields:
                continue
            value = fields[key]
            if key == "password":
                if not value:
                    raise ValueError("Password must not be empty")
                value = hash_password(str(value))
            elif key == "email" and not value:
                raise ValueError("Email must not be empty")
            updates.append(f"{column} = ?")
            values.append(value)

        updates.append("updated_at = ?")
        values.append(_serialize_datetime(_current_timestamp()))
        values.append(user_id)
        query = f"UPDATE users SET {', '.join(updates)} WHERE id = ?"

        with self._connect() as conn:
            try:
                cursor = conn.execute(query, values)
            except sqlite3.IntegrityError as exc:
                raise DuplicateUserError() from exc
            if cursor.rowcount == 0:
                return None

        return self.get_user(user_id)

    def delete_user(self, user_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=str(row["id"]),
            email=str(row["email"]),
            password_hash=str(row["password_hash"]),
            name=row["name"],
            created_at=_parse_datetime(str(row["created_at"])),
            updated_at=_parse_datetime(str(row["updated_at"])),
        )


__all__ = ["BCRYPT_ROUNDS", "Database", "DuplicateUserError", "check_password", "hash_password"]
