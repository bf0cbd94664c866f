"""SQLite-backed persistence for directory users."""
from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional

from .models import User

logger = logging.getLogger("userdirectory.database")


class UserStoreError(RuntimeError):
    """Raised when the database rejects an operation for an unexpected reason."""


class EmailAlreadyExistsError(UserStoreError):
    """Raised when an insert or update collides with another user's email."""

    def __init__(self, email: str) -> None:
        super().__init__(f"A user with email '{email}' already exists")
        self.email = email


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the application database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "users.sqlite3").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _is_unique_violation(exc: sqlite3.IntegrityError) -> bool:
    return "UNIQUE" in str(exc).upper()


class Database:
    """Simple wrapper around SQLite for persisting users.

    Every operation is a single statement executed on a short-lived
    connection, so one instance can be shared by all requests in the process.
    """

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

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create the users table if it does not already exist."""

        with self._transaction() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    email TEXT UNIQUE NOT NULL,
                    created_at TEXT NOT NULL
                );
                """
            )
        logger.debug("Users table ready in %s", self._path)

    # ------------------------------------------------------------------
    # User management
    # ------------------------------------------------------------------
    def list_users(self) -> List[User]:
        try:
            with self._transaction() as conn:
                rows = conn.execute("SELECT * FROM users ORDER BY id").fetchall()
        except sqlite3.Error as exc:
            raise UserStoreError(str(exc)) from exc
        return [self._row_to_user(row) for row in rows]

    def get_user(self, user_id: int) -> Optional[User]:
        try:
            with self._transaction() as conn:
                row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        except sqlite3.Error as exc:
            raise UserStoreError(str(exc)) from exc
        if row is None:
            return None
        return self._row_to_user(row)

    def create_user(self, name: str, email: str) -> User:
        """Insert a new user and return the stored row."""

        created_at = _current_timestamp()
        try:
            with self._transaction() as conn:
                rows = conn.execute(
                    "INSERT INTO users (name, email, created_at) VALUES (?, ?, ?) RETURNING *",
                    (name, email, _serialize_datetime(created_at)),
                ).fetchall()
        except sqlite3.IntegrityError as exc:
            if _is_unique_violation(exc):
                raise EmailAlreadyExistsError(email) from exc
            raise UserStoreError(str(exc)) from exc
        except sqlite3.Error as exc:
            raise UserStoreError(str(exc)) from exc

        if not rows:
            raise UserStoreError("Failed to load user after creation")
        return self._row_to_user(rows[0])

    def update_user(self, user_id: int, name: str, email: str) -> Optional[User]:
        """Replace the name and email of an existing user.

        Returns ``None`` when no user has the given id.
        """

        try:
            with self._transaction() as conn:
                rows = conn.execute(
                    "UPDATE users SET name = ?, email = ? WHERE id = ? RETURNING *",
                    (name, email, user_id),
                ).fetchall()
        except sqlite3.IntegrityError as exc:
            if _is_unique_violation(exc):
                raise EmailAlreadyExistsError(email) from exc
            raise UserStoreError(str(exc)) from exc
        except sqlite3.Error as exc:
            raise UserStoreError(str(exc)) from exc

        if not rows:
            return None
        return self._row_to_user(rows[0])

    def delete_user(self, user_id: int) -> None:
        # Missing ids are not an error.
        try:
            with self._transaction() as conn:
                conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
        except sqlite3.Error as exc:
            raise UserStoreError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=int(row["id"]),
            name=str(row["name"]),
            email=str(row["email"]),
            created_at=_parse_datetime(str(row["created_at"])),
        )


__all__ = [
    "Database",
    "EmailAlreadyExistsError",
    "UserStoreError",
    "resolve_database_path",
]
