"""Domain models for the user directory."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class User:
    """Represents a user record stored in the directory database."""

    id: int
    name: str
    email: str
    created_at: datetime


__all__ = ["User"]
