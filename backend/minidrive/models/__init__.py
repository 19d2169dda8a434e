"""SQLAlchemy ORM models for MiniDrive."""

from minidrive.models.base import Base
from minidrive.models.user import User

__all__ = [
    "Base",
    "User",
]
