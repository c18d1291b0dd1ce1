"""Domain-specific SQLAlchemy model package."""

from ..database import Base

from .users import ResetState, User

__all__ = [
    "Base",
    "ResetState",
    "User",
]
