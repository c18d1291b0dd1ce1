"""Router modules for the password reset API."""

from .password_reset import router as password_reset_router

__all__ = ["password_reset_router"]
