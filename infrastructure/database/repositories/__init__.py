"""Repository facades keeping SQL in the infrastructure layer."""

from infrastructure.database.repositories.auth import AuthRepository

__all__ = ["AuthRepository"]
