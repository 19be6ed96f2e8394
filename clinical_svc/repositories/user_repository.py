"""
Repository for system users (providers and staff).
"""
import asyncio
from typing import Optional

from core.errors import UserErrors
from core.result import Err, Ok, Result
from models import User
from repositories.base import GenericRepository
from storage.database import Database


class UserRepository(GenericRepository[User]):
    """CRUD for users plus lookup by login email."""

    def __init__(self, db: Database):
        super().__init__(db, User)

    async def get_by_email(
        self,
        email: str,
        cancellation: Optional[asyncio.Event] = None,
    ) -> Result[User]:
        """
        Get a user by email, compared case-insensitively.

        Returns:
            Ok(User), or Err(User.NotFound) if no user has this email.
        """
        result = await self.find_first(
            "LOWER(email) = ?", (email.strip().lower(),), cancellation=cancellation
        )
        if result.is_err():
            return result
        if result.value is None:
            return Err(UserErrors.NOT_FOUND)
        return Ok(result.value)
