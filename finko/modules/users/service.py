import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from finko.modules.users.models import User

logger = logging.getLogger(__name__)


class UsersService:
    async def get_by_id(self, db: AsyncSession, user_id: int) -> Optional[User]:
        return await db.get(User, user_id)

    async def find_id_by_email(self, db: AsyncSession, email: str) -> Optional[int]:
        """Exact, case-insensitive lookup; blank input never matches."""
        email = (email or "").strip().lower()
        if not email:
            return None
        result = await db.execute(select(User.id).where(func.lower(User.email) == email))
        user_id = result.scalar_one_or_none()
        logger.debug(f"Email lookup for {email}: {'found' if user_id else 'missing'}")
        return user_id
