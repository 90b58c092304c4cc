import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from finko.core.exceptions import (
    BadRequestError,
    ConflictError,
    DatabaseError,
    IdentityKeyNotFoundError,
)
from finko.modules.bancochile.models import IdentityKey

logger = logging.getLogger(__name__)

KEY_TAKEN_MESSAGE = "This key is already associated with another user"


class IdentityKeyService:
    def __init__(self):
        self.logger = logger

    async def associate_key(
        self, db: AsyncSession, user_id: int, public_key: str
    ) -> IdentityKey:
        public_key = (public_key or "").strip()
        if not public_key:
            raise BadRequestError("publicKey is required")

        existing = await self._get_by_key(db, public_key)
        if existing is not None:
            if existing.user_id != user_id:
                raise ConflictError(KEY_TAKEN_MESSAGE)
            return existing

        key = IdentityKey(user_id=user_id, public_key=public_key)
        try:
            db.add(key)
            await db.commit()
            await db.refresh(key)
        except IntegrityError:
            # Registered concurrently by someone else
            await db.rollback()
            raise ConflictError(KEY_TAKEN_MESSAGE)
        except Exception as e:
            await db.rollback()
            self.logger.error(f"Database error during key association: {str(e)}")
            raise DatabaseError(f"associate key: {str(e)}")

        self.logger.info(f"Associated Banco de Chile key {key.id} with user_id: {user_id}")
        return key

    async def find_user_by_key(self, db: AsyncSession, public_key: str) -> Optional[int]:
        key = await self._get_by_key(db, public_key.strip())
        return key.user_id if key else None

    async def list_user_keys(self, db: AsyncSession, user_id: int) -> list[IdentityKey]:
        result = await db.execute(
            select(IdentityKey)
            .where(IdentityKey.user_id == user_id)
            .order_by(IdentityKey.created_at.desc(), IdentityKey.id.desc())
        )
        return list(result.scalars().all())

    async def remove_key(self, db: AsyncSession, user_id: int, key_id: int) -> None:
        key = await db.get(IdentityKey, key_id)
        if key is None or key.user_id != user_id:
            raise IdentityKeyNotFoundError(key_id)
        await db.delete(key)
        await db.commit()
        self.logger.info(f"Removed Banco de Chile key {key_id} for user_id: {user_id}")

    async def _get_by_key(self, db: AsyncSession, public_key: str) -> Optional[IdentityKey]:
        result = await db.execute(
            select(IdentityKey).where(IdentityKey.public_key == public_key)
        )
        return result.scalar_one_or_none()
