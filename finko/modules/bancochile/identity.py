import logging
import re
from typing import Any, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from finko.core.config import config
from finko.modules.bancochile.service import IdentityKeyService
from finko.modules.users.service import UsersService

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _event_data(event: Mapping[str, Any]) -> Mapping[str, Any]:
    data = event.get("data")
    return data if isinstance(data, Mapping) else {}


def _string(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def extract_public_key(event: Mapping[str, Any]) -> Optional[str]:
    data = _event_data(event)
    key = _string(data.get("publicKey")) or _string(data.get("accountKey"))
    if key:
        return key
    subject = _string(event.get("subject"))
    if subject and "@" not in subject:
        return subject
    return None


def extract_email(
    event: Mapping[str, Any], query_email: Optional[str] = None
) -> Optional[str]:
    data = _event_data(event)
    email = _string(data.get("email")) or _string(data.get("userEmail"))
    if email:
        return email
    subject = _string(event.get("subject"))
    if subject and EMAIL_PATTERN.match(subject):
        return subject
    return _string(query_email) or _string(config.bancochile_user_email)


class IdentityResolver:
    """Maps a webhook event to the user it belongs to: public key first, then email."""

    def __init__(self, keys_service: IdentityKeyService, users_service: UsersService):
        self.keys_service = keys_service
        self.users_service = users_service

    async def resolve(
        self,
        db: AsyncSession,
        event: Mapping[str, Any],
        query_email: Optional[str] = None,
    ) -> Optional[int]:
        public_key = extract_public_key(event)
        if public_key:
            user_id = await self.keys_service.find_user_by_key(db, public_key)
            if user_id is not None:
                return user_id
            logger.info(f"Public key on event {event.get('id')} is not registered")

        email = extract_email(event, query_email)
        if email:
            user_id = await self.users_service.find_id_by_email(db, email)
            if user_id is not None:
                return user_id

        return None
