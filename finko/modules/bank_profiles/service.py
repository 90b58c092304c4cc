import logging
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from finko.core.exceptions import (
    BadRequestError,
    BankProfileNotFoundError,
    DatabaseError,
)
from finko.modules.bank_profiles.dto import (
    CreateBankProfileModel,
    UpdateBankProfileModel,
)
from finko.modules.bank_profiles.models import BankEmailProfile

logger = logging.getLogger(__name__)


def _clean_patterns(patterns: Optional[list[str]]) -> list[str]:
    cleaned = [p.strip() for p in patterns or [] if isinstance(p, str) and p.strip()]
    if not cleaned:
        raise BadRequestError("senderPatterns must contain at least one pattern")
    return cleaned


def _required_text(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise BadRequestError(f"{field} is required")
    return value.strip()


class BankProfilesService:
    def __init__(self):
        self.logger = logger

    async def list_profiles(self, db: AsyncSession) -> list[BankEmailProfile]:
        """Storage order is also matching precedence."""
        result = await db.execute(
            select(BankEmailProfile).order_by(
                BankEmailProfile.bank_name, BankEmailProfile.id
            )
        )
        return list(result.scalars().all())

    async def get_profile(self, db: AsyncSession, profile_id: int) -> BankEmailProfile:
        profile = await db.get(BankEmailProfile, profile_id)
        if profile is None:
            raise BankProfileNotFoundError(profile_id)
        return profile

    async def create_profile(
        self, db: AsyncSession, data: CreateBankProfileModel
    ) -> BankEmailProfile:
        profile = BankEmailProfile(
            bank_name=_required_text(data.bank_name, "bankName"),
            sender_patterns=_clean_patterns(data.sender_patterns),
            extraction_instructions=_required_text(
                data.extraction_instructions, "extractionInstructions"
            ),
            example_image_url=data.example_image_url,
        )
        try:
            db.add(profile)
            await db.commit()
            await db.refresh(profile)
        except Exception as e:
            await db.rollback()
            self.logger.error(f"Database error during bank profile creation: {str(e)}")
            raise DatabaseError(f"create bank profile: {str(e)}")

        self.logger.info(f"Created bank profile {profile.id} for {profile.bank_name}")
        return profile

    async def update_profile(
        self, db: AsyncSession, profile_id: int, data: UpdateBankProfileModel
    ) -> BankEmailProfile:
        changes: Dict[str, Any] = {}
        if data.bank_name is not None:
            changes["bank_name"] = _required_text(data.bank_name, "bankName")
        if data.sender_patterns is not None:
            changes["sender_patterns"] = _clean_patterns(data.sender_patterns)
        if data.extraction_instructions is not None:
            changes["extraction_instructions"] = _required_text(
                data.extraction_instructions, "extractionInstructions"
            )
        if "example_image_url" in data.model_fields_set:
            changes["example_image_url"] = data.example_image_url

        profile = await self.get_profile(db, profile_id)
        try:
            for key, value in changes.items():
                setattr(profile, key, value)
            await db.commit()
            await db.refresh(profile)
        except Exception as e:
            await db.rollback()
            self.logger.error(f"Database error during bank profile update: {str(e)}")
            raise DatabaseError(f"update bank profile: {str(e)}")
        return profile

    async def delete_profile(self, db: AsyncSession, profile_id: int) -> None:
        profile = await self.get_profile(db, profile_id)
        await db.delete(profile)
        await db.commit()
        self.logger.info(f"Deleted bank profile {profile_id}")
