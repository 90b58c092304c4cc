from typing import Optional

from sqlalchemy import JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from finko.core.db.base import BaseModel


class BankEmailProfile(BaseModel):
    """Sender patterns and extraction guidance for one bank's notification emails."""

    __tablename__ = "bank_email_configs"

    bank_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    # Ordered substrings, matched case-insensitively against the From header
    sender_patterns: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    extraction_instructions: Mapped[str] = mapped_column(Text, nullable=False)

    example_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<BankEmailProfile(id={self.id}, bank_name='{self.bank_name}')>"
