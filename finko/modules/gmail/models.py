from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from finko.core.db.base import BaseModel


class BankConnection(BaseModel):
    """A user's connected Gmail mailbox and its push/history state."""

    __tablename__ = "gmail_connections"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    gmail_address: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    refresh_token: Mapped[str] = mapped_column(Text, nullable=False)

    # Last processed Gmail history cursor; never moves backwards
    history_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    watch_expiration: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return f"<BankConnection(user_id={self.user_id}, gmail_address='{self.gmail_address}')>"


class ProcessedEmail(BaseModel):
    """Idempotency marker: the message was fully handled and must not be re-ingested."""

    __tablename__ = "processed_emails"

    gmail_message_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    def __repr__(self) -> str:
        return f"<ProcessedEmail(gmail_message_id='{self.gmail_message_id}')>"
