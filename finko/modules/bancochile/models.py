from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from finko.core.db.base import BaseModel


class IdentityKey(BaseModel):
    """Banco de Chile public key registered by a user for webhook routing."""

    __tablename__ = "banco_chile_keys"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    public_key: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    def __repr__(self) -> str:
        return f"<IdentityKey(id={self.id}, user_id={self.user_id})>"
