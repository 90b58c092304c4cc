import datetime as dt
from decimal import Decimal
from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from finko.core.db.base import BaseModel


class LedgerEntry(BaseModel):
    """Columns shared by expenses and incomes."""

    __abstract__ = True

    @declared_attr
    def user_id(cls) -> Mapped[int]:
        return mapped_column(
            ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
        )

    merchant: Mapped[str] = mapped_column(String(255), nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    category: Mapped[str] = mapped_column(String(100), nullable=False)

    date: Mapped[dt.date] = mapped_column(Date, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__}(amount={self.amount}, merchant='{self.merchant}', "
            f"user_id={self.user_id})>"
        )


class Expense(LedgerEntry):
    __tablename__ = "expenses"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
        Index("idx_expenses_user_date", "user_id", "date"),
    )


class Income(LedgerEntry):
    __tablename__ = "incomes"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_incomes_amount_positive"),
        Index("idx_incomes_user_date", "user_id", "date"),
    )
