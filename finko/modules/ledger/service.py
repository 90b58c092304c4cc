import datetime as dt
import logging
from decimal import Decimal
from typing import Any, Dict, Optional, Type

import dateparser
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from finko.core.exceptions import (
    DatabaseError,
    LedgerEntryNotFoundError,
    ValidationError,
)
from finko.modules.ledger.dto import (
    CategoryTotal,
    EntryKind,
    ListEntriesModel,
    SummaryQueryModel,
    SummaryResponse,
)
from finko.modules.ledger.models import Expense, Income, LedgerEntry

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("merchant", "amount", "category", "date")


def model_for(kind: EntryKind) -> Type[LedgerEntry]:
    return Income if kind == "income" else Expense


def _parse_filter_date(value: Optional[str]) -> Optional[dt.date]:
    if not value:
        return None
    parsed = dateparser.parse(value)
    if parsed is None:
        raise ValidationError(f"Could not understand date '{value}'")
    return parsed.date()


def _validate_amount(amount: Any) -> Decimal:
    try:
        amount = Decimal(str(amount))
    except ArithmeticError:
        raise ValidationError("Amount must be a number")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("Amount must be greater than 0")
    return amount


class LedgerService:
    """Expenses and incomes. Every query is scoped to the owning user."""

    def __init__(self):
        self.logger = logger

    async def create_entry(
        self,
        db: AsyncSession,
        user_id: int,
        kind: EntryKind,
        merchant: str,
        amount: Decimal | float | int | str,
        category: str,
        date: dt.date,
    ) -> LedgerEntry:
        amount = _validate_amount(amount)
        model = model_for(kind)
        self.logger.info(f"Creating {kind} for user_id: {user_id}")

        entry = model(
            user_id=user_id,
            merchant=merchant.strip(),
            amount=amount,
            category=category,
            date=date,
        )
        try:
            db.add(entry)
            await db.commit()
            await db.refresh(entry)
        except Exception as e:
            await db.rollback()
            self.logger.error(f"Database error during {kind} creation: {str(e)}")
            raise DatabaseError(f"create {kind}: {str(e)}")

        self.logger.info(f"Created {kind} {entry.id} for user_id: {user_id}")
        return entry

    async def list_entries(
        self, db: AsyncSession, user_id: int, kind: EntryKind, filters: ListEntriesModel
    ) -> list[LedgerEntry]:
        model = model_for(kind)
        start_date = _parse_filter_date(filters.start_date)
        end_date = _parse_filter_date(filters.end_date)

        query = select(model).where(model.user_id == user_id)
        if start_date:
            query = query.where(model.date >= start_date)
        if end_date:
            query = query.where(model.date <= end_date)
        if filters.category:
            query = query.where(model.category == filters.category)
        query = query.order_by(model.date.desc(), model.id.desc())

        result = await db.execute(query)
        return list(result.scalars().all())

    async def get_entry(
        self, db: AsyncSession, user_id: int, kind: EntryKind, entry_id: int
    ) -> LedgerEntry:
        entry = await db.get(model_for(kind), entry_id)
        if entry is None or entry.user_id != user_id:
            self.logger.warning(f"{kind} {entry_id} not found for user_id: {user_id}")
            raise LedgerEntryNotFoundError(kind, entry_id)
        return entry

    async def update_entry(
        self,
        db: AsyncSession,
        user_id: int,
        kind: EntryKind,
        entry_id: int,
        update_data: Dict[str, Any],
    ) -> LedgerEntry:
        self.logger.info(f"Updating {kind} with ID: {entry_id}")
        changes = {
            key: value
            for key, value in update_data.items()
            if key in UPDATABLE_FIELDS and value is not None
        }
        if not changes:
            raise ValidationError("Update data cannot be empty")
        if "amount" in changes:
            changes["amount"] = _validate_amount(changes["amount"])

        entry = await self.get_entry(db, user_id, kind, entry_id)
        try:
            for key, value in changes.items():
                setattr(entry, key, value)
            await db.commit()
            await db.refresh(entry)
        except Exception as e:
            await db.rollback()
            self.logger.error(f"Database error during {kind} update: {str(e)}")
            raise DatabaseError(f"update {kind}: {str(e)}")
        return entry

    async def delete_entry(
        self, db: AsyncSession, user_id: int, kind: EntryKind, entry_id: int
    ) -> None:
        self.logger.info(f"Deleting {kind} with ID: {entry_id}")
        entry = await self.get_entry(db, user_id, kind, entry_id)
        try:
            await db.delete(entry)
            await db.commit()
        except Exception as e:
            await db.rollback()
            self.logger.error(f"Database error during {kind} deletion: {str(e)}")
            raise DatabaseError(f"delete {kind}: {str(e)}")

    async def get_summary(
        self, db: AsyncSession, user_id: int, window: SummaryQueryModel
    ) -> SummaryResponse:
        start_date = _parse_filter_date(window.start_date)
        end_date = _parse_filter_date(window.end_date)

        def scoped(query, model):
            query = query.where(model.user_id == user_id)
            if start_date:
                query = query.where(model.date >= start_date)
            if end_date:
                query = query.where(model.date <= end_date)
            return query

        total_expenses = await db.scalar(
            scoped(select(func.coalesce(func.sum(Expense.amount), 0)), Expense)
        )
        total_incomes = await db.scalar(
            scoped(select(func.coalesce(func.sum(Income.amount), 0)), Income)
        )
        by_category = await db.execute(
            scoped(
                select(Expense.category, func.sum(Expense.amount)), Expense
            )
            .group_by(Expense.category)
            .order_by(func.sum(Expense.amount).desc())
        )

        total_expenses = Decimal(str(total_expenses or 0))
        total_incomes = Decimal(str(total_incomes or 0))
        return SummaryResponse(
            total_expenses=total_expenses,
            total_incomes=total_incomes,
            balance=total_incomes - total_expenses,
            expenses_by_category=[
                CategoryTotal(category=category, total=Decimal(str(total)))
                for category, total in by_category.all()
            ],
        )
