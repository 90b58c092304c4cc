import datetime as dt
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

EntryKind = Literal["expense", "income"]


class CreateEntryModel(BaseModel):
    merchant: str = Field(..., min_length=1, description="Merchant or payer name")
    amount: Decimal = Field(..., description="Transaction amount, must be greater than 0")
    category: str = Field(..., min_length=1, description="Category name")
    date: dt.date = Field(..., description="Calendar date of the transaction")


class UpdateEntryModel(BaseModel):
    merchant: Optional[str] = Field(None, min_length=1, description="New merchant name")
    amount: Optional[Decimal] = Field(None, description="New amount, must be greater than 0")
    category: Optional[str] = Field(None, min_length=1, description="New category")
    date: Optional[dt.date] = Field(None, description="New transaction date")


class ListEntriesModel(BaseModel):
    start_date: Optional[str] = Field(None, description="Only entries on or after this date")
    end_date: Optional[str] = Field(None, description="Only entries on or before this date")
    category: Optional[str] = Field(None, description="Filter by category")


class SummaryQueryModel(BaseModel):
    start_date: Optional[str] = Field(None, description="Summary window start")
    end_date: Optional[str] = Field(None, description="Summary window end")


class EntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    merchant: str
    amount: Decimal
    category: str
    date: dt.date
    created_at: dt.datetime
    updated_at: Optional[dt.datetime] = None


class CategoryTotal(BaseModel):
    category: str
    total: Decimal


class SummaryResponse(BaseModel):
    total_expenses: Decimal = Field(..., description="Sum of expenses in the window")
    total_incomes: Decimal = Field(..., description="Sum of incomes in the window")
    balance: Decimal = Field(..., description="Incomes minus expenses")
    expenses_by_category: list[CategoryTotal] = Field(default_factory=list)
