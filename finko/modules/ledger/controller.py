from fastapi import APIRouter, Depends, status

from finko.core.dependencies import CurrentUserDep, DatabaseDep, LedgerServiceDep
from finko.core.exceptions import ValidationError
from finko.modules.ledger.dto import (
    CreateEntryModel,
    EntryKind,
    EntryResponse,
    ListEntriesModel,
    SummaryQueryModel,
    SummaryResponse,
    UpdateEntryModel,
)


def build_entry_router(kind: EntryKind) -> APIRouter:
    """Same CRUD surface for /expenses and /incomes."""
    router = APIRouter(prefix=f"/{kind}s", tags=[f"{kind}s"])

    @router.post("/", response_model=EntryResponse, status_code=status.HTTP_201_CREATED)
    async def create_entry(
        data: CreateEntryModel,
        db: DatabaseDep,
        user: CurrentUserDep,
        ledger_service: LedgerServiceDep,
    ):
        return await ledger_service.create_entry(
            db,
            user_id=user.user_id,
            kind=kind,
            merchant=data.merchant,
            amount=data.amount,
            category=data.category,
            date=data.date,
        )

    @router.get("/", response_model=list[EntryResponse])
    async def list_entries(
        db: DatabaseDep,
        user: CurrentUserDep,
        ledger_service: LedgerServiceDep,
        filters: ListEntriesModel = Depends(ListEntriesModel),
    ):
        return await ledger_service.list_entries(db, user.user_id, kind, filters)

    @router.get("/{entry_id}", response_model=EntryResponse)
    async def get_entry(
        entry_id: int,
        db: DatabaseDep,
        user: CurrentUserDep,
        ledger_service: LedgerServiceDep,
    ):
        return await ledger_service.get_entry(db, user.user_id, kind, entry_id)

    @router.put("/{entry_id}", response_model=EntryResponse)
    async def update_entry(
        entry_id: int,
        data: UpdateEntryModel,
        db: DatabaseDep,
        user: CurrentUserDep,
        ledger_service: LedgerServiceDep,
    ):
        if entry_id <= 0:
            raise ValidationError(f"{kind.capitalize()} ID must be a positive integer")
        return await ledger_service.update_entry(
            db, user.user_id, kind, entry_id, data.model_dump(exclude_unset=True)
        )

    @router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_entry(
        entry_id: int,
        db: DatabaseDep,
        user: CurrentUserDep,
        ledger_service: LedgerServiceDep,
    ) -> None:
        if entry_id <= 0:
            raise ValidationError(f"{kind.capitalize()} ID must be a positive integer")
        await ledger_service.delete_entry(db, user.user_id, kind, entry_id)

    return router


expenses_router = build_entry_router("expense")
incomes_router = build_entry_router("income")

summary_router = APIRouter(prefix="/summary", tags=["summary"])


@summary_router.get("/", response_model=SummaryResponse)
async def get_summary(
    db: DatabaseDep,
    user: CurrentUserDep,
    ledger_service: LedgerServiceDep,
    window: SummaryQueryModel = Depends(SummaryQueryModel),
):
    """Totals for the caller, optionally limited to a date window"""
    return await ledger_service.get_summary(db, user.user_id, window)
