from fastapi import APIRouter, status

from finko.core.dependencies import AdminUserDep, BankProfilesServiceDep, DatabaseDep
from finko.modules.bank_profiles.dto import (
    BankProfileResponse,
    CreateBankProfileModel,
    UpdateBankProfileModel,
)

router = APIRouter(prefix="/bank-email-configs", tags=["bank-email-configs"])


@router.get("/", response_model=list[BankProfileResponse])
async def list_profiles(
    db: DatabaseDep, admin: AdminUserDep, profiles_service: BankProfilesServiceDep
):
    return await profiles_service.list_profiles(db)


@router.post("/", response_model=BankProfileResponse, status_code=status.HTTP_201_CREATED)
async def create_profile(
    data: CreateBankProfileModel,
    db: DatabaseDep,
    admin: AdminUserDep,
    profiles_service: BankProfilesServiceDep,
):
    return await profiles_service.create_profile(db, data)


@router.put("/{profile_id}", response_model=BankProfileResponse)
async def update_profile(
    profile_id: int,
    data: UpdateBankProfileModel,
    db: DatabaseDep,
    admin: AdminUserDep,
    profiles_service: BankProfilesServiceDep,
):
    return await profiles_service.update_profile(db, profile_id, data)


@router.delete("/{profile_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_profile(
    profile_id: int,
    db: DatabaseDep,
    admin: AdminUserDep,
    profiles_service: BankProfilesServiceDep,
) -> None:
    await profiles_service.delete_profile(db, profile_id)
