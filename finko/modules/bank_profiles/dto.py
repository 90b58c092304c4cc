import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CreateBankProfileModel(BaseModel):
    bank_name: str = Field(..., alias="bankName", description="Display name of the bank")
    sender_patterns: list[str] = Field(
        ..., alias="senderPatterns", description="Substrings of the sender address"
    )
    extraction_instructions: str = Field(
        ..., alias="extractionInstructions", description="How to read this bank's emails"
    )
    example_image_url: Optional[str] = Field(None, alias="exampleImageUrl")

    model_config = ConfigDict(populate_by_name=True)


class UpdateBankProfileModel(BaseModel):
    bank_name: Optional[str] = Field(None, alias="bankName")
    sender_patterns: Optional[list[str]] = Field(None, alias="senderPatterns")
    extraction_instructions: Optional[str] = Field(None, alias="extractionInstructions")
    example_image_url: Optional[str] = Field(None, alias="exampleImageUrl")

    model_config = ConfigDict(populate_by_name=True)


class BankProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    bank_name: str
    sender_patterns: list[str]
    extraction_instructions: str
    example_image_url: Optional[str] = None
    created_at: dt.datetime
    updated_at: Optional[dt.datetime] = None
