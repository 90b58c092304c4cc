import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AssociateKeyModel(BaseModel):
    public_key: str = Field(..., alias="publicKey", description="Banco de Chile public key")

    model_config = ConfigDict(populate_by_name=True)


class IdentityKeyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    public_key: str
    created_at: dt.datetime


class SandboxGenerateModel(BaseModel):
    public_key: str = Field(..., alias="publicKey")

    model_config = ConfigDict(populate_by_name=True)


class SandboxSendModel(BaseModel):
    public_key: str = Field(..., alias="publicKey")
    url: Optional[str] = Field(
        None, description="Webhook URL the bank should call, defaults to the server's own"
    )

    model_config = ConfigDict(populate_by_name=True)


class CloudEvent(BaseModel):
    """
    Banco de Chile notification envelope. Only used for documentation: the
    webhook reads the raw JSON so malformed envelopes can be answered with
    their own messages.
    """

    specversion: Optional[str] = None
    type: Optional[str] = None
    source: Optional[str] = None
    id: Optional[str] = None
    time: Optional[str] = None
    subject: Optional[str] = None
    data: Optional[dict] = None
