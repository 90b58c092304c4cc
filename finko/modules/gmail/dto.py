from typing import Optional

from pydantic import BaseModel, Field


class AuthUrlResponse(BaseModel):
    redirectUrl: str = Field(..., description="Google consent screen URL")


class GmailStatusResponse(BaseModel):
    connected: bool
    gmailAddress: Optional[str] = None


class PubSubMessage(BaseModel):
    data: Optional[str] = None
    messageId: Optional[str] = None
    publishTime: Optional[str] = None


class PubSubPush(BaseModel):
    """Envelope Pub/Sub POSTs to push subscribers."""

    message: Optional[PubSubMessage] = None
    subscription: Optional[str] = None


class RenewResponse(BaseModel):
    ok: bool = True
    total: int
    renewed: int
    errors: Optional[list[str]] = None
