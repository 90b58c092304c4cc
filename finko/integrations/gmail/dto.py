from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class WatchResult(BaseModel):
    """Push subscription registered with users.watch."""

    history_id: str = Field(..., description="Mailbox history cursor at registration time")
    expiration: str = Field(..., description="Expiry as epoch milliseconds")


class MessageMetadata(BaseModel):
    id: str = Field(..., description="Gmail message ID")
    from_header: str = Field(default="", description="Raw From header")


class GmailMessage(BaseModel):
    """A fetched message reduced to what transaction extraction needs."""

    id: str = Field(..., description="Gmail message ID")
    from_header: str = Field(default="", description="Raw From header")
    snippet: str = Field(default="", description="Email snippet/preview")
    body: str = Field(default="", description="Plain text body, HTML stripped when needed")
    date: Optional[str] = Field(
        default=None, description="Date header, or YYYY-MM-DD from internalDate"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "id": "18d1234567890abc",
                "from_header": "Banco de Chile <enviodigital@bancochile.cl>",
                "snippet": "Compra por $15.500 en SUPERMERCADO LIDER",
                "body": "Te informamos que se ha realizado una compra por $15.500...",
                "date": "Mon, 15 Jan 2024 10:32:00 -0300",
            }
        }


class PubSubNotification(BaseModel):
    """Decoded payload of a Gmail Pub/Sub push message."""

    email_address: str = Field(..., alias="emailAddress")
    history_id: str = Field(..., alias="historyId")

    model_config = ConfigDict(coerce_numbers_to_str=True)
