import asyncio
import base64
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from bs4 import BeautifulSoup
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from finko.core.exceptions import GmailAPIError, GmailNotFoundError
from finko.integrations.gmail.auth import GmailAuth
from finko.integrations.gmail.dto import GmailMessage, MessageMetadata, WatchResult

logger = logging.getLogger(__name__)

HISTORY_TYPES = ["messageAdded", "messageDeleted"]


def _decode(data: str) -> str:
    # Gmail omits base64 padding
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")


def html_to_text(html: str) -> str:
    text = BeautifulSoup(html, "html.parser").get_text(separator=" ")
    return " ".join(text.split())


def _find_part_data(part: dict, mime_type: str) -> Optional[str]:
    """Depth-first search for the first part of a MIME type carrying data."""
    if part.get("mimeType") == mime_type and part.get("body", {}).get("data"):
        return part["body"]["data"]
    for sub_part in part.get("parts") or []:
        found = _find_part_data(sub_part, mime_type)
        if found:
            return found
    return None


def extract_body(payload: dict) -> str:
    """text/plain first, then HTML reduced to text, then the top-level body."""
    if payload.get("parts"):
        plain = _find_part_data(payload, "text/plain")
        if plain:
            return _decode(plain)
        html = _find_part_data(payload, "text/html")
        if html:
            return html_to_text(_decode(html))
        return ""

    data = payload.get("body", {}).get("data")
    if not data:
        return ""
    body = _decode(data)
    if payload.get("mimeType") == "text/html":
        return html_to_text(body)
    return body


def header_value(payload: dict, name: str) -> str:
    for header in payload.get("headers", []) or []:
        if header.get("name", "").lower() == name and header.get("value"):
            return header["value"]
    return ""


def _internal_date(value: Any) -> Optional[str]:
    try:
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc).strftime("%Y-%m-%d")
    except (TypeError, ValueError, OverflowError):
        return None


class GmailClient:
    """
    Async wrapper around the Gmail REST API for one mailbox at a time.

    The Google client is blocking, so each call runs in a worker thread with
    credentials freshly derived from the mailbox's refresh token. A 404 from
    Gmail becomes GmailNotFoundError; every other failure is a GmailAPIError.
    """

    def __init__(
        self,
        auth: GmailAuth,
        service_builder: Optional[Callable[[str], Any]] = None,
    ):
        self.auth = auth
        self._service_builder = service_builder or self._build_service

    def _build_service(self, refresh_token: str):
        credentials = self.auth.credentials(refresh_token)
        return build("gmail", "v1", credentials=credentials, cache_discovery=False)

    async def _run(
        self,
        refresh_token: str,
        call: Callable[[Any], Any],
        *,
        resource: str,
        resource_id: str = "",
    ) -> Any:
        def _blocking():
            service = self._service_builder(refresh_token)
            return call(service)

        try:
            return await asyncio.to_thread(_blocking)
        except HttpError as e:
            if e.resp is not None and e.resp.status == 404:
                raise GmailNotFoundError(resource, resource_id)
            logger.error(f"Gmail API error on {resource} {resource_id}: {e}")
            raise GmailAPIError(f"{resource}: {e}")

    async def watch(self, refresh_token: str, topic_name: str) -> WatchResult:
        response = await self._run(
            refresh_token,
            lambda service: service.users()
            .watch(userId="me", body={"topicName": topic_name})
            .execute(),
            resource="watch",
        )
        if not response or not response.get("historyId") or not response.get("expiration"):
            raise GmailAPIError("invalid watch response")
        return WatchResult(
            history_id=str(response["historyId"]),
            expiration=str(response["expiration"]),
        )

    async def stop_watch(self, refresh_token: str) -> None:
        await self._run(
            refresh_token,
            lambda service: service.users().stop(userId="me").execute(),
            resource="watch",
        )

    async def list_history_message_ids(
        self, refresh_token: str, start_history_id: str
    ) -> list[str]:
        """Ids of messages added since the cursor, minus those deleted since."""

        def _walk(service) -> tuple[list[str], set[str]]:
            added: dict[str, None] = {}
            deleted: set[str] = set()
            page_token = None
            while True:
                response = (
                    service.users()
                    .history()
                    .list(
                        userId="me",
                        startHistoryId=start_history_id,
                        historyTypes=HISTORY_TYPES,
                        pageToken=page_token,
                    )
                    .execute()
                )
                for record in response.get("history", []) or []:
                    for item in record.get("messagesAdded", []) or []:
                        message_id = (item.get("message") or {}).get("id")
                        if message_id:
                            added[message_id] = None
                    for item in record.get("messagesDeleted", []) or []:
                        message_id = (item.get("message") or {}).get("id")
                        if message_id:
                            deleted.add(message_id)
                page_token = response.get("nextPageToken")
                if not page_token:
                    return list(added), deleted

        added, deleted = await self._run(
            refresh_token, _walk, resource="history", resource_id=start_history_id
        )
        return [message_id for message_id in added if message_id not in deleted]

    async def get_message_metadata(
        self, refresh_token: str, message_id: str
    ) -> MessageMetadata:
        message = await self._run(
            refresh_token,
            lambda service: service.users()
            .messages()
            .get(userId="me", id=message_id, format="metadata", metadataHeaders=["From"])
            .execute(),
            resource="message",
            resource_id=message_id,
        )
        if not message or not message.get("id"):
            raise GmailNotFoundError("message", message_id)
        return MessageMetadata(
            id=message["id"],
            from_header=header_value(message.get("payload") or {}, "from"),
        )

    async def get_message(self, refresh_token: str, message_id: str) -> GmailMessage:
        message = await self._run(
            refresh_token,
            lambda service: service.users()
            .messages()
            .get(userId="me", id=message_id, format="full")
            .execute(),
            resource="message",
            resource_id=message_id,
        )
        if not message or not message.get("id"):
            raise GmailNotFoundError("message", message_id)

        payload = message.get("payload") or {}
        return GmailMessage(
            id=message["id"],
            from_header=header_value(payload, "from"),
            snippet=message.get("snippet", ""),
            body=extract_body(payload),
            date=header_value(payload, "date") or _internal_date(message.get("internalDate")),
        )

    async def get_profile_email(self, refresh_token: str) -> str:
        profile = await self._run(
            refresh_token,
            lambda service: service.users().getProfile(userId="me").execute(),
            resource="profile",
        )
        email = (profile or {}).get("emailAddress")
        if not email:
            raise GmailAPIError("profile has no email address")
        return email
