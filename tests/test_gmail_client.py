import base64

import httplib2
import pytest
from googleapiclient.errors import HttpError

from finko.core.exceptions import GmailAPIError, GmailNotFoundError
from finko.integrations.gmail.client import GmailClient, extract_body, html_to_text


def urlsafe(text: str) -> str:
    # Gmail strips the padding
    return base64.urlsafe_b64encode(text.encode()).decode().rstrip("=")


def http_error(status: int) -> HttpError:
    return HttpError(httplib2.Response({"status": status}), b"{}")


class Call:
    def __init__(self, result):
        self.result = result

    def execute(self):
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class FakeGmailService:
    """Mimics the chained resource objects the discovery client returns."""

    def __init__(self):
        self.history_pages: list[dict] = []
        self.history_requests: list[dict] = []
        self.messages_by_id: dict[str, object] = {}
        self.watch_response: object = {"historyId": 900, "expiration": "1893456000000"}
        self.profile = {"emailAddress": "ana@gmail.com"}

    def users(self):
        return self

    def history(self):
        return self

    def messages(self):
        return self

    def list(self, **kwargs):
        self.history_requests.append(kwargs)
        return Call(self.history_pages[len(self.history_requests) - 1])

    def get(self, userId, id, **kwargs):
        return Call(self.messages_by_id.get(id, http_error(404)))

    def watch(self, userId, body):
        return Call(self.watch_response)

    def stop(self, userId):
        return Call({})

    def getProfile(self, userId):
        return Call(self.profile)


@pytest.fixture
def service():
    return FakeGmailService()


@pytest.fixture
def client(service):
    return GmailClient(auth=None, service_builder=lambda refresh_token: service)


def added(*ids):
    return {"messagesAdded": [{"message": {"id": i}} for i in ids]}


def deleted(*ids):
    return {"messagesDeleted": [{"message": {"id": i}} for i in ids]}


class TestHistory:
    async def test_follows_pages_and_drops_deleted(self, client, service):
        service.history_pages = [
            {"history": [added("m1", "m2"), added("m2")], "nextPageToken": "p2"},
            {"history": [added("m3"), deleted("m1")]},
        ]

        ids = await client.list_history_message_ids("token", "100")

        assert ids == ["m2", "m3"]
        assert [r["pageToken"] for r in service.history_requests] == [None, "p2"]
        assert service.history_requests[0]["startHistoryId"] == "100"

    async def test_empty_history(self, client, service):
        service.history_pages = [{}]
        assert await client.list_history_message_ids("token", "100") == []

    async def test_stale_cursor_is_not_found(self, client, service):
        service.history_pages = [http_error(404)]
        with pytest.raises(GmailNotFoundError):
            await client.list_history_message_ids("token", "1")

    async def test_other_errors_are_api_errors(self, client, service):
        service.history_pages = [http_error(500)]
        with pytest.raises(GmailAPIError):
            await client.list_history_message_ids("token", "1")


class TestMessages:
    async def test_metadata_reads_from_header(self, client, service):
        service.messages_by_id["m1"] = {
            "id": "m1",
            "payload": {"headers": [{"name": "From", "value": "alertas@bancochile.cl"}]},
        }
        metadata = await client.get_message_metadata("token", "m1")
        assert metadata.from_header == "alertas@bancochile.cl"

    async def test_missing_message(self, client):
        with pytest.raises(GmailNotFoundError):
            await client.get_message("token", "gone")

    async def test_full_message_prefers_plain_text(self, client, service):
        service.messages_by_id["m1"] = {
            "id": "m1",
            "snippet": "Compra aprobada",
            "internalDate": "1705320000000",
            "payload": {
                "mimeType": "multipart/alternative",
                "headers": [{"name": "From", "value": "alertas@bancochile.cl"}],
                "parts": [
                    {"mimeType": "text/html", "body": {"data": urlsafe("<p>html</p>")}},
                    {"mimeType": "text/plain", "body": {"data": urlsafe("Compra por $15.500")}},
                ],
            },
        }

        message = await client.get_message("token", "m1")

        assert message.body == "Compra por $15.500"
        assert message.snippet == "Compra aprobada"
        assert message.date == "2024-01-15"

    async def test_date_header_wins_over_internal_date(self, client, service):
        service.messages_by_id["m1"] = {
            "id": "m1",
            "internalDate": "1705320000000",
            "payload": {"headers": [{"name": "Date", "value": "Tue, 16 Jan 2024 10:00:00 -0300"}]},
        }
        message = await client.get_message("token", "m1")
        assert message.date == "Tue, 16 Jan 2024 10:00:00 -0300"


class TestBody:
    def test_nested_html_only(self):
        payload = {
            "mimeType": "multipart/mixed",
            "parts": [
                {
                    "mimeType": "multipart/alternative",
                    "parts": [
                        {
                            "mimeType": "text/html",
                            "body": {"data": urlsafe("<div>Monto: <b>$8.990</b></div>")},
                        }
                    ],
                }
            ],
        }
        assert extract_body(payload) == "Monto: $8.990"

    def test_single_part_body(self):
        payload = {"mimeType": "text/plain", "body": {"data": urlsafe("Transferencia recibida")}}
        assert extract_body(payload) == "Transferencia recibida"

    def test_no_body(self):
        assert extract_body({"mimeType": "text/plain", "body": {"size": 0}}) == ""
        assert extract_body({"parts": [{"mimeType": "image/png", "body": {"attachmentId": "a"}}]}) == ""

    def test_html_to_text_collapses_whitespace(self):
        assert html_to_text("<p>Hola</p>\n\n<p>  mundo </p>") == "Hola mundo"


class TestWatch:
    async def test_watch_stringifies_history_id(self, client):
        watch = await client.watch("token", "projects/p/topics/gmail")
        assert watch.history_id == "900"
        assert watch.expiration == "1893456000000"

    async def test_watch_without_history_id(self, client, service):
        service.watch_response = {"expiration": "1"}
        with pytest.raises(GmailAPIError):
            await client.watch("token", "projects/p/topics/gmail")

    async def test_profile_email(self, client):
        assert await client.get_profile_email("token") == "ana@gmail.com"
