from sqlalchemy import func, select

from finko.core import dependencies
from finko.core.auth import create_state_token
from finko.core.config import config
from finko.core.exceptions import GmailAPIError
from finko.modules.gmail.models import BankConnection, ProcessedEmail
from finko.modules.ledger.models import Expense
from tests.conftest import b64, make_token


def cloud_event(**overrides):
    event = {
        "specversion": "1.0",
        "id": "evt-42",
        "type": "cl.bancochile.movimiento.cargo",
        "source": "/bancochile/notificaciones",
        "time": "2024-02-10T14:30:00Z",
        "data": {"email": "ana@example.com", "monto": 12990, "comercio": "Farmacia"},
    }
    event.update(overrides)
    return event


def push(payload) -> dict:
    return {"message": {"data": b64(payload), "messageId": "1"}, "subscription": "s"}


async def count(session_factory, model) -> int:
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(model))


class TestBancoChileWebhook:
    async def test_event_is_booked(self, client, user, session_factory):
        response = await client.post("/webhooks/bancochile", json=cloud_event())

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Event processed"}
        assert await count(session_factory, Expense) == 1

    async def test_malformed_body(self, client, user):
        response = await client.post(
            "/webhooks/bancochile",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Invalid CloudEvent format"

    async def test_incomplete_envelope(self, client, user):
        event = cloud_event()
        del event["source"]

        response = await client.post("/webhooks/bancochile", json=event)

        assert response.status_code == 400
        assert response.json()["error"]["message"] == (
            "Incomplete CloudEvent. Required fields: id, type, source"
        )

    async def test_data_that_is_not_an_object(self, client, user):
        event = cloud_event(data=[1, 2])

        response = await client.post("/webhooks/bancochile", json=event)

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Invalid CloudEvent format"

    async def test_unknown_user(self, client, user):
        event = cloud_event(data={"email": "ghost@example.com", "monto": 100})
        response = await client.post("/webhooks/bancochile", json=event)
        assert response.status_code == 404

    async def test_email_query_parameter(self, client, user, session_factory):
        event = cloud_event(data={"monto": 100, "comercio": "Kiosko"})

        response = await client.post("/webhooks/bancochile?email=ana@example.com", json=event)

        assert response.status_code == 200
        assert await count(session_factory, Expense) == 1


class TestGmailWebhook:
    async def test_notification_is_ingested(
        self, client, gmail_client, connection, bank_profile, session_factory
    ):
        gmail_client.add_message("m1")

        response = await client.post(
            "/webhooks/gmail", json=push({"emailAddress": "ana@gmail.com", "historyId": 200})
        )

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert await count(session_factory, Expense) == 1
        assert await count(session_factory, ProcessedEmail) == 1

    async def test_skips_are_acknowledged(self, client):
        cases = [
            ({"unexpected": "shape", "message": "text"}, "invalid envelope"),
            ({"message": {}}, "no data"),
            ({"message": {"data": "aGVsbG8="}}, "undecodable data"),
            (push({"emailAddress": "ana@gmail.com"}), "incomplete notification"),
        ]
        for body, reason in cases:
            response = await client.post("/webhooks/gmail", json=body)
            assert response.status_code == 200
            assert response.json() == {"ok": True, "skipped": reason}

    async def test_internal_failure_still_acknowledged(self, client, gmail_client, connection):
        gmail_client.history_error = GmailAPIError("backend error")

        response = await client.post(
            "/webhooks/gmail", json=push({"emailAddress": "ana@gmail.com", "historyId": "200"})
        )

        assert response.status_code == 200
        assert response.json() == {"ok": True, "error": "internal"}


class TestWatchRenewal:
    async def test_requires_secret(self, client, monkeypatch):
        monkeypatch.setattr(config, "cron_secret", "s3cret")

        assert (await client.post("/cron/gmail-renew")).status_code == 401
        response = await client.post("/cron/gmail-renew", headers={"x-cron-secret": "wrong"})
        assert response.status_code == 401

    async def test_unconfigured_secret_rejects_everyone(self, client, monkeypatch):
        monkeypatch.setattr(config, "cron_secret", "")
        response = await client.post("/cron/gmail-renew", headers={"x-cron-secret": ""})
        assert response.status_code == 401

    async def test_requires_topic(self, client, monkeypatch):
        monkeypatch.setattr(config, "cron_secret", "s3cret")
        monkeypatch.setattr(config, "gmail_pubsub_topic", "")

        response = await client.post(
            "/cron/gmail-renew", headers={"authorization": "Bearer s3cret"}
        )
        assert response.status_code == 500

    async def test_renews_every_connection(
        self, client, gmail_client, connection, session_factory, monkeypatch
    ):
        monkeypatch.setattr(config, "cron_secret", "s3cret")
        monkeypatch.setattr(config, "gmail_pubsub_topic", "projects/finko/topics/gmail")

        response = await client.post("/cron/gmail-renew?secret=s3cret")

        assert response.status_code == 200
        assert response.json() == {"ok": True, "total": 1, "renewed": 1}
        assert gmail_client.watch_calls == [("refresh-token", "projects/finko/topics/gmail")]
        async with session_factory() as session:
            renewed = await session.get(BankConnection, connection.id)
            assert renewed.history_id == "500"

    async def test_reports_failures(self, client, gmail_client, connection, monkeypatch):
        monkeypatch.setattr(config, "cron_secret", "s3cret")
        monkeypatch.setattr(config, "gmail_pubsub_topic", "projects/finko/topics/gmail")
        gmail_client.watch_error = GmailAPIError("invalid_grant")

        response = await client.post("/cron/gmail-renew", headers={"x-cron-secret": "s3cret"})

        body = response.json()
        assert body["renewed"] == 0
        assert body["errors"] == ["ana@gmail.com: Gmail API service error: invalid_grant"]


class TestGmailConnection:
    async def test_status(self, client, user, connection):
        response = await client.get(
            "/gmail/status", headers={"authorization": f"Bearer {make_token(user.id)}"}
        )
        assert response.json() == {"connected": True, "gmailAddress": "ana@gmail.com"}

    async def test_status_without_connection(self, client, user):
        response = await client.get(
            "/gmail/status", headers={"authorization": f"Bearer {make_token(user.id)}"}
        )
        assert response.json() == {"connected": False, "gmailAddress": None}

    async def test_disconnect(self, client, gmail_client, user, connection, session_factory):
        response = await client.post(
            "/gmail/disconnect", headers={"authorization": f"Bearer {make_token(user.id)}"}
        )

        assert response.status_code == 200
        assert gmail_client.stopped == ["refresh-token"]
        assert await count(session_factory, BankConnection) == 0

    async def test_callback_without_code_redirects(self, client, monkeypatch):
        monkeypatch.setattr(config, "frontend_url", "https://app.finko.cl/settings")

        response = await client.get("/auth/gmail/callback?state=abc")

        assert response.status_code == 302
        assert response.headers["location"] == (
            "https://app.finko.cl/settings?gmail=error&message=code_missing"
        )

    async def test_callback_with_bad_state_redirects(self, client, monkeypatch):
        monkeypatch.setattr(config, "frontend_url", "https://app.finko.cl")

        response = await client.get("/auth/gmail/callback?code=c&state=forged")

        assert response.status_code == 302
        assert response.headers["location"].startswith(
            "https://app.finko.cl?gmail=error&message=Invalid%20OAuth%20state"
        )


class FakeGmailAuth:
    async def exchange_code(self, code: str) -> str:
        assert code == "auth-code"
        return "fresh-refresh-token"


class TestGmailCallback:
    async def connect(self, client, state: str):
        from finko.main import app

        app.dependency_overrides[dependencies.get_gmail_auth] = lambda: FakeGmailAuth()
        return await client.get(f"/auth/gmail/callback?code=auth-code&state={state}")

    async def test_connects_mailbox(
        self, client, gmail_client, user, session_factory, monkeypatch
    ):
        monkeypatch.setattr(config, "frontend_url", "https://app.finko.cl")
        monkeypatch.setattr(config, "gmail_pubsub_topic", "projects/finko/topics/gmail")

        response = await self.connect(client, create_state_token(user.id))

        assert response.status_code == 302
        assert response.headers["location"] == (
            "https://app.finko.cl?gmail=connected&email=ana%40gmail.com"
        )
        assert gmail_client.watch_calls == [
            ("fresh-refresh-token", "projects/finko/topics/gmail")
        ]
        async with session_factory() as session:
            saved = (await session.execute(select(BankConnection))).scalar_one()
        assert saved.user_id == user.id
        assert saved.gmail_address == "ana@gmail.com"
        assert saved.refresh_token == "fresh-refresh-token"
        assert saved.history_id == "500"

    async def test_reconnect_replaces_token(
        self, client, user, connection, session_factory, monkeypatch
    ):
        monkeypatch.setattr(config, "gmail_pubsub_topic", "projects/finko/topics/gmail")

        response = await self.connect(client, create_state_token(user.id))

        assert response.status_code == 302
        async with session_factory() as session:
            saved = (await session.execute(select(BankConnection))).scalar_one()
        assert saved.id == connection.id
        assert saved.refresh_token == "fresh-refresh-token"

    async def test_mobile_platform_uses_mobile_redirect(self, client, user, monkeypatch):
        monkeypatch.setattr(config, "mobile_redirect_url", "finko://gmail")
        monkeypatch.setattr(config, "gmail_pubsub_topic", "projects/finko/topics/gmail")

        response = await self.connect(client, create_state_token(user.id, "mobile"))

        assert response.headers["location"] == (
            "finko://gmail?gmail=connected&email=ana%40gmail.com"
        )
