import json

import httpx
import pytest

from finko.core.exceptions import BancoChileAPIError, ConfigurationError
from finko.integrations.bancochile.client import BancoChileClient


def client_with(handler, **kwargs):
    return BancoChileClient(
        base_url="https://sandbox.bancochile.test/movimientos/",
        client_id=kwargs.get("client_id", "id-1"),
        client_secret=kwargs.get("client_secret", "secret-1"),
        transport=httpx.MockTransport(handler),
    )


async def test_send_posts_key_and_url_with_credentials():
    seen = []

    def handler(request: httpx.Request):
        seen.append(request)
        return httpx.Response(200, json={"id": "evt-1", "type": "cl.bancochile.movimiento"})

    event = await client_with(handler).send_notification("pk-1", "https://finko.test/webhooks/bancochile")

    [request] = seen
    assert str(request.url) == "https://sandbox.bancochile.test/movimientos/enviar"
    assert request.headers["Client-Id"] == "id-1"
    assert request.headers["Client-Secret"] == "secret-1"
    assert json.loads(request.content) == {
        "publicKey": "pk-1",
        "url": "https://finko.test/webhooks/bancochile",
    }
    assert event["id"] == "evt-1"


async def test_error_status_raises():
    client = client_with(lambda request: httpx.Response(401, text="bad credentials"))
    with pytest.raises(BancoChileAPIError) as exc_info:
        await client.generate_notification("pk-1")
    assert exc_info.value.status_code == 502
    assert "401" in exc_info.value.detail


async def test_missing_credentials():
    client = client_with(lambda request: httpx.Response(200, json={}), client_id="")
    with pytest.raises(ConfigurationError):
        await client.generate_notification("pk-1")
