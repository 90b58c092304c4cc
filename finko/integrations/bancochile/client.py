import logging
from typing import Any, Dict, Optional

import httpx

from finko.core.config import config
from finko.core.exceptions import BancoChileAPIError, ConfigurationError

logger = logging.getLogger(__name__)


class BancoChileClient:
    """
    Client for the Banco de Chile movement notification sandbox.

    `/generar` returns a sample CloudEvent for a public key and `/enviar` asks
    the bank to POST one to a webhook URL. Both answer with the CloudEvent.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or config.bancochile_api_url).rstrip("/")
        self.client_id = client_id if client_id is not None else config.bancochile_client_id
        self.client_secret = (
            client_secret if client_secret is not None else config.bancochile_client_secret
        )
        self.timeout = timeout
        self._transport = transport

    def _get_headers(self) -> Dict[str, str]:
        if not self.client_id or not self.client_secret:
            raise ConfigurationError(
                "Banco de Chile credentials missing. Set BANCOCHILE_CLIENT_ID and BANCOCHILE_CLIENT_SECRET"
            )
        return {
            "Content-Type": "application/json",
            "Client-Id": self.client_id,
            "Client-Secret": self.client_secret,
        }

    async def generate_notification(self, public_key: str) -> Dict[str, Any]:
        return await self._post("/generar", {"publicKey": public_key})

    async def send_notification(self, public_key: str, url: str) -> Dict[str, Any]:
        return await self._post("/enviar", {"publicKey": public_key, "url": url})

    async def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        headers = self._get_headers()
        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self._transport
        ) as client:
            try:
                response = await client.post(f"{self.base_url}{path}", json=body, headers=headers)
            except httpx.HTTPError as e:
                logger.error(f"Banco de Chile request to {path} failed: {e}")
                raise BancoChileAPIError(str(e))

        if response.is_error:
            logger.error(
                f"Banco de Chile API error on {path}: {response.status_code} - {response.text}"
            )
            raise BancoChileAPIError(f"{response.status_code} - {response.text}")

        try:
            return response.json()
        except ValueError:
            raise BancoChileAPIError(f"invalid JSON from {path}")
