from typing import Any, Dict, Optional
import asyncio
import aiohttp
import logging
import ssl
import certifi

logger = logging.getLogger(__name__)


async def fetch(
    url: str,
    *,
    method: str = "GET",
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, Any]] = None,
    json: Optional[Dict[str, Any]] = None,
    timeout: float = 10.0,
) -> Optional[Dict[str, Any]]:
    """
    Async JSON fetcher using aiohttp.

    Transport, HTTP and decoding failures are logged and reported as None so
    callers decide whether a missing response is fatal.
    """
    headers = headers or {}
    method = method.upper()

    ssl_context = ssl.create_default_context(cafile=certifi.where())

    async with aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(total=timeout),
        connector=aiohttp.TCPConnector(ssl=ssl_context),
    ) as session:
        try:
            async with session.request(
                method, url, headers=headers, params=params, json=json
            ) as resp:
                resp.raise_for_status()
                return await resp.json(content_type=None)

        except aiohttp.ClientResponseError as e:
            logger.error("HTTP error %s: %s | URL: %s %s", e.status, e.message, method, url)
        except aiohttp.ClientError as e:
            logger.error("Network error: %s | URL: %s %s", e, method, url)
        except asyncio.TimeoutError:
            logger.error("Timed out after %ss | URL: %s %s", timeout, method, url)
        except ValueError as e:
            logger.error("Invalid JSON response: %s | URL: %s %s", e, method, url)

    return None
