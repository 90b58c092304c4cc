import base64
import binascii
import hmac
import json
import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse
from pydantic import ValidationError as PydanticValidationError

from finko.core.auth import create_state_token, verify_state_token
from finko.core.config import config
from finko.core.dependencies import (
    CurrentUserDep,
    DatabaseDep,
    GmailAuthDep,
    GmailClientDep,
    GmailConnectionServiceDep,
    OrchestratorDep,
)
from finko.core.exceptions import ConfigurationError, UnauthorizedError
from finko.integrations.gmail.dto import PubSubNotification
from finko.modules.gmail.dto import (
    AuthUrlResponse,
    GmailStatusResponse,
    PubSubPush,
    RenewResponse,
)
from finko.utils.datetime import epoch_ms_to_datetime

logger = logging.getLogger(__name__)

router = APIRouter(tags=["gmail"])
webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])
cron_router = APIRouter(prefix="/cron", tags=["cron"])


def _frontend_redirect(base_url: str, **params: str) -> RedirectResponse:
    query = "&".join(f"{key}={quote(value, safe='')}" for key, value in params.items())
    separator = "&" if "?" in base_url else "?"
    return RedirectResponse(f"{base_url}{separator}{query}", status_code=302)


def _error_reason(exc: Exception) -> str:
    return str(getattr(exc, "detail", None) or exc) or "unknown"


# ============================================================================
# OAuth connection
# ============================================================================


@router.get("/auth/gmail", response_model=AuthUrlResponse)
async def start_gmail_auth(
    user: CurrentUserDep, gmail_auth: GmailAuthDep, platform: Optional[str] = None
):
    """Consent screen URL; the client navigates there itself"""
    state = create_state_token(user.user_id, platform)
    logger.info(f"Starting Gmail OAuth for user_id: {user.user_id}")
    return AuthUrlResponse(redirectUrl=gmail_auth.generate_auth_url(state))


@router.get("/auth/gmail/callback")
async def gmail_auth_callback(
    db: DatabaseDep,
    gmail_auth: GmailAuthDep,
    gmail_client: GmailClientDep,
    connection_service: GmailConnectionServiceDep,
    code: Optional[str] = None,
    state: Optional[str] = None,
):
    """Google redirects here; every outcome is a redirect back to the app."""
    if not code:
        return _frontend_redirect(config.frontend_url, gmail="error", message="code_missing")
    if not state:
        return _frontend_redirect(config.frontend_url, gmail="error", message="state_missing")

    redirect_base = config.frontend_url
    try:
        oauth_state = verify_state_token(state)
        if oauth_state.platform == "mobile" and config.mobile_redirect_url:
            redirect_base = config.mobile_redirect_url

        if not config.gmail_pubsub_topic:
            raise ConfigurationError("GMAIL_PUBSUB_TOPIC is not configured")

        refresh_token = await gmail_auth.exchange_code(code)
        gmail_address = await gmail_client.get_profile_email(refresh_token)
        watch = await gmail_client.watch(refresh_token, config.gmail_pubsub_topic)

        await connection_service.upsert_connection(
            db,
            user_id=oauth_state.user_id,
            gmail_address=gmail_address,
            refresh_token=refresh_token,
            history_id=watch.history_id,
            watch_expiration=epoch_ms_to_datetime(watch.expiration),
        )
    except Exception as e:
        logger.error(f"Gmail OAuth callback failed: {_error_reason(e)}")
        return _frontend_redirect(redirect_base, gmail="error", message=_error_reason(e))

    return _frontend_redirect(redirect_base, gmail="connected", email=gmail_address)


@router.get("/gmail/status", response_model=GmailStatusResponse)
async def gmail_status(
    db: DatabaseDep, user: CurrentUserDep, connection_service: GmailConnectionServiceDep
):
    connection = await connection_service.get_by_user(db, user.user_id)
    if connection is None:
        return GmailStatusResponse(connected=False)
    return GmailStatusResponse(connected=True, gmailAddress=connection.gmail_address)


@router.post("/gmail/disconnect")
async def gmail_disconnect(
    db: DatabaseDep,
    user: CurrentUserDep,
    gmail_client: GmailClientDep,
    connection_service: GmailConnectionServiceDep,
):
    connection = await connection_service.get_by_user(db, user.user_id)
    if connection is None:
        return {"message": "Gmail was not connected"}

    try:
        await gmail_client.stop_watch(connection.refresh_token)
    except Exception as e:
        # The watch may simply have expired already
        logger.warning(f"Could not stop Gmail watch for {connection.gmail_address}: {e}")

    await connection_service.delete_connection(db, connection)
    logger.info(f"Disconnected Gmail for user_id: {user.user_id}")
    return {"message": "Gmail disconnected"}


# ============================================================================
# Pub/Sub push
# ============================================================================


def _decode_notification(body: object) -> PubSubNotification | str:
    """The decoded notification, or the reason it was skipped."""
    try:
        push = PubSubPush.model_validate(body)
    except PydanticValidationError:
        return "invalid envelope"
    if push.message is None or not push.message.data:
        return "no data"

    try:
        payload = json.loads(base64.b64decode(push.message.data).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError):
        return "undecodable data"

    try:
        notification = PubSubNotification.model_validate(payload)
    except PydanticValidationError:
        return "incomplete notification"
    if not notification.email_address or not notification.history_id:
        return "incomplete notification"
    return notification


@webhook_router.post("/gmail")
async def gmail_webhook(request: Request, db: DatabaseDep, orchestrator: OrchestratorDep):
    """
    Gmail push notification. Always answers 200: any other status makes
    Pub/Sub redeliver, and a failing message would be retried forever.
    """
    try:
        try:
            body = await request.json()
        except ValueError:
            body = None

        notification = _decode_notification(body)
        if isinstance(notification, str):
            logger.warning(f"Gmail webhook skipped: {notification}")
            return {"ok": True, "skipped": notification}

        await orchestrator.handle_gmail_notification(
            db, notification.email_address, notification.history_id
        )
    except Exception as e:
        logger.error(f"Error processing Gmail webhook: {e}", exc_info=True)
        await db.rollback()
        return {"ok": True, "error": "internal"}

    return {"ok": True}


# ============================================================================
# Watch renewal cron
# ============================================================================


def _provided_cron_secret(request: Request) -> Optional[str]:
    header = request.headers.get("x-cron-secret")
    if header:
        return header
    authorization = request.headers.get("authorization", "")
    if authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return request.query_params.get("secret")


def _check_cron_secret(request: Request) -> None:
    expected = config.cron_secret.strip()
    provided = _provided_cron_secret(request)
    if not expected or not provided or not hmac.compare_digest(provided.encode(), expected.encode()):
        raise UnauthorizedError("Unauthorized")


@cron_router.post("/gmail-renew", response_model=RenewResponse, response_model_exclude_none=True)
async def renew_gmail_watches(
    request: Request,
    db: DatabaseDep,
    gmail_client: GmailClientDep,
    connection_service: GmailConnectionServiceDep,
):
    """Watches expire after about a week; run this daily"""
    _check_cron_secret(request)
    if not config.gmail_pubsub_topic:
        raise ConfigurationError("GMAIL_PUBSUB_TOPIC is not configured")

    result = await connection_service.renew_watches(
        db, gmail_client, config.gmail_pubsub_topic
    )
    logger.info(f"Gmail watch renewal: {result.renewed}/{result.total} renewed")
    return RenewResponse(
        total=result.total, renewed=result.renewed, errors=result.errors or None
    )
