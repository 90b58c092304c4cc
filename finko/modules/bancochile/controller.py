import json
import logging
from typing import Optional

from fastapi import APIRouter, Request, status

from finko.core.dependencies import (
    BancoChileClientDep,
    CurrentUserDep,
    DatabaseDep,
    IdentityKeyServiceDep,
    OrchestratorDep,
)
from finko.core.exceptions import BadRequestError
from finko.modules.bancochile.dto import (
    AssociateKeyModel,
    IdentityKeyResponse,
    SandboxGenerateModel,
    SandboxSendModel,
)

logger = logging.getLogger(__name__)

webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])
router = APIRouter(prefix="/bancochile", tags=["bancochile"])


@webhook_router.post("/bancochile")
async def bancochile_webhook(
    request: Request,
    db: DatabaseDep,
    orchestrator: OrchestratorDep,
    email: Optional[str] = None,
):
    """
    Banco de Chile movement notification (CloudEvent). Read as raw JSON so a
    malformed envelope gets a specific 400 instead of a schema error.
    """
    try:
        event = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise BadRequestError("Invalid CloudEvent format")

    await orchestrator.handle_webhook(db, event, query_email=email)
    return {"success": True, "message": "Event processed"}


@router.post("/keys", response_model=IdentityKeyResponse, status_code=status.HTTP_201_CREATED)
async def associate_key(
    data: AssociateKeyModel,
    db: DatabaseDep,
    user: CurrentUserDep,
    keys_service: IdentityKeyServiceDep,
):
    return await keys_service.associate_key(db, user.user_id, data.public_key)


@router.get("/keys", response_model=list[IdentityKeyResponse])
async def list_keys(
    db: DatabaseDep, user: CurrentUserDep, keys_service: IdentityKeyServiceDep
):
    return await keys_service.list_user_keys(db, user.user_id)


@router.delete("/keys/{key_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_key(
    key_id: int,
    db: DatabaseDep,
    user: CurrentUserDep,
    keys_service: IdentityKeyServiceDep,
) -> None:
    await keys_service.remove_key(db, user.user_id, key_id)


@router.post("/sandbox/generate")
async def sandbox_generate(
    data: SandboxGenerateModel, user: CurrentUserDep, client: BancoChileClientDep
):
    """Ask the sandbox for a sample notification without delivering it"""
    return await client.generate_notification(data.public_key)


@router.post("/sandbox/send")
async def sandbox_send(
    data: SandboxSendModel,
    request: Request,
    user: CurrentUserDep,
    client: BancoChileClientDep,
):
    """Ask the sandbox to deliver a notification to our webhook"""
    url = data.url or str(request.url_for("bancochile_webhook"))
    logger.info(f"Requesting sandbox notification delivery to {url}")
    return await client.send_notification(data.public_key, url)
