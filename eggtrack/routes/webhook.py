"""
EggTrack Backend — Webhook Route
=================================

POST /api/webhook receives Notion automation calls. The body is parsed by
WebhookService; the x-notion-signature header is passed along for logging
only. This endpoint is not authenticated.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from eggtrack.dependencies import get_webhook_service, read_json_body
from eggtrack.schemas.entry import ErrorResponse, WebhookResponse
from eggtrack.services.webhook_service import WebhookService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Webhook"])


@router.post(
    "/webhook",
    response_model=WebhookResponse,
    response_model_exclude_none=True,
    responses={
        400: {"description": "Invalid webhook data", "model": ErrorResponse},
        500: {"description": "Storage write failed", "model": ErrorResponse},
    },
    summary="Create an entry from a Notion automation",
)
async def receive_webhook(
    request: Request,
    x_notion_signature: Optional[str] = Header(default=None),
    service: WebhookService = Depends(get_webhook_service),
) -> WebhookResponse:
    payload = await read_json_body(request)
    entry = await service.ingest(payload, signature=x_notion_signature)
    return WebhookResponse(entry=entry)
