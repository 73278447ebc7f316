"""
EggTrack Backend — Request Dependencies
========================================

What:  FastAPI dependencies and small request helpers shared by the routes.
How:   create_app() puts the settings and the service graph on app.state;
       the getters below hand them to route handlers through Depends(), so
       tests can build an app around any Settings object.

Secret rule:
    A request is authorized only when a secret is configured AND the
    supplied value is a string equal to it (constant-time compare). Empty,
    missing and non-string values are always rejected.
"""

import json
import logging
import secrets
from typing import Any, Dict, Type, TypeVar

from fastapi import Request
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from eggtrack.config import Settings
from eggtrack.exceptions import AuthError, ValidationError
from eggtrack.services.allocator import EggIdAllocator
from eggtrack.services.entry_store import EntryStore
from eggtrack.services.webhook_service import WebhookService

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


# ── app.state getters ─────────────────────────────────────────────────────


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_entry_store(request: Request) -> EntryStore:
    return request.app.state.entry_store


def get_allocator(request: Request) -> EggIdAllocator:
    return request.app.state.allocator


def get_webhook_service(request: Request) -> WebhookService:
    return request.app.state.webhook_service


# ── Auth ──────────────────────────────────────────────────────────────────


def is_authorized(supplied: Any, configured: str) -> bool:
    if not configured:
        return False
    if not isinstance(supplied, str) or not supplied:
        return False
    return secrets.compare_digest(supplied.encode("utf-8"), configured.encode("utf-8"))


def check_secret(supplied: Any, configured: str) -> None:
    """
    Raises:
        AuthError: the secret is wrong, empty, missing, or none is configured.
    """
    if not is_authorized(supplied, configured):
        if not configured:
            logger.warning("Rejected mutation: ADD_SECRET is not configured")
        else:
            logger.warning("Rejected mutation: secret mismatch")
        raise AuthError()


# ── Body parsing ──────────────────────────────────────────────────────────


async def read_json_body(request: Request) -> Dict[str, Any]:
    """
    Request body as a JSON object.

    Raises:
        ValidationError: the body is not JSON, or not a JSON object.
    """
    raw = await request.body()
    try:
        body = json.loads(raw) if raw else None
    except ValueError as e:
        raise ValidationError(message="Request body must be valid JSON", field="body") from e
    if not isinstance(body, dict):
        raise ValidationError(message="Request body must be a JSON object", field="body")
    return body


def parse_model(model: Type[ModelT], data: Dict[str, Any], message: str) -> ModelT:
    """
    Validate `data` into `model`, reporting failures as our ValidationError.

    The first offending field is named in the error context.
    """
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ValidationError(
            message=message,
            field=field,
            context={"errors": [err.get("msg", "") for err in e.errors()]},
        ) from e
