"""
EggTrack Backend — Entry Route Handlers
========================================

What:  Read, add and delete entries.

    GET  /api/data     full collection, never cached, never fails
    POST /api/add      JSON {secret, egg_id, name, cage, link?} → {ok, entry}
    GET  /api/add      same fields as query params → 302 back to the page
    POST /api/delete   JSON {secret, entryId} → {ok, message}

GET /api/add exists so an entry can be added from a plain link (bookmarklet,
automation). It never answers with JSON: every outcome is a redirect to
<base_url>/?added=<egg_id> or <base_url>/?error=<reason>.
"""

import logging
import uuid
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import RedirectResponse

from eggtrack.config import Settings
from eggtrack.dependencies import (
    check_secret,
    get_entry_store,
    get_settings,
    is_authorized,
    parse_model,
    read_json_body,
)
from eggtrack.exceptions import EggTrackError, ValidationError
from eggtrack.schemas.entry import (
    AddEntryRequest,
    AddEntryResponse,
    DeleteEntryRequest,
    DeleteEntryResponse,
    Entry,
    EntryListResponse,
    ErrorResponse,
    utc_now_iso,
)
from eggtrack.services.entry_store import EntryStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Entries"])

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}


def build_entry(payload: AddEntryRequest, link_template: str) -> Entry:
    return Entry(
        id=str(uuid.uuid4()),
        egg_id=payload.egg_id,
        name=payload.name,
        cage=payload.cage,
        link=payload.link or link_template.format(egg_id=payload.egg_id),
        created_at=utc_now_iso(),
    )


@router.get(
    "/data",
    response_model=EntryListResponse,
    response_model_exclude_none=True,
    summary="List all entries",
)
async def list_entries(
    response: Response,
    store: EntryStore = Depends(get_entry_store),
) -> EntryListResponse:
    """
    The whole collection in insertion order, reset markers included.

    Storage read failures degrade to an empty list; this route always
    answers 200.
    """
    entries = await store.read_all()
    response.headers.update(NO_CACHE_HEADERS)
    return EntryListResponse(entries=entries)


@router.post(
    "/add",
    response_model=AddEntryResponse,
    response_model_exclude_none=True,
    responses={
        400: {"description": "Missing or invalid fields", "model": ErrorResponse},
        401: {"description": "Bad or missing secret", "model": ErrorResponse},
        500: {"description": "Storage write failed", "model": ErrorResponse},
    },
    summary="Add an entry",
)
async def add_entry(
    request: Request,
    store: EntryStore = Depends(get_entry_store),
    app_settings: Settings = Depends(get_settings),
) -> AddEntryResponse:
    body = await read_json_body(request)
    check_secret(body.get("secret"), app_settings.add_secret)

    payload = parse_model(AddEntryRequest, body, "Missing required fields: egg_id, name, cage")
    entry = build_entry(payload, app_settings.default_link_template)

    if not await store.append(entry):
        raise ValidationError(
            message=f"An entry with egg_id '{entry.egg_id}' already exists",
            field="egg_id",
        )
    return AddEntryResponse(entry=entry)


@router.get(
    "/add",
    response_class=RedirectResponse,
    status_code=302,
    summary="Add an entry from query parameters and redirect to the page",
)
async def add_entry_from_link(
    secret: Optional[str] = None,
    egg_id: Optional[str] = None,
    name: Optional[str] = None,
    cage: Optional[str] = None,
    link: Optional[str] = None,
    store: EntryStore = Depends(get_entry_store),
    app_settings: Settings = Depends(get_settings),
) -> RedirectResponse:
    def redirect(**params: str) -> RedirectResponse:
        return RedirectResponse(f"{app_settings.base_url}/?{urlencode(params)}", status_code=302)

    if not is_authorized(secret, app_settings.add_secret):
        logger.warning("GET /api/add rejected: unauthorized")
        return redirect(error="unauthorized")

    fields = {"egg_id": egg_id, "name": name, "cage": cage, "link": link}
    try:
        payload = parse_model(AddEntryRequest, fields, "Missing required fields")
    except ValidationError:
        return redirect(error="missing_params")

    entry = build_entry(payload, app_settings.default_link_template)
    try:
        added = await store.append(entry)
    except EggTrackError as e:
        logger.error("GET /api/add failed: %s | Context: %s", e.message, e.context)
        return redirect(error="server_error")

    if not added:
        return redirect(error="duplicate")
    return redirect(added=entry.egg_id)


@router.post(
    "/delete",
    response_model=DeleteEntryResponse,
    responses={
        400: {"description": "Missing entryId", "model": ErrorResponse},
        401: {"description": "Bad or missing secret", "model": ErrorResponse},
        500: {"description": "Storage write failed", "model": ErrorResponse},
    },
    summary="Delete an entry by id",
)
async def delete_entry(
    request: Request,
    store: EntryStore = Depends(get_entry_store),
    app_settings: Settings = Depends(get_settings),
) -> DeleteEntryResponse:
    """Idempotent: deleting an unknown id still answers ok."""
    body = await read_json_body(request)
    check_secret(body.get("secret"), app_settings.add_secret)

    payload = parse_model(DeleteEntryRequest, body, "Missing entryId")
    await store.delete(payload.entry_id)
    return DeleteEntryResponse()
