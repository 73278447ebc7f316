"""
EggTrack Backend — Printable Artifact Routes
=============================================

    GET /api/qr?link=<url>                         image/png
    GET /api/pdf?id=<entry id>[&format=html]       application/pdf, inline
    GET /api/sheet?format=png|pdf&order=..&columns=N[&page=P]

Rendering is CPU-bound, so every renderer runs in the threadpool.

QR codes are deterministic and cached publicly for an hour. A label whose
PDF cannot be produced is served as the printable HTML page instead. PNG
sheets are split into pages of MAX_PNG_ROWS rows; X-Sheet-Pages carries the
page count.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, Response

from eggtrack.config import Settings
from eggtrack.dependencies import get_entry_store, get_settings
from eggtrack.exceptions import NotFoundError, RenderError, ValidationError
from eggtrack.schemas.entry import ErrorResponse
from eggtrack.services.entry_store import EntryStore
from eggtrack.services.label_service import render_label_html, render_label_pdf
from eggtrack.services.qr_service import render_qr_png
from eggtrack.services.sheet_service import (
    arrange,
    parse_order,
    render_sheet_pdf,
    png_page_count,
    render_sheet_png,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Artifacts"])

SHEET_FORMATS = {"png", "pdf"}


@router.get(
    "/qr",
    response_class=Response,
    responses={
        200: {"content": {"image/png": {}}, "description": "QR code PNG"},
        400: {"description": "Missing link parameter", "model": ErrorResponse},
    },
    summary="QR code for a link",
)
async def qr_code(link: Optional[str] = Query(default=None)) -> Response:
    if not link:
        raise ValidationError(message="Missing link parameter", field="link")

    png = await run_in_threadpool(render_qr_png, link)
    return Response(
        content=png,
        media_type="image/png",
        headers={"Cache-Control": "public, max-age=3600"},
    )


@router.get(
    "/pdf",
    response_class=Response,
    responses={
        200: {"content": {"application/pdf": {}, "text/html": {}}, "description": "Label"},
        400: {"description": "Missing id parameter", "model": ErrorResponse},
        404: {"description": "Entry not found", "model": ErrorResponse},
    },
    summary="Printable label for one entry",
)
async def label_pdf(
    id: Optional[str] = Query(default=None),
    format: str = Query(default="pdf"),
    store: EntryStore = Depends(get_entry_store),
) -> Response:
    if not id:
        raise ValidationError(message="Missing id parameter", field="id")

    entry = await store.find(id)
    if entry is None or entry.is_marker:
        raise NotFoundError(resource="Entry", resource_id=id)

    if format.lower() == "html":
        return HTMLResponse(await run_in_threadpool(render_label_html, entry))

    try:
        pdf = await run_in_threadpool(render_label_pdf, entry)
    except RenderError as e:
        logger.warning("Serving HTML label for %s, PDF failed: %s", entry.egg_id, e.message)
        return HTMLResponse(await run_in_threadpool(render_label_html, entry))

    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{entry.egg_id}.pdf"'},
    )


@router.get(
    "/sheet",
    response_class=Response,
    responses={
        200: {"content": {"image/png": {}, "application/pdf": {}}, "description": "Label sheet"},
        400: {"description": "Unknown format or page out of range", "model": ErrorResponse},
    },
    summary="All labels laid out on one printable sheet",
)
async def label_sheet(
    format: str = Query(default="pdf"),
    order: Optional[str] = Query(default=None, description="Comma-separated entry ids"),
    columns: Optional[int] = Query(default=None, ge=1, le=8),
    page: int = Query(default=1, description="1-based PNG page"),
    store: EntryStore = Depends(get_entry_store),
    app_settings: Settings = Depends(get_settings),
) -> Response:
    sheet_format = format.lower()
    if sheet_format not in SHEET_FORMATS:
        raise ValidationError(
            message=f"Invalid format '{format}'. Must be one of: {sorted(SHEET_FORMATS)}",
            field="format",
        )

    entries = arrange(await store.read_all(), parse_order(order))
    column_count = columns or app_settings.sheet_columns

    headers = {
        "Content-Disposition": f'inline; filename="egg-labels.{sheet_format}"',
        "Cache-Control": "no-store",
    }

    if sheet_format == "png":
        content = await run_in_threadpool(render_sheet_png, entries, column_count, page)
        media_type = "image/png"
        headers["X-Sheet-Pages"] = str(png_page_count(len(entries), column_count))
    else:
        content = await run_in_threadpool(render_sheet_pdf, entries, column_count)
        media_type = "application/pdf"

    return Response(content=content, media_type=media_type, headers=headers)
