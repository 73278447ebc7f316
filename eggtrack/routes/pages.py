"""
EggTrack Backend — Page Route
==============================

GET / renders the entries page: a table by default, or the label grid with
view=grid. The added/error query parameters (set by the GET /api/add
redirect) become a status banner.
"""

import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse

from eggtrack.config import Settings
from eggtrack.dependencies import get_entry_store, get_settings
from eggtrack.services.entry_store import EntryStore
from eggtrack.services.sheet_service import arrange
from eggtrack.templating import render_template

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Pages"])

ERROR_MESSAGES = {
    "missing_params": "Missing parameters: egg_id, name and cage are required.",
    "unauthorized": "Unauthorized: the secret was wrong or missing.",
    "server_error": "The entry could not be saved. Please try again.",
    "duplicate": "An entry with that Egg ID already exists.",
}


def build_banner(added: Optional[str], error: Optional[str]) -> Optional[Dict[str, str]]:
    if error:
        return {"kind": "error", "text": ERROR_MESSAGES.get(error, f"Error: {error}")}
    if added:
        return {"kind": "ok", "text": f"Added {added}."}
    return None


@router.get("/", response_class=HTMLResponse, include_in_schema=False)
async def index(
    view: str = Query(default="table"),
    added: Optional[str] = Query(default=None),
    error: Optional[str] = Query(default=None),
    store: EntryStore = Depends(get_entry_store),
    app_settings: Settings = Depends(get_settings),
) -> HTMLResponse:
    entries = arrange(await store.read_all())
    html = render_template(
        "index.html",
        entries=entries,
        view="grid" if view == "grid" else "table",
        columns=app_settings.sheet_columns,
        banner=build_banner(added, error),
    )
    return HTMLResponse(html, headers={"Cache-Control": "no-store"})
