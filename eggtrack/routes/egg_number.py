"""
EggTrack Backend — Egg Counter Route Handlers
==============================================

    GET  /api/egg-number   {success, currentEggNumber}
    POST /api/egg-number   JSON {secret, number} → {success, currentEggNumber, message}

currentEggNumber is the number the next allocated egg_id will carry. POST
moves it by appending a reset marker; see services/allocator.py.
"""

import logging

from fastapi import APIRouter, Depends, Request

from eggtrack.config import Settings
from eggtrack.dependencies import (
    check_secret,
    get_allocator,
    get_settings,
    parse_model,
    read_json_body,
)
from eggtrack.schemas.entry import EggNumberRequest, EggNumberResponse, ErrorResponse
from eggtrack.services.allocator import EggIdAllocator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Egg Counter"])


@router.get(
    "/egg-number",
    response_model=EggNumberResponse,
    response_model_exclude_none=True,
    summary="Next egg number",
)
async def get_egg_number(
    allocator: EggIdAllocator = Depends(get_allocator),
) -> EggNumberResponse:
    return EggNumberResponse(current_egg_number=await allocator.current_number())


@router.post(
    "/egg-number",
    response_model=EggNumberResponse,
    responses={
        400: {"description": "number is not a positive integer", "model": ErrorResponse},
        401: {"description": "Bad or missing secret", "model": ErrorResponse},
        500: {"description": "Storage write failed", "model": ErrorResponse},
    },
    summary="Set the next egg number",
)
async def set_egg_number(
    request: Request,
    allocator: EggIdAllocator = Depends(get_allocator),
    app_settings: Settings = Depends(get_settings),
) -> EggNumberResponse:
    body = await read_json_body(request)
    check_secret(body.get("secret"), app_settings.add_secret)

    payload = parse_model(EggNumberRequest, body, "Invalid number. Must be a positive integer.")
    await allocator.set_current_number(payload.number)

    # Numbers already held by real entries are skipped
    current = await allocator.current_number()
    return EggNumberResponse(
        current_egg_number=current,
        message=f"Egg number set to {current}",
    )
