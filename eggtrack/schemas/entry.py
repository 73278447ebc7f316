"""
EggTrack Backend — Pydantic Entry Model and API Schemas
========================================================

What:  The persisted Entry shape plus the request/response contracts of the
       HTTP API.
How:   Python attributes are snake_case; the persisted document and the JSON
       API keep the original camelCase keys (createdAt, isReset, entryId,
       currentEggNumber) through field aliases.

Persisted document:
    A UTF-8, 2-space-indented JSON array of Entry objects. `isReset` is
    omitted unless set. Unknown keys on an entry are kept (extra="allow") so
    a read/write cycle never drops data it does not understand.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator

EGG_ID_PATTERN = re.compile(r"^Egg-(\d+)$")
WEB_LINK_PATTERN = re.compile(r"^https?://\S", re.IGNORECASE)

# An ASCII link this long still fits the largest QR version at level M
MAX_LINK_LENGTH = 2048


def utc_now_iso() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def egg_number(egg_id: str) -> Optional[int]:
    """Numeric suffix of an `Egg-<digits>` identifier, or None if it doesn't match."""
    match = EGG_ID_PATTERN.match(egg_id or "")
    if match is None:
        return None
    return int(match.group(1))


def is_web_link(link: Optional[str]) -> bool:
    """True for absolute http(s) URLs; anything else is never rendered as a hyperlink."""
    return bool(link) and WEB_LINK_PATTERN.match(link) is not None


# ══════════════════════════════════════════════════════════════════════════
# Persisted Model
# ══════════════════════════════════════════════════════════════════════════


class Entry(BaseModel):
    """
    One label entry.

    Invariants (kept by EntryStore, not by this model):
        - `id` is unique across the collection
        - `egg_id` is unique across entries where is_reset is not true
        - entries are never mutated in place

    Reset markers (is_reset=True) are bookkeeping records for a manual counter
    override; they are never shown or placed on a label sheet.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(description="Opaque unique identifier")
    egg_id: str = Field(description="Display identifier, Egg-<N>")
    name: str = Field(default="", description="Label name")
    cage: str = Field(default="", description="Location tag")
    link: str = Field(default="", description="Destination URL encoded in the QR code")
    created_at: str = Field(
        default_factory=utc_now_iso,
        alias="createdAt",
        description="Creation timestamp (ISO 8601)",
    )
    is_reset: Optional[bool] = Field(
        default=None,
        alias="isReset",
        description="True for synthetic counter-override markers",
    )

    @property
    def is_marker(self) -> bool:
        return bool(self.is_reset)

    def to_document(self) -> Dict[str, Any]:
        """Serialize for the persisted JSON array (camelCase, isReset omitted when unset)."""
        data = self.model_dump(by_alias=True)
        if data.get("isReset") is None:
            data.pop("isReset", None)
        return data


def visible_entries(entries: List[Entry]) -> List[Entry]:
    """Entries that represent physical labels (reset markers removed)."""
    return [entry for entry in entries if not entry.is_marker]


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class AddEntryRequest(BaseModel):
    """
    Body of POST /api/add (after the secret has been checked).

    egg_id, name and cage are required and must be non-blank. link is optional,
    defaults to the configured link template, and must be an http(s) URL of at
    most MAX_LINK_LENGTH characters.
    """

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    egg_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    cage: str = Field(min_length=1)
    link: Optional[str] = Field(default=None, max_length=MAX_LINK_LENGTH)

    @field_validator("link")
    @classmethod
    def check_link(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        if not is_web_link(v):
            raise ValueError("link must be an http:// or https:// URL")
        return v


class DeleteEntryRequest(BaseModel):
    """Body of POST /api/delete."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, extra="ignore")

    entry_id: str = Field(alias="entryId", min_length=1)


class EggNumberRequest(BaseModel):
    """Body of POST /api/egg-number. Floats, strings and booleans are rejected."""

    model_config = ConfigDict(extra="ignore")

    number: StrictInt = Field(ge=1)


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class EntryListResponse(BaseModel):
    ok: bool = True
    entries: List[Entry] = Field(default_factory=list)


class AddEntryResponse(BaseModel):
    ok: bool = True
    entry: Entry


class DeleteEntryResponse(BaseModel):
    ok: bool = True
    message: str = "Entry deleted successfully"


class EggNumberResponse(BaseModel):
    """
    `currentEggNumber` is the number the next allocated egg_id will carry.
    """

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    current_egg_number: int = Field(alias="currentEggNumber")
    message: Optional[str] = None


class WebhookResponse(BaseModel):
    success: bool = True
    message: str = "Entry created from webhook"
    entry: Entry


class ErrorResponse(BaseModel):
    """
    Standardized error body for all JSON API errors.

    Example:
        {
            "error": "unauthorized",
            "message": "Unauthorized",
            "request_id": "a1b2c3d4"
        }
    """

    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded")
    version: str = Field(description="Application version")
    storage_backend: str = Field(description="Configured storage backend")
    storage: str = Field(description="Storage reachability: reachable, unreachable")
    uptime_seconds: float = Field(description="Seconds since service started")
