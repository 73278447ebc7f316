"""
EggTrack Backend — Webhook Ingest
==================================

What:  Turns an inbound Notion automation payload into a stored Entry.
How:   locate formula string → split "Name|Cage" → allocate egg_id → append.

Accepted payloads:
    Notion automation:
        {"data": {"id": "<page-id>", "properties": {
            "<any>": {"type": "formula", "formula": {"type": "string", "string": "Alice|B12"}}
        }}}
        The first string-typed formula property with a non-empty value wins.
        Destination link: https://www.notion.so/<page id without dashes>

    Flat:
        {"formulaContent" | "content" | "text": "Alice|B12", "pageId": "..."}

Rejection (ValidationError, nothing stored):
    - no formula string found
    - fewer than two "|"-separated parts
    - name or cage empty after trimming

Signature:
    The x-notion-signature header is logged, never verified.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from eggtrack.exceptions import StorageWriteError, ValidationError
from eggtrack.schemas.entry import Entry, utc_now_iso

logger = logging.getLogger(__name__)

NOTION_PAGE_URL = "https://www.notion.so/{page_id}"
FLAT_CONTENT_KEYS = ("formulaContent", "content", "text")
MAX_ALLOCATION_ATTEMPTS = 3


@dataclass(frozen=True)
class ParsedLabel:
    name: str
    cage: str
    link: Optional[str] = None


def split_formula(content: str) -> Optional[Tuple[str, str]]:
    """
    Split "Name|Cage" into two trimmed, non-empty parts.

    Returns None when the delimiter is missing or either part is blank.
    Parts after the second delimiter are ignored.
    """
    parts = content.split("|")
    if len(parts) < 2:
        logger.info("Formula content has %d part(s), expected Name|Cage", len(parts))
        return None

    name, cage = parts[0].strip(), parts[1].strip()
    if not name or not cage:
        logger.info("Formula content has an empty name or cage")
        return None
    return name, cage


def _notion_formula_string(properties: dict) -> str:
    for key, value in properties.items():
        if not isinstance(value, dict) or value.get("type") != "formula":
            continue
        formula = value.get("formula")
        if isinstance(formula, dict) and formula.get("type") == "string":
            content = formula.get("string")
            if isinstance(content, str) and content:
                logger.debug("Using formula property %r", key)
                return content
    return ""


def _page_link(page_id: Any) -> Optional[str]:
    if not isinstance(page_id, str) or not page_id.strip():
        return None
    return NOTION_PAGE_URL.format(page_id=page_id.strip().replace("-", ""))


def extract_label(payload: Any) -> Optional[ParsedLabel]:
    """Pull name, cage and optional destination link out of a webhook body."""
    if not isinstance(payload, dict):
        return None

    data = payload.get("data")
    if isinstance(data, dict) and isinstance(data.get("properties"), dict):
        content = _notion_formula_string(data["properties"])
        page_id = data.get("id")
    else:
        content = next(
            (
                payload[key]
                for key in FLAT_CONTENT_KEYS
                if isinstance(payload.get(key), str) and payload[key]
            ),
            "",
        )
        page_id = payload.get("pageId")

    if not content:
        logger.info("No formula content found in webhook payload")
        return None

    split = split_formula(content)
    if split is None:
        return None

    name, cage = split
    return ParsedLabel(name=name, cage=cage, link=_page_link(page_id))


class WebhookService:
    """
    Ingest pipeline for automation webhooks.

    Args:
        store:         EntryStore receiving the new entry
        allocator:     EggIdAllocator providing the egg_id
        link_template: Used when the payload carries no destination link
    """

    def __init__(self, store, allocator, link_template: str):
        self.store = store
        self.allocator = allocator
        self.link_template = link_template

    async def ingest(self, payload: Any, signature: Optional[str] = None) -> Entry:
        """
        Parse `payload` and append the resulting entry.

        Raises:
            ValidationError: payload could not be parsed into name and cage.
            StorageWriteError: the entry could not be persisted.
        """
        if signature:
            logger.info("Webhook carries x-notion-signature (not verified)")
        else:
            logger.warning("Webhook has no x-notion-signature header; origin is unverified")

        parsed = extract_label(payload)
        if parsed is None:
            raise ValidationError(message="Invalid webhook data", field="payload")

        for attempt in range(1, MAX_ALLOCATION_ATTEMPTS + 1):
            egg_id = await self.allocator.allocate()
            entry = Entry(
                id=str(uuid.uuid4()),
                egg_id=egg_id,
                name=parsed.name,
                cage=parsed.cage,
                link=parsed.link or self.link_template.format(egg_id=egg_id),
                created_at=utc_now_iso(),
            )
            if await self.store.append(entry):
                logger.info("Webhook entry created: %s (%s / %s)", egg_id, entry.name, entry.cage)
                return entry

            # A concurrent ingest took the same egg_id between allocate and append
            logger.warning(
                "Webhook entry %s dropped as duplicate (attempt %d/%d)",
                egg_id,
                attempt,
                MAX_ALLOCATION_ATTEMPTS,
            )

        raise StorageWriteError(
            message="Could not allocate a free egg id for the webhook entry",
            context={"last_egg_id": egg_id, "attempts": MAX_ALLOCATION_ATTEMPTS},
        )
