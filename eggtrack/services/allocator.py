"""
EggTrack Backend — Sequential Egg ID Allocator
===============================================

What:  Produces the next display identifier in the sequence Egg-1, Egg-2, ...
How:   A linear scan over the current entries, in insertion order:

           running = 0
           real entry  "Egg-<n>" → running = max(running, n)
           reset marker "Egg-<n>" → running = n - 1      (next id is exactly n)
           anything else           → ignored
           next = smallest n >= running + 1 that no real entry holds

       Reset markers override whatever came before them, so an operator can
       move the counter down as well as up; real entries appended after a
       marker push it forward again. A lowered counter steps over numbers
       that real entries already carry, so it never hands out a taken id.

This is the only numbering mechanism. GET/POST /api/egg-number read and
write the same scan (POST appends a reset marker), so the counter shown to
operators and the id given to the next webhook entry always agree.

Concurrency:
    allocate() reads the store, and the later append() is a separate
    read-modify-write. Two concurrent ingests can both compute the same
    next id; the store's egg_id dedup then keeps only the first, and
    WebhookService allocates again for the one that was dropped.
"""

import logging
import time
import uuid
from typing import List

from eggtrack.exceptions import ValidationError
from eggtrack.schemas.entry import Entry, egg_number, utc_now_iso

logger = logging.getLogger(__name__)

EGG_ID_PREFIX = "Egg-"


def format_egg_id(number: int) -> str:
    return f"{EGG_ID_PREFIX}{number}"


def next_number(entries: List[Entry]) -> int:
    """Number the next allocated egg_id will carry."""
    running = 0
    taken = set()
    for entry in entries:
        number = egg_number(entry.egg_id)
        if number is None:
            continue
        if entry.is_marker:
            running = number - 1
            continue
        taken.add(number)
        if number > running:
            running = number

    candidate = running + 1
    while candidate in taken:
        candidate += 1
    return candidate


def next_egg_id(entries: List[Entry]) -> str:
    """
    Next egg_id for `entries`.

    Falls back to a millisecond-timestamp id if the scan fails, so ingest
    always makes progress.
    """
    try:
        return format_egg_id(next_number(entries))
    except Exception as e:
        fallback = format_egg_id(int(time.time() * 1000))
        logger.error("Egg id scan failed, using timestamp id %s: %s", fallback, str(e), exc_info=True)
        return fallback


class EggIdAllocator:
    """Allocator bound to an EntryStore."""

    def __init__(self, store):
        self.store = store

    async def allocate(self) -> str:
        entries = await self.store.read_all()
        egg_id = next_egg_id(entries)
        logger.info("Allocated %s (scanned %d entries)", egg_id, len(entries))
        return egg_id

    async def current_number(self) -> int:
        return next_number(await self.store.read_all())

    async def set_current_number(self, number: int) -> Entry:
        """
        Make the next allocation produce Egg-<number>.

        Appends a reset marker; the marker is never displayed or placed on
        a sheet.

        Raises:
            ValidationError: number is not a positive integer.
            StorageWriteError: the marker could not be written.
        """
        if isinstance(number, bool) or not isinstance(number, int) or number < 1:
            raise ValidationError(
                message="Invalid number. Must be a positive integer.",
                field="number",
            )

        marker = Entry(
            id=str(uuid.uuid4()),
            egg_id=format_egg_id(number),
            name=f"Counter reset to {number}",
            cage="",
            link="",
            created_at=utc_now_iso(),
            is_reset=True,
        )
        await self.store.append(marker)
        logger.info("Egg counter reset: next id will be %s", marker.egg_id)
        return marker
