"""
EggTrack Backend — Entry Store
===============================

What:  Sole authority for the durable Entry Collection.
How:   Every operation works on the WHOLE collection:
           read document → parse JSON array → mutate in memory → write document
Who:   Called by the entry routes, the allocator, webhook ingest, the PDF and
       sheet routes, and the page view.

Read/Write Asymmetry:
    read_all() never raises. A missing document, a document that is not a
    JSON array, and any backend StorageReadError all yield [] (logged).
    write_all() raises StorageWriteError, which the HTTP layer turns into 500.

Concurrency Contract:
    append() and delete() are unlocked read-modify-write cycles over a remote
    document: two concurrent mutations can read the same snapshot, and the
    later write_all() silently discards the earlier one's change. There is no
    version token and no compare-and-swap.

    With serialize_mutations=True the cycles go through one asyncio.Lock, so a
    single process becomes the only writer. Separate processes still race.

    A mutation never writes over a document it could not read: if the backend
    read fails, append()/delete() raise StorageWriteError instead of treating
    the collection as empty.
"""

import asyncio
import contextlib
import json
import logging
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from eggtrack.exceptions import StorageReadError, StorageWriteError
from eggtrack.schemas.entry import Entry
from eggtrack.storage.base import DocumentBackend

logger = logging.getLogger(__name__)


class EntryStore:
    """
    Whole-document store for label entries.

    Args:
        backend:             Where the JSON array lives
        serialize_mutations: Funnel append/delete through an in-process lock
    """

    def __init__(self, backend: DocumentBackend, serialize_mutations: bool = False):
        self.backend = backend
        self._lock: Optional[asyncio.Lock] = asyncio.Lock() if serialize_mutations else None

    # ── Reads ─────────────────────────────────────────────────────────────

    async def read_all(self) -> List[Entry]:
        """
        Current collection in insertion order.

        Returns [] on a missing document, unparseable JSON, a non-array
        document, or any backend read failure. Never raises.
        """
        try:
            text = await self.backend.read_text()
        except StorageReadError as e:
            logger.warning(
                "Entries read failed, serving empty collection: %s | Context: %s",
                e.message,
                e.context,
            )
            return []

        if text is None:
            return []
        return self.parse_document(text)

    async def find(self, entry_id: str) -> Optional[Entry]:
        for entry in await self.read_all():
            if entry.id == entry_id:
                return entry
        return None

    @staticmethod
    def parse_document(text: str) -> List[Entry]:
        """
        Parse the persisted JSON array.

        Items that are not objects, or that lack a string id/egg_id, are
        dropped with a warning; the remaining items keep their order.
        """
        try:
            raw = json.loads(text)
        except ValueError as e:
            logger.error("Entries document is not valid JSON: %s", str(e))
            return []

        if not isinstance(raw, list):
            logger.error(
                "Entries document is a JSON %s, expected an array", type(raw).__name__
            )
            return []

        entries: List[Entry] = []
        for index, item in enumerate(raw):
            if not isinstance(item, dict):
                logger.warning("Skipping entry #%d: not a JSON object", index)
                continue
            try:
                entries.append(Entry.model_validate(item))
            except PydanticValidationError as e:
                logger.warning(
                    "Skipping entry #%d: %d validation error(s)", index, e.error_count()
                )
        return entries

    # ── Writes ────────────────────────────────────────────────────────────

    @staticmethod
    def serialize(entries: List[Entry]) -> str:
        return json.dumps(
            [entry.to_document() for entry in entries],
            indent=2,
            ensure_ascii=False,
        )

    async def write_all(self, entries: List[Entry]) -> None:
        """
        Overwrite the document with `entries` in one backend write.

        Raises:
            StorageWriteError: The backend write failed (not retried here).
        """
        await self.backend.write_text(self.serialize(entries))
        logger.info("Wrote %d entries to %s", len(entries), self.backend.name)

    async def append(self, entry: Entry) -> bool:
        """
        Add `entry` unless it collides with an existing one.

        A collision is an equal `id`, or an equal `egg_id` among non-reset
        entries (reset markers only collide by id). On collision the
        collection is left untouched: first write wins.

        Returns:
            True if the entry was written, False if it was a duplicate.
        """
        async with self._mutation():
            entries = await self._read_for_update()
            duplicate = self._find_collision(entries, entry)
            if duplicate is not None:
                logger.info(
                    "Ignoring duplicate entry id=%s egg_id=%s (collides with id=%s)",
                    entry.id,
                    entry.egg_id,
                    duplicate.id,
                )
                return False

            entries.append(entry)
            await self.write_all(entries)
            logger.info("Appended entry id=%s egg_id=%s", entry.id, entry.egg_id)
            return True

    async def delete(self, entry_id: str) -> int:
        """
        Remove every entry whose id equals `entry_id`.

        Always writes, even when nothing matched.

        Returns:
            Number of entries removed (0 for an unknown id).
        """
        async with self._mutation():
            entries = await self._read_for_update()
            remaining = [entry for entry in entries if entry.id != entry_id]
            await self.write_all(remaining)

        removed = len(entries) - len(remaining)
        logger.info("Deleted entry id=%s (removed=%d)", entry_id, removed)
        return removed

    async def ensure_initialized(self) -> bool:
        """
        Create an empty collection if the document does not exist yet.

        Returns:
            True if an empty document was written.
        """
        try:
            text = await self.backend.read_text()
        except StorageReadError as e:
            logger.warning("Skipping storage initialization, read failed: %s", e.message)
            return False
        if text is not None:
            return False

        await self.write_all([])
        logger.info("Initialized empty entries document at %s", self.backend.describe())
        return True

    # ── Internals ─────────────────────────────────────────────────────────

    def _mutation(self):
        if self._lock is None:
            return contextlib.nullcontext()
        return self._lock

    async def _read_for_update(self) -> List[Entry]:
        try:
            text = await self.backend.read_text()
        except StorageReadError as e:
            raise StorageWriteError(
                message="Could not read current entries; refusing to overwrite storage",
                context=e.context,
            ) from e
        if text is None:
            return []
        return self.parse_document(text)

    @staticmethod
    def _find_collision(entries: List[Entry], candidate: Entry) -> Optional[Entry]:
        for existing in entries:
            if existing.id == candidate.id:
                return existing
            if (
                not candidate.is_marker
                and not existing.is_marker
                and existing.egg_id == candidate.egg_id
            ):
                return existing
        return None
