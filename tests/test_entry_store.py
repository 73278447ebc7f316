"""
EggTrack Backend — Entry Store Tests
=====================================

What we test:
    ✅ write_all / read_all round trip keeps order and camelCase keys
    ✅ read_all degrades to [] (missing, bad JSON, non-array, read failure)
    ✅ append dedups by id and by egg_id, but not against reset markers
    ✅ delete is idempotent and always writes
    ✅ a failed read is never followed by an overwrite
    ✅ ensure_initialized only creates a missing document
"""

import json
from unittest.mock import AsyncMock

import pytest

from eggtrack.exceptions import StorageReadError, StorageWriteError
from eggtrack.services.entry_store import EntryStore


class TestReadAll:
    @pytest.mark.asyncio
    async def test_round_trip(self, store, make_entry):
        entries = [make_entry("Egg-1"), make_entry("Egg-2", name="Bob"), make_entry("foo")]
        await store.write_all(entries)

        result = await store.read_all()

        assert [e.id for e in result] == [e.id for e in entries]
        assert result[1].name == "Bob"

    @pytest.mark.asyncio
    async def test_persisted_document_format(self, store, storage_file, make_entry):
        await store.write_all([make_entry("Egg-1", id="a", created_at="2025-01-15T12:00:00.000Z")])

        text = storage_file.read_text(encoding="utf-8")
        raw = json.loads(text)

        assert text.startswith("[\n  {")
        assert raw == [
            {
                "id": "a",
                "egg_id": "Egg-1",
                "name": "Alice",
                "cage": "B12",
                "link": "https://www.notion.so/Egg-1",
                "createdAt": "2025-01-15T12:00:00.000Z",
            }
        ]

    @pytest.mark.asyncio
    async def test_unknown_keys_survive_a_write(self, store, storage_file):
        storage_file.parent.mkdir(parents=True)
        storage_file.write_text(
            json.dumps([{"id": "a", "egg_id": "Egg-1", "createdAt": "x", "color": "blue"}])
        )

        await store.write_all(await store.read_all())

        assert json.loads(storage_file.read_text())[0]["color"] == "blue"

    @pytest.mark.asyncio
    async def test_missing_document_is_empty(self, store):
        assert await store.read_all() == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("document", ["not json", '{"entries": []}', "42", "null"])
    async def test_unusable_document_is_empty(self, store, storage_file, document):
        storage_file.parent.mkdir(parents=True)
        storage_file.write_text(document)

        assert await store.read_all() == []

    @pytest.mark.asyncio
    async def test_invalid_items_are_skipped(self, store, storage_file):
        storage_file.parent.mkdir(parents=True)
        storage_file.write_text(
            json.dumps([{"id": "a", "egg_id": "Egg-1"}, "junk", {"name": "no ids"}, {"id": "b", "egg_id": "Egg-2"}])
        )

        result = await store.read_all()

        assert [e.id for e in result] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_backend_read_failure_is_empty(self):
        backend = AsyncMock()
        backend.read_text.side_effect = StorageReadError(message="boom")

        assert await EntryStore(backend).read_all() == []

    @pytest.mark.asyncio
    async def test_find(self, store, make_entry):
        target = make_entry("Egg-2")
        await store.write_all([make_entry("Egg-1"), target])

        assert (await store.find(target.id)).egg_id == "Egg-2"
        assert await store.find("nope") is None


class TestAppend:
    @pytest.mark.asyncio
    async def test_append_to_empty(self, store, make_entry):
        entry = make_entry("Egg-1")

        assert await store.append(entry) is True
        assert [e.id for e in await store.read_all()] == [entry.id]

    @pytest.mark.asyncio
    async def test_duplicate_id_is_ignored(self, store, make_entry):
        first = make_entry("Egg-1", id="same")
        await store.append(first)

        assert await store.append(make_entry("Egg-2", id="same")) is False
        assert [e.egg_id for e in await store.read_all()] == ["Egg-1"]

    @pytest.mark.asyncio
    async def test_duplicate_egg_id_is_ignored(self, store, make_entry):
        await store.append(make_entry("Egg-1", name="first"))

        assert await store.append(make_entry("Egg-1", name="second")) is False
        entries = await store.read_all()
        assert len(entries) == 1
        assert entries[0].name == "first"

    @pytest.mark.asyncio
    async def test_reset_marker_does_not_block_real_entry(self, store, make_entry):
        await store.append(make_entry("Egg-5", is_reset=True))

        assert await store.append(make_entry("Egg-5")) is True
        assert len(await store.read_all()) == 2

    @pytest.mark.asyncio
    async def test_read_failure_refuses_to_overwrite(self, make_entry):
        backend = AsyncMock()
        backend.read_text.side_effect = StorageReadError(message="boom")
        store = EntryStore(backend)

        with pytest.raises(StorageWriteError):
            await store.append(make_entry("Egg-1"))
        backend.write_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_write_failure_propagates(self, make_entry):
        backend = AsyncMock()
        backend.read_text.return_value = "[]"
        backend.write_text.side_effect = StorageWriteError()

        with pytest.raises(StorageWriteError):
            await EntryStore(backend).append(make_entry("Egg-1"))

    @pytest.mark.asyncio
    async def test_serialized_mutations_keep_both_entries(self, backend, make_entry):
        import asyncio

        store = EntryStore(backend, serialize_mutations=True)

        await asyncio.gather(store.append(make_entry("Egg-1")), store.append(make_entry("Egg-2")))

        assert sorted(e.egg_id for e in await store.read_all()) == ["Egg-1", "Egg-2"]


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_existing(self, store, make_entry):
        keep, drop = make_entry("Egg-1"), make_entry("Egg-2")
        await store.write_all([keep, drop])

        assert await store.delete(drop.id) == 1
        assert [e.id for e in await store.read_all()] == [keep.id]

    @pytest.mark.asyncio
    async def test_delete_unknown_still_writes(self, make_entry):
        backend = AsyncMock()
        backend.read_text.return_value = EntryStore.serialize([make_entry("Egg-1")])

        assert await EntryStore(backend).delete("nope") == 0
        backend.write_text.assert_awaited_once()


class TestEnsureInitialized:
    @pytest.mark.asyncio
    async def test_creates_missing_document(self, store, storage_file):
        assert await store.ensure_initialized() is True
        assert json.loads(storage_file.read_text()) == []

    @pytest.mark.asyncio
    async def test_leaves_existing_document(self, store, make_entry):
        await store.write_all([make_entry("Egg-1")])

        assert await store.ensure_initialized() is False
        assert len(await store.read_all()) == 1

    @pytest.mark.asyncio
    async def test_skips_when_read_fails(self):
        backend = AsyncMock()
        backend.read_text.side_effect = StorageReadError()

        assert await EntryStore(backend).ensure_initialized() is False
        backend.write_text.assert_not_awaited()
