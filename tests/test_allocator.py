"""
EggTrack Backend — Egg ID Allocator Tests
==========================================

What we test:
    ✅ max+1 over matching ids, non-matching ids ignored
    ✅ reset markers raise and lower the counter
    ✅ timestamp fallback when the scan fails
    ✅ set_current_number validation and marker shape
"""

from unittest.mock import patch

import pytest

from eggtrack.exceptions import ValidationError
from eggtrack.services.allocator import format_egg_id, next_egg_id, next_number


class TestNextEggId:
    def test_empty_collection(self):
        assert next_egg_id([]) == "Egg-1"

    def test_max_plus_one_regardless_of_order(self, make_entry):
        entries = [make_entry("Egg-3"), make_entry("Egg-7"), make_entry("Egg-2")]

        assert next_egg_id(entries) == "Egg-8"

    @pytest.mark.parametrize("egg_id", ["foo", "Egg-", "egg-4", "Egg-4a", "XEgg-9"])
    def test_non_matching_ids_contribute_nothing(self, make_entry, egg_id):
        assert next_egg_id([make_entry("Egg-2"), make_entry(egg_id)]) == "Egg-3"

    def test_reset_marker_raises_counter(self, make_entry):
        entries = [make_entry("Egg-3"), make_entry("Egg-50", is_reset=True)]

        assert next_egg_id(entries) == "Egg-50"

    def test_reset_marker_lowers_counter(self, make_entry):
        entries = [make_entry("Egg-30"), make_entry("Egg-5", is_reset=True)]

        assert next_number(entries) == 5

    def test_entries_after_marker_advance_counter(self, make_entry):
        entries = [
            make_entry("Egg-30"),
            make_entry("Egg-5", is_reset=True),
            make_entry("Egg-5"),
            make_entry("Egg-6"),
        ]

        assert next_egg_id(entries) == "Egg-7"

    def test_lowered_counter_skips_taken_numbers(self, make_entry):
        entries = [make_entry(f"Egg-{n}") for n in range(1, 6)]
        entries.append(make_entry("Egg-3", is_reset=True))

        assert next_egg_id(entries) == "Egg-6"

    def test_lowered_counter_uses_free_gap(self, make_entry):
        entries = [make_entry("Egg-1"), make_entry("Egg-2"), make_entry("Egg-5")]
        entries.append(make_entry("Egg-3", is_reset=True))

        assert next_number(entries) == 3
        entries.append(make_entry("Egg-3"))
        assert next_number(entries) == 4
        entries.append(make_entry("Egg-4"))
        assert next_number(entries) == 6

    def test_scan_failure_falls_back_to_timestamp(self, make_entry):
        with patch("eggtrack.services.allocator.next_number", side_effect=RuntimeError("boom")), \
             patch("eggtrack.services.allocator.time.time", return_value=1700000000.5):
            assert next_egg_id([make_entry("Egg-1")]) == "Egg-1700000000500"

    def test_format_egg_id(self):
        assert format_egg_id(12) == "Egg-12"


class TestEggIdAllocator:
    @pytest.mark.asyncio
    async def test_allocate_reads_store(self, store, allocator, make_entry):
        await store.write_all([make_entry("Egg-4")])

        assert await allocator.allocate() == "Egg-5"
        assert await allocator.current_number() == 5

    @pytest.mark.asyncio
    async def test_set_current_number_appends_marker(self, store, allocator, make_entry):
        await store.write_all([make_entry("Egg-4")])

        marker = await allocator.set_current_number(100)

        assert marker.is_marker
        assert marker.egg_id == "Egg-100"
        assert marker.name == "Counter reset to 100"
        assert await allocator.allocate() == "Egg-100"
        assert (await store.read_all())[-1].id == marker.id

    @pytest.mark.asyncio
    async def test_set_current_number_can_lower(self, store, allocator, make_entry):
        await store.write_all([make_entry("Egg-40")])

        await allocator.set_current_number(2)

        assert await allocator.current_number() == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad", [0, -3, True, 2.5, "7", None])
    async def test_set_current_number_rejects_non_positive_int(self, allocator, store, bad):
        with pytest.raises(ValidationError):
            await allocator.set_current_number(bad)
        assert await store.read_all() == []
