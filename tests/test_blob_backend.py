"""
EggTrack Backend — Blob Backend Tests
======================================

What:  BlobBackend against an in-process fake of the Blob REST API
       (httpx.MockTransport), no network.

What we test:
    ✅ list → pick pathname → fetch url with cache-busting t=
    ✅ document absent from listing reads as None
    ✅ listing failure falls back to the public URL, else StorageReadError
    ✅ PUT headers (no random suffix, overwrite allowed)
    ✅ write retries only transport errors, and only when configured
"""

import httpx
import pytest

from eggtrack.exceptions import StorageReadError, StorageWriteError
from eggtrack.services.entry_store import EntryStore
from eggtrack.storage.blob import BlobBackend

API_URL = "https://blob.test"
DOC_URL = "https://store.public.blob.test/labels/entries.json"
PUBLIC_URL = "https://cdn.test/labels/entries.json"


def make_backend(handler, **kwargs) -> BlobBackend:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    kwargs.setdefault("token", "tok")
    return BlobBackend(
        path="labels/entries.json",
        api_url=API_URL,
        retry_min_wait=0,
        retry_max_wait=0,
        client=client,
        **kwargs,
    )


def listing(*pathnames):
    return {"blobs": [{"pathname": p, "url": DOC_URL} for p in pathnames]}


class TestBlobRead:
    @pytest.mark.asyncio
    async def test_reads_listed_document(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.host == "blob.test":
                return httpx.Response(200, json=listing("labels/other.json", "labels/entries.json"))
            return httpx.Response(200, text='[{"id": "a", "egg_id": "Egg-1"}]')

        backend = make_backend(handler)

        assert await backend.read_text() == '[{"id": "a", "egg_id": "Egg-1"}]'
        assert seen[0].url.params["prefix"] == "labels/"
        assert seen[0].headers["authorization"] == "Bearer tok"
        assert "t" in seen[1].url.params

    @pytest.mark.asyncio
    async def test_unlisted_document_is_missing(self):
        backend = make_backend(lambda request: httpx.Response(200, json=listing("labels/other.json")))

        assert await backend.read_text() is None

    @pytest.mark.asyncio
    async def test_listing_failure_uses_public_url(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "blob.test":
                return httpx.Response(503)
            assert str(request.url).startswith(PUBLIC_URL)
            return httpx.Response(200, text="[]")

        backend = make_backend(handler, public_url=PUBLIC_URL)

        assert await backend.read_text() == "[]"

    @pytest.mark.asyncio
    async def test_listing_failure_without_public_url_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        backend = make_backend(handler)

        with pytest.raises(StorageReadError):
            await backend.read_text()

    @pytest.mark.asyncio
    async def test_document_error_status_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "blob.test":
                return httpx.Response(200, json=listing("labels/entries.json"))
            return httpx.Response(500)

        with pytest.raises(StorageReadError):
            await make_backend(handler).read_text()

    @pytest.mark.asyncio
    async def test_store_degrades_to_empty_on_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        assert await EntryStore(make_backend(handler)).read_all() == []

    @pytest.mark.asyncio
    async def test_no_token_raises(self):
        backend = make_backend(lambda request: httpx.Response(200), token="")

        with pytest.raises(StorageReadError):
            await backend.read_text()


class TestBlobWrite:
    @pytest.mark.asyncio
    async def test_put_overwrites_fixed_pathname(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"url": DOC_URL})

        await make_backend(handler).write_text("[]")

        request = seen[0]
        assert request.method == "PUT"
        assert str(request.url) == f"{API_URL}/labels/entries.json"
        assert request.headers["x-add-random-suffix"] == "0"
        assert request.headers["x-allow-overwrite"] == "1"
        assert request.content == b"[]"

    @pytest.mark.asyncio
    async def test_single_attempt_by_default(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ConnectError("down", request=request)

        with pytest.raises(StorageWriteError):
            await make_backend(handler).write_text("[]")
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_transport_errors_retried_when_configured(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) < 3:
                raise httpx.ConnectError("flaky", request=request)
            return httpx.Response(200, json={})

        await make_backend(handler, write_attempts=3).write_text("[]")

        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_error_status_is_not_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(403)

        with pytest.raises(StorageWriteError):
            await make_backend(handler, write_attempts=3).write_text("[]")
        assert len(calls) == 1
