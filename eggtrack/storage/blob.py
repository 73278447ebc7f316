"""
EggTrack Backend — Remote Blob Backend (Vercel Blob)
=====================================================

What:  Reads and overwrites the entries document in a Vercel Blob store.
How:   Plain REST calls over a shared httpx.AsyncClient:

    Read:
        1. GET  <api_url>?prefix=labels/        → {"blobs": [{pathname, url}, ...]}
        2. pick the blob whose pathname == blob_path (absent → document missing)
        3. GET  <blob url>?t=<millis>           → document text (cache-busted)
        If step 1 fails and a public URL is configured, the document is
        fetched from that URL directly instead.

    Write:
        PUT <api_url>/<blob_path> with no random suffix and overwrite allowed,
        i.e. the same pathname is replaced every time.

Retry:
    Writes are attempted `write_attempts` times (default 1, i.e. no retry).
    Only transport failures (connection reset, timeout) are retried; an HTTP
    error status from the service is final.
"""

import logging
import time
from typing import Optional

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from eggtrack.exceptions import StorageReadError, StorageWriteError
from eggtrack.storage.base import DocumentBackend

logger = logging.getLogger(__name__)

BLOB_API_VERSION = "7"

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


class BlobBackend(DocumentBackend):
    """
    Vercel Blob document backend.

    Args:
        token:          BLOB_READ_WRITE_TOKEN (bearer token for list/put)
        path:           Pathname of the document, e.g. "labels/entries.json"
        api_url:        Blob REST endpoint
        public_url:     Optional direct URL of the document (read fallback)
        timeout:        Per-request timeout in seconds
        write_attempts: Total attempts for a write (1 = no retry)
        client:         Injected AsyncClient (tests pass one with MockTransport)
    """

    name = "blob"

    def __init__(
        self,
        token: str,
        path: str,
        api_url: str = "https://blob.vercel-storage.com",
        public_url: str = "",
        timeout: float = 5.0,
        write_attempts: int = 1,
        retry_min_wait: float = 0.5,
        retry_max_wait: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.token = token
        self.path = path.strip("/")
        self.api_url = api_url.rstrip("/")
        self.public_url = public_url
        self.write_attempts = write_attempts
        self.retry_min_wait = retry_min_wait
        self.retry_max_wait = retry_max_wait
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def prefix(self) -> str:
        """Directory part of the pathname, used to narrow the listing."""
        if "/" not in self.path:
            return ""
        return self.path.rsplit("/", 1)[0] + "/"

    def describe(self) -> str:
        return f"blob {self.api_url}/{self.path}"

    def _auth_headers(self) -> dict:
        return {
            "authorization": f"Bearer {self.token}",
            "x-api-version": BLOB_API_VERSION,
        }

    # ── Read ──────────────────────────────────────────────────────────────

    async def read_text(self) -> Optional[str]:
        if not self.token:
            if self.public_url:
                return await self._fetch_document(self.public_url)
            raise StorageReadError(
                message="Blob storage is not configured",
                context={"reason": "missing BLOB_READ_WRITE_TOKEN"},
            )

        try:
            blob_url = await self._find_blob_url()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Blob listing failed for prefix %s: %s", self.prefix, str(e))
            if not self.public_url:
                raise StorageReadError(
                    message="Could not list blobs",
                    context={"prefix": self.prefix, "error": str(e)},
                ) from e
            logger.info("Falling back to direct public URL for %s", self.path)
            return await self._fetch_document(self.public_url)

        if blob_url is None:
            return None
        return await self._fetch_document(blob_url)

    async def _find_blob_url(self) -> Optional[str]:
        response = await self._client.get(
            self.api_url,
            params={"prefix": self.prefix},
            headers=self._auth_headers(),
        )
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError("blob listing is not a JSON object")
        for blob in payload.get("blobs") or []:
            if blob.get("pathname") == self.path:
                return blob.get("url")
        return None

    async def _fetch_document(self, url: str) -> Optional[str]:
        try:
            response = await self._client.get(
                url,
                params={"t": str(int(time.time() * 1000))},
                headers=NO_CACHE_HEADERS,
            )
        except httpx.HTTPError as e:
            raise StorageReadError(
                message="Could not fetch the entries document",
                context={"error": str(e)},
            ) from e

        if response.status_code == 404:
            return None
        if response.is_error:
            raise StorageReadError(
                message="Entries document fetch returned an error status",
                context={"status": response.status_code},
            )
        return response.text

    # ── Write ─────────────────────────────────────────────────────────────

    async def write_text(self, content: str) -> None:
        if not self.token:
            raise StorageWriteError(
                message="Blob storage is not configured",
                context={"reason": "missing BLOB_READ_WRITE_TOKEN"},
            )

        headers = {
            **self._auth_headers(),
            "x-content-type": "application/json",
            "x-add-random-suffix": "0",
            "x-allow-overwrite": "1",
            "x-vercel-blob-access": "public",
        }
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.write_attempts),
                wait=wait_exponential_jitter(
                    initial=self.retry_min_wait,
                    max=self.retry_max_wait,
                    jitter=self.retry_min_wait,
                ),
                retry=retry_if_exception_type(httpx.TransportError),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    response = await self._client.put(
                        f"{self.api_url}/{self.path}",
                        content=content.encode("utf-8"),
                        headers=headers,
                    )
                    response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Blob write to %s failed: %s", self.path, str(e))
            raise StorageWriteError(
                message="Failed to write to blob storage",
                context={"path": self.path, "error": str(e)},
            ) from e

        logger.debug("Wrote %d bytes to blob %s", len(content), self.path)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
