# Storage package init
"""
EggTrack Backend — Storage Backends
====================================

What:  Whole-document persistence for the entries JSON array.
How:   build_backend() turns the explicit `storage_backend` setting into a
       concrete DocumentBackend once, at application start.
"""

from eggtrack.config import Settings
from eggtrack.storage.base import DocumentBackend
from eggtrack.storage.blob import BlobBackend
from eggtrack.storage.local import LocalBackend

__all__ = ["DocumentBackend", "BlobBackend", "LocalBackend", "build_backend"]


def build_backend(app_settings: Settings) -> DocumentBackend:
    """Construct the backend named by `app_settings.storage_backend`."""
    if app_settings.storage_backend == "blob":
        return BlobBackend(
            token=app_settings.blob_read_write_token,
            path=app_settings.blob_path,
            api_url=app_settings.blob_api_url,
            public_url=app_settings.blob_public_url,
            timeout=app_settings.blob_timeout,
            write_attempts=app_settings.storage_write_attempts,
            retry_min_wait=app_settings.storage_retry_min_wait,
            retry_max_wait=app_settings.storage_retry_max_wait,
        )
    return LocalBackend(app_settings.local_storage_path)
