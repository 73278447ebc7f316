"""
EggTrack Backend — Abstract Document Backend Interface
=======================================================

What:  The contract every storage backend fulfils: hold ONE text document
       at one logical path, read it whole, overwrite it whole.
How:   Concrete backends inherit from DocumentBackend and implement
       read_text() / write_text(). EntryStore is the only caller.

Implementations:
    - BlobBackend:  Vercel Blob REST API over httpx (production)
    - LocalBackend: A JSON file on disk via aiofiles (local development)
"""

from abc import ABC, abstractmethod
from typing import Optional


class DocumentBackend(ABC):
    """
    Abstract whole-document storage.

    Contract:
        - read_text() returns the full document, or None when it does not exist
        - read_text() raises StorageReadError for every other failure
        - write_text() replaces the full document in a single operation
        - write_text() raises StorageWriteError when that operation fails
        - Neither method locks, versions, or merges
    """

    #: Short name reported by /health and logs
    name: str = "abstract"

    @abstractmethod
    async def read_text(self) -> Optional[str]:
        """
        Fetch the current document.

        Returns:
            The document text, or None if the resource has never been written.

        Raises:
            StorageReadError: Transport or I/O failure.
        """
        ...

    @abstractmethod
    async def write_text(self, content: str) -> None:
        """
        Overwrite the document with `content`.

        Raises:
            StorageWriteError: The write did not complete.
        """
        ...

    def describe(self) -> str:
        """Human-readable location for startup logs."""
        return self.name

    async def aclose(self) -> None:
        """Release any held resources (HTTP clients, file handles)."""
        return None
