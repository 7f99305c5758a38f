from abc import ABC, abstractmethod
from typing import BinaryIO


class StorageAdapter(ABC):
    """Where uploaded bytes live. Keys are the `File.filename` values."""

    @abstractmethod
    def put_file(self, key: str, fileobj: BinaryIO) -> int:
        """Store content from a file-like object under key, return bytes written."""

    @abstractmethod
    def open(self, key: str) -> BinaryIO:
        """Open key for reading in binary mode."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete key. Missing keys are not an error."""

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Return whether key exists."""
