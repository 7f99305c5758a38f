from pathlib import Path, PurePosixPath
from typing import BinaryIO

from eventhub.storage.base import StorageAdapter

CHUNK_SIZE = 1024 * 1024


class LocalStorageAdapter(StorageAdapter):
    def __init__(self, root: Path) -> None:
        self._root = Path(root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)

    def _path_for_key(self, key: str) -> Path:
        normalized = key.strip().lstrip("/")
        path_key = PurePosixPath(normalized)
        if not normalized or ".." in path_key.parts:
            raise ValueError(f"invalid storage key: {key!r}")
        return self._root.joinpath(*path_key.parts)

    def put_file(self, key: str, fileobj: BinaryIO) -> int:
        path = self._path_for_key(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        written = 0
        with path.open("wb") as out:
            while True:
                chunk = fileobj.read(CHUNK_SIZE)
                if not chunk:
                    break
                out.write(chunk)
                written += len(chunk)
        return written

    def open(self, key: str) -> BinaryIO:
        return self._path_for_key(key).open("rb")

    def delete(self, key: str) -> None:
        self._path_for_key(key).unlink(missing_ok=True)

    def exists(self, key: str) -> bool:
        return self._path_for_key(key).exists()
