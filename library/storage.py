"""
library/storage.py -- Filesystem artifact store for uploaded documents.

Layout under the upload root:
  .incoming/<uuid>.part            -- temporary files while an upload is received
  <uuid hex>-<epoch millis>.<ext>  -- promoted artifacts (the storage_key)

Uploads are written to .incoming first and then promoted with os.replace(),
which is an atomic rename because .incoming lives on the same filesystem as
the root. A final name therefore never shows partially written content.

Storage keys are always generated here, never taken from the client, so a
key cannot escape the upload root. _path_for() still checks containment
because keys are read back from the metadata store.
"""

import logging
import os
import time
import uuid
from pathlib import Path
from typing import BinaryIO

from core.errors import FileTooLargeError

logger = logging.getLogger("readshelf.library.storage")

_CHUNK_SIZE = 1024 * 1024
_INCOMING_DIR = ".incoming"


def generate_storage_key(extension: str) -> str:
    """Return a collision-resistant artifact name: <uuid4 hex>-<epoch millis>.<ext>."""
    suffix = f".{extension.lstrip('.')}" if extension else ""
    return f"{uuid.uuid4().hex}-{int(time.time() * 1000)}{suffix}"


class ArtifactStore:
    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()
        self.incoming = self.root / _INCOMING_DIR
        self.incoming.mkdir(parents=True, exist_ok=True)

    def write_temp(self, source: BinaryIO, max_bytes: int) -> tuple[Path, int]:
        """Copy a binary stream into a new temporary file.

        Returns (temp_path, size). Raises FileTooLargeError, after removing the
        partial file, once more than max_bytes have been read.
        """
        temp_path = self.incoming / f"{uuid.uuid4().hex}.part"
        size = 0
        try:
            with temp_path.open("wb") as out:
                while True:
                    chunk = source.read(_CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > max_bytes:
                        raise FileTooLargeError(f"Upload must be {max_bytes} bytes or smaller.")
                    out.write(chunk)
        except BaseException:
            self.discard_temp(temp_path)
            raise
        return temp_path, size

    def promote(self, temp_path: Path, extension: str) -> str:
        """Atomically move a temporary file to a freshly generated storage key."""
        key = generate_storage_key(extension)
        os.replace(temp_path, self._path_for(key))
        return key

    def delete(self, key: str) -> None:
        """Remove a promoted artifact. Raises FileNotFoundError if it is already gone."""
        self._path_for(key).unlink()

    def exists(self, key: str) -> bool:
        return self._path_for(key).is_file()

    def discard_temp(self, temp_path: Path) -> None:
        """Remove a temporary file if it is still there. Never raises."""
        try:
            Path(temp_path).unlink(missing_ok=True)
        except OSError:
            logger.exception("Could not remove temporary upload %s", temp_path)

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if path.parent != self.root:
            raise ValueError(f"Storage key escapes the upload root: {key!r}")
        return path
