"""
tests/test_storage.py -- Unit tests for library/storage.py (ArtifactStore).

Covers:
  - Storage key format: <32 hex>-<epoch millis>.<ext>
  - write_temp() + promote(): temp file moves to its final key, nothing left
    in .incoming
  - write_temp() size cap: FileTooLargeError and no partial file
  - delete() / exists() / discard_temp()
  - Keys that would escape the upload root are refused
"""

from __future__ import annotations

import io
import re

import pytest

from core.errors import FileTooLargeError
from library.storage import generate_storage_key

KEY_RE = re.compile(r"^[0-9a-f]{32}-\d{13}\.pdf$")


def test_generate_storage_key_format():
    key = generate_storage_key("pdf")
    assert KEY_RE.match(key), key


def test_generate_storage_key_unique():
    assert len({generate_storage_key(".epub") for _ in range(50)}) == 50


class TestWriteAndPromote:
    def test_promote_moves_temp_file(self, artifacts):
        temp, size = artifacts.write_temp(io.BytesIO(b"%PDF-1.4 hello"), max_bytes=1024)
        assert size == 14
        assert temp.parent == artifacts.incoming

        key = artifacts.promote(temp, "pdf")
        assert KEY_RE.match(key)
        assert artifacts.exists(key)
        assert not temp.exists()
        assert list(artifacts.incoming.iterdir()) == []
        assert (artifacts.root / key).read_bytes() == b"%PDF-1.4 hello"

    def test_too_large_leaves_nothing(self, artifacts):
        with pytest.raises(FileTooLargeError) as excinfo:
            artifacts.write_temp(io.BytesIO(b"x" * 2048), max_bytes=1024)
        assert excinfo.value.status_code == 413
        assert list(artifacts.incoming.iterdir()) == []

    def test_exact_limit_accepted(self, artifacts):
        _, size = artifacts.write_temp(io.BytesIO(b"x" * 1024), max_bytes=1024)
        assert size == 1024


class TestDeleteAndDiscard:
    def test_delete(self, artifacts):
        temp, _ = artifacts.write_temp(io.BytesIO(b"data"), max_bytes=1024)
        key = artifacts.promote(temp, "epub")
        artifacts.delete(key)
        assert not artifacts.exists(key)

    def test_delete_missing_raises(self, artifacts):
        with pytest.raises(FileNotFoundError):
            artifacts.delete(generate_storage_key("pdf"))

    def test_discard_temp_is_idempotent(self, artifacts):
        temp, _ = artifacts.write_temp(io.BytesIO(b"data"), max_bytes=1024)
        artifacts.discard_temp(temp)
        artifacts.discard_temp(temp)
        assert not temp.exists()

    @pytest.mark.parametrize("key", ["../escape.pdf", "sub/dir.pdf", "/etc/passwd"])
    def test_key_outside_root_refused(self, artifacts, key):
        with pytest.raises(ValueError):
            artifacts.exists(key)
