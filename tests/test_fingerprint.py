"""Tests for input fingerprints."""

import hashlib
from pathlib import Path

import pytest

from redirect_sync.core.fingerprint import Fingerprinter, fingerprint
from redirect_sync.errors import ReadError


class TestFingerprint:
    """Tests for fingerprint() and Fingerprinter."""

    def test_matches_account_workspace_content_digest(self) -> None:
        data = b"from;to;type\n/a;/b;PERMANENT\n"
        expected = hashlib.md5(b"store_master_" + data).hexdigest()
        assert fingerprint(data, "store", "master") == expected

    def test_deterministic(self) -> None:
        data = b"from\n/a\n"
        assert fingerprint(data, "store", "master") == fingerprint(data, "store", "master")

    def test_context_changes_fingerprint(self) -> None:
        data = b"from\n/a\n"
        base = fingerprint(data, "store", "master")
        assert fingerprint(data, "other", "master") != base
        assert fingerprint(data, "store", "dev") != base
        assert fingerprint(b"from\n/b\n", "store", "master") != base

    def test_sha256(self) -> None:
        assert len(fingerprint(b"x", "a", "w", algorithm="sha256")) == 64

    def test_unsupported_algorithm(self) -> None:
        with pytest.raises(ValueError):
            Fingerprinter("crc32")

    def test_fingerprint_file(self, tmp_path: Path) -> None:
        path = tmp_path / "redirects.csv"
        path.write_bytes(b"from\n/a\n")
        assert Fingerprinter().fingerprint_file(path, "store", "master") == fingerprint(
            b"from\n/a\n", "store", "master"
        )

    def test_missing_file_raises_read_error(self, tmp_path: Path) -> None:
        with pytest.raises(ReadError, match="not found"):
            Fingerprinter().fingerprint_file(tmp_path / "missing.csv", "store", "master")
