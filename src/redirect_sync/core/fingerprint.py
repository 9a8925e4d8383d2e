"""
Input Fingerprinter.

Derives the resume key of a run from the input file's exact bytes and the
account/workspace it targets. The same file pushed to another workspace, or
an edited file, gets a fresh key and therefore starts from batch zero.
Fingerprints are not integrity checks.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

from redirect_sync.connectors.csv_source import read_bytes

SUPPORTED_ALGORITHMS = ("md5", "sha256")


def fingerprint(
    data: bytes,
    account: str,
    workspace: str,
    algorithm: str = "md5",
) -> str:
    """
    Compute the resume key for raw input bytes in an account/workspace.

    Args:
        data: Raw input file contents
        account: Account name
        workspace: Workspace name
        algorithm: "md5" or "sha256"

    Returns:
        Hex digest
    """
    if algorithm not in SUPPORTED_ALGORITHMS:
        raise ValueError(f"Unsupported algorithm: {algorithm}")

    hasher = hashlib.new(algorithm)
    hasher.update(f"{account}_{workspace}_".encode("utf-8"))
    hasher.update(data)
    return hasher.hexdigest()


class Fingerprinter:
    """
    Fingerprints input for a fixed hash algorithm.

    Example:
        fp = Fingerprinter("md5").fingerprint_file(path, "store", "master")
    """

    def __init__(self, algorithm: str = "md5") -> None:
        if algorithm not in SUPPORTED_ALGORITHMS:
            raise ValueError(f"Unsupported algorithm: {algorithm}")
        self.algorithm = algorithm

    def fingerprint_bytes(self, data: bytes, account: str, workspace: str) -> str:
        return fingerprint(data, account, workspace, self.algorithm)

    def fingerprint_file(
        self,
        path: Path | str,
        account: str,
        workspace: str,
    ) -> str:
        """
        Fingerprint a file on disk.

        Raises:
            ReadError: if the file cannot be read
        """
        return self.fingerprint_bytes(read_bytes(path), account, workspace)
