"""Content fingerprints for change detection."""

import asyncio
import hashlib
from pathlib import Path

HASH_PREFIX = "sha256:"

# Read size for streaming file contents through the digest
HASH_CHUNK_SIZE = 1024 * 1024


def calculate_file_hash(file_path: Path) -> str:
    """Calculate the SHA-256 fingerprint of a file.

    The file is streamed in chunks, so memory use does not depend on file
    size. I/O errors propagate to the caller.

    Args:
        file_path: Path to the file

    Returns:
        Fingerprint in the form "sha256:<hex>"
    """
    sha = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
            sha.update(chunk)
    return f"{HASH_PREFIX}{sha.hexdigest()}"


def calculate_hash(content: bytes) -> str:
    """Calculate the SHA-256 fingerprint of in-memory content."""
    return f"{HASH_PREFIX}{hashlib.sha256(content).hexdigest()}"


async def hash_file(file_path: Path) -> str:
    """Calculate a file fingerprint without blocking the event loop."""
    return await asyncio.to_thread(calculate_file_hash, file_path)


def _strip_prefix(fingerprint: str) -> str:
    if fingerprint.startswith(HASH_PREFIX):
        return fingerprint[len(HASH_PREFIX) :]
    return fingerprint


def hashes_match(first: str, second: str) -> bool:
    """Compare two fingerprints, ignoring the algorithm prefix.

    Examples:
        >>> hashes_match("sha256:abc", "abc")
        True
        >>> hashes_match("sha256:abc", "sha256:abd")
        False
    """
    return _strip_prefix(first) == _strip_prefix(second)
