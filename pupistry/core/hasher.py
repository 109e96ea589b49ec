"""Content addressing for artifacts.

The version identifier of an artifact is the MD5 hex digest of its
uncompressed tar archive.  MD5 is used as an identifier here, not as a
security control; integrity is established by the Ed25519 signature.
"""

from __future__ import annotations

import hashlib
import re
from pathlib import Path

from pupistry.core.errors import InvalidVersionError, MalformedVersionError

VERSION_LENGTH = 32

_VERSION_RE = re.compile(r"[0-9a-f]{32}")

_CHUNK_SIZE = 1024 * 1024


def file_checksum(path: Path) -> str:
    """Return the version identifier for the archive at *path*."""
    digest = hashlib.md5(usedforsecurity=False)
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def is_valid_version(value: object) -> bool:
    """True if *value* is a well-formed version identifier."""
    return isinstance(value, str) and _VERSION_RE.fullmatch(value) is not None


def validate_version(value: object) -> str:
    """Validate a version identifier supplied by the operator.

    Raises ``InvalidVersionError`` (a configuration error) when malformed.
    """
    if not is_valid_version(value):
        raise InvalidVersionError(
            f"{value!r} is not a valid artifact version "
            f"(expected {VERSION_LENGTH} lowercase hex characters)"
        )
    return value  # type: ignore[return-value]


def validate_store_version(value: object, *, source: str) -> str:
    """Validate a version identifier that was read from the object store.

    The manifests in the store are not themselves signed, so a compromised
    bucket could substitute a version string crafted to escape the cache
    directory.  A malformed value is treated as a possible tamper signal.
    """
    if not is_valid_version(value):
        raise MalformedVersionError(
            f"Version returned from {source} did not match the expected "
            f"checksum format. Possible bug or security incident, investigate "
            f"with care! Returned value was: {value!r}"
        )
    return value  # type: ignore[return-value]
