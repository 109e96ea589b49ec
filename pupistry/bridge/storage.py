"""Object store bridge — bucket + key-prefix scoped put/get.

The shared store is laid out S3-style under a root directory (typically a
network mount shared between build machines and agents)::

    {store_root}/{bucket}/{prefix}{key}

Two access modes exist.  ``build`` may read and write; ``agent`` is
read-only.  Access control is whatever the filesystem grants; there are no
store credentials.  Build machines open both modes so they can test agent
read access after publishing.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path, PurePosixPath
from typing import Protocol, runtime_checkable

from pupistry.config import PupistryConfig, StoreMode
from pupistry.core.errors import StorageError

logger = logging.getLogger(__name__)


@runtime_checkable
class ObjectStore(Protocol):
    def upload(self, local_path: Path, key: str) -> None: ...

    def download(self, key: str) -> bytes | None:
        """Return the object bytes, or ``None`` if the key does not exist."""
        ...

    def exists(self, key: str) -> bool: ...


class FilesystemObjectStore:
    """Directory-backed implementation of :class:`ObjectStore`.

    Parameters
    ----------
    root:
        Directory holding the buckets.
    bucket:
        Bucket name; ``root / bucket`` must already exist.
    prefix:
        Key prefix prepended to every key, e.g. ``"production/"``.
    read_only:
        Reject uploads, as the agent access mode does.
    """

    def __init__(self, root: Path, bucket: str, prefix: str = "", *, read_only: bool = False) -> None:
        self._bucket_dir = Path(root) / bucket
        self._bucket = bucket
        self._prefix = prefix
        self._read_only = read_only

    @property
    def bucket(self) -> str:
        return self._bucket

    def url(self, key: str) -> str:
        return f"store://{self._bucket}/{self._prefix}{key}"

    def _object_path(self, key: str) -> Path:
        requested = PurePosixPath(key)
        name = PurePosixPath(f"{self._prefix}{key}")
        if not key or requested.is_absolute() or ".." in name.parts or not name.parts:
            raise StorageError(f"Refusing unsafe object key {key!r}", step="store")
        return self._bucket_dir.joinpath(*name.parts)

    def _require_bucket(self, step: str) -> None:
        if not self._bucket_dir.is_dir():
            raise StorageError(f"Bucket {self._bucket} does not exist", step=step)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def upload(self, local_path: Path, key: str) -> None:
        logger.debug("Pushing file %s to %s", local_path, self.url(key))
        if self._read_only:
            raise StorageError(f"Access to bucket {self._bucket} denied (read-only profile)", step="upload")
        self._require_bucket("upload")
        target = self._object_path(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            data = Path(local_path).read_bytes()
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.")
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(data)
                os.replace(tmp_name, target)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StorageError(f"Unable to upload {local_path} to {self.url(key)}: {exc}", step="upload") from exc

    def download(self, key: str) -> bytes | None:
        logger.debug("Fetching %s", self.url(key))
        self._require_bucket("download")
        path = self._object_path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"Unable to download {self.url(key)}: {exc}", step="download") from exc

    def exists(self, key: str) -> bool:
        self._require_bucket("exists")
        return self._object_path(key).is_file()

    def list_keys(self) -> list[str]:
        """List keys under the prefix, without the prefix, sorted."""
        self._require_bucket("list")
        base = self._bucket_dir
        keys = []
        for path in base.rglob("*"):
            if not path.is_file() or path.name.startswith("."):
                continue
            name = path.relative_to(base).as_posix()
            if name.startswith(self._prefix):
                keys.append(name[len(self._prefix) :])
        return sorted(keys)


def open_store(config: PupistryConfig, mode: StoreMode) -> FilesystemObjectStore:
    """Open the object store in *mode*; ``agent`` mode is read-only."""
    bucket = config.require_bucket()
    logger.debug("Opening store bucket %s in %s mode", bucket, mode)
    return FilesystemObjectStore(
        config.general.store_root,
        bucket,
        config.general.prefix,
        read_only=(mode == "agent"),
    )
