"""Local artifact cache and manifest store.

Storage layout::

    {app_cache}/artifacts/manifest.{version}.yaml
    {app_cache}/artifacts/manifest.latest.yaml     — pointer copy
    {app_cache}/artifacts/artifact.{version}.tar.gz
    {app_cache}/artifacts/artifact.latest.tar.gz   — pointer copy
    {app_cache}/artifacts/unpacked.{version}/      — scratch

The ``latest`` manifest is a full copy of some versioned manifest; its
``version`` field is the pointer.  It is always written after the files it
refers to.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path

from pupistry.core.errors import ConsistencyError
from pupistry.core.hasher import is_valid_version
from pupistry.models.manifest import Manifest

logger = logging.getLogger(__name__)

LATEST = "latest"
INSTALL_RECORD_NAME = "manifest.pupistry.yaml"


def manifest_key(version: str) -> str:
    """Object name of a manifest, shared by the cache and the remote store."""
    return f"manifest.{version}.yaml"


def artifact_key(version: str) -> str:
    """Object name of an artifact blob, shared by the cache and the remote store."""
    return f"artifact.{version}.tar.gz"


def atomic_write(path: Path, data: bytes) -> None:
    """Write *data* to *path* via a temp file and rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def read_manifest_file(path: Path) -> Manifest | None:
    """Read a manifest, returning ``None`` if the file does not exist.

    Raises ``ConsistencyError`` if the file exists but is not a manifest.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    try:
        return Manifest.from_yaml(text)
    except ValueError as exc:
        raise ConsistencyError(f"Manifest {path} is unreadable: {exc}") from exc


class ArtifactCache:
    """Per-version blobs, manifests and scratch directories on local disk.

    Parameters
    ----------
    app_cache:
        Root of the local cache; artifacts live in ``app_cache/artifacts``.
    """

    def __init__(self, app_cache: Path) -> None:
        self._root = Path(app_cache)
        self._dir = self._root / "artifacts"

    @property
    def root(self) -> Path:
        return self._root

    @property
    def artifacts_dir(self) -> Path:
        return self._dir

    def ensure(self) -> Path:
        self._dir.mkdir(parents=True, exist_ok=True)
        return self._dir

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def manifest_path(self, version: str) -> Path:
        return self._dir / manifest_key(version)

    def blob_path(self, version: str) -> Path:
        return self._dir / artifact_key(version)

    def unpacked_path(self, version: str) -> Path:
        return self._dir / f"unpacked.{version}"

    @property
    def latest_manifest_path(self) -> Path:
        return self.manifest_path(LATEST)

    @property
    def latest_blob_path(self) -> Path:
        return self.blob_path(LATEST)

    @property
    def temp_archive_path(self) -> Path:
        return self._dir / "artifact.temp.tar"

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_manifest(self, version: str) -> bool:
        return self.manifest_path(version).is_file()

    def has_blob(self, version: str) -> bool:
        return self.blob_path(version).is_file()

    def has_version(self, version: str) -> bool:
        """True when both the manifest and the blob are cached."""
        return self.has_manifest(version) and self.has_blob(version)

    def require_version(self, version: str) -> None:
        """Raise ``ConsistencyError`` unless manifest and blob both exist."""
        for path in (self.manifest_path(version), self.blob_path(version)):
            if not path.is_file():
                raise ConsistencyError(
                    f"The files expected for {version} do not appear to exist or "
                    f"are not readable: {path}"
                )

    def read_manifest(self, version: str) -> Manifest:
        manifest = read_manifest_file(self.manifest_path(version))
        if manifest is None:
            raise ConsistencyError(f"No manifest cached for version {version}")
        if manifest.version != version:
            raise ConsistencyError(
                f"Manifest for {version} records version {manifest.version}"
            )
        return manifest

    def current_version(self) -> str | None:
        """Version the local ``latest`` pointer refers to, or ``None``."""
        manifest = read_manifest_file(self.latest_manifest_path)
        if manifest is None:
            return None
        return manifest.version

    def list_versions(self) -> list[str]:
        """Versions with a cached manifest, sorted."""
        if not self._dir.is_dir():
            return []
        versions = []
        for path in self._dir.glob("manifest.*.yaml"):
            candidate = path.name[len("manifest.") : -len(".yaml")]
            if is_valid_version(candidate):
                versions.append(candidate)
        return sorted(versions)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def write_manifest(self, manifest: Manifest) -> Path:
        path = self.manifest_path(manifest.version)
        atomic_write(path, manifest.to_yaml().encode("utf-8"))
        return path

    def store_blob(self, source: Path, version: str) -> Path:
        """Rename a finished archive into its per-version slot."""
        target = self.blob_path(version)
        os.replace(source, target)
        return target

    def update_latest(self, version: str) -> None:
        """Point the local ``latest`` copies at *version*.

        The blob copy is written first and the manifest copy last, so the
        pointer never refers to a blob that is not in place.
        """
        self.require_version(version)
        try:
            atomic_write(self.latest_blob_path, self.blob_path(version).read_bytes())
            atomic_write(self.latest_manifest_path, self.manifest_path(version).read_bytes())
        except OSError as exc:
            raise ConsistencyError(f"Unable to update the latest pointer to {version}: {exc}") from exc

    def refresh_latest(self, version: str) -> bool:
        """Rewrite the ``latest`` manifest copy if it points at *version*."""
        if self.current_version() != version:
            return False
        atomic_write(self.latest_manifest_path, self.manifest_path(version).read_bytes())
        return True

    def adopt_download(self, version: str, manifest_bytes: bytes, blob_bytes: bytes) -> None:
        """Place a downloaded manifest and blob into the cache.

        The blob is renamed into place before the manifest, so a crash in
        between leaves a version that ``has_version`` still reports missing.
        """
        self.ensure()
        atomic_write(self.blob_path(version), blob_bytes)
        atomic_write(self.manifest_path(version), manifest_bytes)

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def clean_unpack(self, version: str) -> bool:
        """Remove the scratch directory for *version*.  Returns ``True`` if removed."""
        path = self.unpacked_path(version)
        if path.exists():
            logger.debug("Cleaning up %s", path)
            shutil.rmtree(path)
            return True
        logger.debug("Nothing to cleanup (%s is not currently unpacked)", version)
        return False

    def prune(self, keep: set[str] | None = None) -> list[str]:
        """Delete cached versions other than ``latest`` and those in *keep*.

        Only local cache entries are touched.  Returns the pruned versions.
        """
        retained = set(keep or ())
        current = self.current_version()
        if current:
            retained.add(current)

        pruned = []
        for version in self.list_versions():
            if version in retained:
                continue
            self.clean_unpack(version)
            self.blob_path(version).unlink(missing_ok=True)
            self.manifest_path(version).unlink(missing_ok=True)
            pruned.append(version)
            logger.info("Pruned cached artifact %s", version)
        return pruned
