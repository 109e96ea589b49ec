"""Fetch orchestrator — resolves and downloads published versions.

Always reads with the ``agent`` (read-only) store profile.  Callers get back
an explicit version identifier; nothing downstream ever acts on the literal
``latest``.
"""

from __future__ import annotations

import logging

import yaml

from pupistry.bridge.storage import ObjectStore
from pupistry.core.cache import LATEST, ArtifactCache, artifact_key, manifest_key
from pupistry.core.errors import (
    ArtifactIntegrityError,
    ConsistencyError,
    MalformedVersionError,
    StorageError,
)
from pupistry.core.hasher import validate_store_version, validate_version
from pupistry.models.manifest import Manifest
from pupistry.models.outcomes import FetchOutcome, FetchResult

logger = logging.getLogger(__name__)


def parse_store_manifest(data: bytes, *, key: str) -> Manifest:
    """Parse a manifest downloaded from the store.

    The version field is checked against the checksum format before
    anything else is trusted, since store manifests are not signed.
    """
    try:
        raw = yaml.safe_load(data)
    except yaml.YAMLError as exc:
        raise ArtifactIntegrityError(f"Store object {key} is not valid YAML: {exc}") from exc
    if not isinstance(raw, dict):
        raise ArtifactIntegrityError(f"Store object {key} is not a manifest")

    validate_store_version(raw.get("version"), source=key)
    try:
        return Manifest.model_validate(raw)
    except ValueError as exc:
        raise ArtifactIntegrityError(f"Store object {key} is not a valid manifest: {exc}") from exc


def read_latest_version(store: ObjectStore) -> str | None:
    """Version the remote ``latest`` manifest in *store* points at, or ``None``."""
    key = manifest_key(LATEST)
    data = store.download(key)
    if data is None:
        return None
    return parse_store_manifest(data, key=key).version


class FetchOrchestrator:
    """Downloads artifacts from the store into the local cache.

    Parameters
    ----------
    cache:
        The local artifact cache.
    store:
        Object store opened with the agent profile.
    """

    def __init__(self, cache: ArtifactCache, store: ObjectStore) -> None:
        self._cache = cache
        self._store = store

    def latest_version(self) -> str | None:
        """Version the remote ``latest`` manifest points at.

        Returns ``None`` if there is no remote latest manifest.  Raises
        ``MalformedVersionError`` if it names something that is not a
        checksum.
        """
        logger.debug("Checking latest artifact version...")
        return read_latest_version(self._store)

    def fetch(self, version: str | None = None) -> FetchResult:
        """Make *version* (or the remote latest) available in the cache.

        When the remote latest is resolved, the local ``latest`` pointer is
        moved to it once the files are cached, so offline installs and
        pruning see what was last fetched.  An explicit *version* leaves the
        pointer alone.
        """
        if version is not None:
            resolved = validate_version(version)
            logger.debug("Downloading artifact version %s", resolved)
        else:
            resolved = self.latest_version()
            if resolved is None:
                logger.error("There is no current artifact that can be fetched")
                return FetchResult(outcome=FetchOutcome.NOT_FOUND)
            logger.debug("Downloading latest artifact (%s)", resolved)

        if self._cache.has_version(resolved):
            logger.debug("This artifact is already present, no download required.")
            if version is None:
                self._adopt_latest(resolved)
            return FetchResult(outcome=FetchOutcome.CACHED, version=resolved)

        m_key = manifest_key(resolved)
        manifest_bytes = self._store.download(m_key)
        if manifest_bytes is None:
            logger.error("Artifact version %s was not found in the store", resolved)
            return FetchResult(outcome=FetchOutcome.NOT_FOUND, version=resolved)

        manifest = parse_store_manifest(manifest_bytes, key=m_key)
        if manifest.version != resolved:
            raise MalformedVersionError(
                f"Store manifest {m_key} records version {manifest.version}; "
                "possible bug or security incident, investigate with care!"
            )

        blob_bytes = self._store.download(artifact_key(resolved))
        if blob_bytes is None:
            raise ConsistencyError(
                f"Store has a manifest for {resolved} but no artifact blob"
            )

        try:
            self._cache.adopt_download(resolved, manifest_bytes, blob_bytes)
        except OSError as exc:
            raise StorageError(f"Unable to write {resolved} into the cache: {exc}", step="download") from exc

        if version is None:
            self._adopt_latest(resolved)

        logger.info("Downloaded artifact %s", resolved)
        return FetchResult(outcome=FetchOutcome.DOWNLOADED, version=resolved)

    def _adopt_latest(self, version: str) -> None:
        if self._cache.current_version() != version:
            self._cache.update_latest(version)
            logger.debug("Local latest now points at %s", version)

    def check_readable(self, version: str) -> bool:
        """Confirm both objects for *version* can be read back from the store.

        A permission diagnostic for publishers: returns ``False`` and logs
        instead of raising.
        """
        try:
            manifest_bytes = self._store.download(manifest_key(version))
            blob_present = self._store.download(artifact_key(version)) is not None
            if manifest_bytes is None or not blob_present:
                logger.error("Read-back of %s failed: objects not visible to the agent profile", version)
                return False
            parse_store_manifest(manifest_bytes, key=manifest_key(version))
        except (StorageError, ArtifactIntegrityError) as exc:
            logger.error("Read-back of %s failed: %s", version, exc)
            return False
        return True
