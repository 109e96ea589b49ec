"""Publish orchestrator — signs a local artifact and uploads it to the store.

Upload order is blob, versioned manifest, then the ``latest`` manifest.
Agents only ever discover versions through ``latest``, so they can never see
a manifest whose blob is not uploaded yet.
"""

from __future__ import annotations

import logging

from pupistry.bridge.signer import Signer
from pupistry.bridge.storage import ObjectStore
from pupistry.config import PupistryConfig
from pupistry.core.cache import LATEST, ArtifactCache, artifact_key, manifest_key
from pupistry.core.errors import NothingToPublishError, SignatureMismatchError
from pupistry.core.fetcher import FetchOrchestrator, read_latest_version
from pupistry.core.hasher import validate_version
from pupistry.models.outcomes import PublishOutcome, PublishResult

logger = logging.getLogger(__name__)


class PublishOrchestrator:
    """Publishes cached artifacts.

    Parameters
    ----------
    config:
        Tool configuration (signing switch).
    cache:
        The local artifact cache.
    store:
        Object store opened with the ``build`` (read/write) profile.
    fetcher:
        Fetch orchestrator bound to the ``agent`` profile; used for the
        post-publish read-back.  The remote ``latest`` pointer is read with
        the build store.
    signer:
        Signs and verifies artifact blobs.
    """

    def __init__(
        self,
        config: PupistryConfig,
        cache: ArtifactCache,
        store: ObjectStore,
        fetcher: FetchOrchestrator,
        signer: Signer,
    ) -> None:
        self._config = config
        self._cache = cache
        self._store = store
        self._fetcher = fetcher
        self._signer = signer

    def publish(self, version: str | None = None) -> PublishResult:
        """Publish *version*, or the local ``latest`` when not given."""
        if version is not None:
            version = validate_version(version)
            logger.info("Uploading artifact version %s.", version)
        else:
            version = self._cache.current_version()
            if version is None:
                raise NothingToPublishError(
                    "No artifact has been built yet, nothing to publish. "
                    "You need to run pupistry build first?"
                )
            logger.info("Uploading artifact version latest (%s)", version)

        if version == read_latest_version(self._store):
            logger.warning("You've already pushed this artifact version, nothing to do.")
            return PublishResult(outcome=PublishOutcome.ALREADY_PUBLISHED, version=version)

        self._cache.require_version(version)

        signed = self._sign(version)

        uploads = [
            (self._cache.blob_path(version), artifact_key(version)),
            (self._cache.manifest_path(version), manifest_key(version)),
            # Pointer goes last.
            (self._cache.manifest_path(version), manifest_key(LATEST)),
        ]
        for local_path, key in uploads:
            self._store.upload(local_path, key)

        readback_ok = self._fetcher.check_readable(version)
        if not readback_ok:
            logger.error(
                "Version %s was published but could not be read back in agent mode. "
                "Check the store permissions before bootstrapping agents.",
                version,
            )

        logger.info("Upload of artifact version %s completed and is now latest", version)
        return PublishResult(
            outcome=PublishOutcome.PUBLISHED,
            version=version,
            signed=signed,
            uploaded_keys=[key for _, key in uploads],
            readback_ok=readback_ok,
        )

    def _sign(self, version: str) -> bool:
        if self._config.general.signing_disabled:
            logger.warning("You have signing *disabled*, whilst not critical it does weaken your security.")
            logger.warning("Skipping signing step...")
            return False

        blob = self._cache.blob_path(version)
        signature = self._signer.sign(blob, version)

        # The fresh signature must verify before it is written anywhere.
        if not self._signer.verify(blob, signature):
            raise SignatureMismatchError(
                f"Whilst a signature was generated for {version}, it could not be "
                "validated. This would suggest a bug in the signer."
            )

        manifest = self._cache.read_manifest(version).with_signature(signature)
        self._cache.write_manifest(manifest)
        self._cache.refresh_latest(version)
        logger.info("Signed artifact %s", version)
        return True
