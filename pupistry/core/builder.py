"""Build orchestrator — turns the upstream Puppet code into a local artifact.

Steps:

1. Fetch the code tree with the source fetcher (r10k).
2. Encrypt secrets in the tree, if the secrets backend is enabled.
3. Tar ``puppetcode/`` uncompressed, applying the exclusion rules.
4. Checksum the tar; the checksum is the version.
5. If that version is already cached, discard the tar and stop.
6. Otherwise gzip, rename into the version slot, write an unsigned
   manifest and move the local ``latest`` pointer.

Only the local cache is written.  The temporary archive name differs from
every per-version name, so a failure part way never leaves an addressable
artifact behind.
"""

from __future__ import annotations

import logging

from pupistry.bridge.archiver import Archiver
from pupistry.bridge.secrets import SecretsBackend
from pupistry.bridge.source_fetch import SourceFetcher
from pupistry.config import PupistryConfig
from pupistry.core.cache import ArtifactCache
from pupistry.core.hasher import file_checksum
from pupistry.models.manifest import Manifest, SignatureState
from pupistry.models.outcomes import BuildOutcome, BuildResult

logger = logging.getLogger(__name__)

PAYLOAD_DIR = "puppetcode"

ALWAYS_EXCLUDE = [".git"]
# With secrets encryption on, ship only the encrypted copy; never the
# plaintext hieradata or the per-node key material.
SECRETS_ENABLED_EXCLUDE = ["hieradata", "hieracrypt/nodes"]
# With it off, any encrypted output lying around is stale.
SECRETS_DISABLED_EXCLUDE = ["hieracrypt/encrypted"]


def exclusion_rules(secrets_enabled: bool) -> list[str]:
    """Archive exclude patterns for the given secrets mode."""
    extra = SECRETS_ENABLED_EXCLUDE if secrets_enabled else SECRETS_DISABLED_EXCLUDE
    return [*ALWAYS_EXCLUDE, *extra]


class BuildOrchestrator:
    """Builds content-addressed artifacts into the local cache.

    Parameters
    ----------
    config:
        Tool configuration; ``build.puppetcode`` is the source locator.
    cache:
        The local artifact cache.
    source_fetcher, archiver, secrets:
        External collaborators.
    """

    def __init__(
        self,
        config: PupistryConfig,
        cache: ArtifactCache,
        *,
        source_fetcher: SourceFetcher,
        archiver: Archiver,
        secrets: SecretsBackend,
    ) -> None:
        self._config = config
        self._cache = cache
        self._source_fetcher = source_fetcher
        self._archiver = archiver
        self._secrets = secrets

    def build(self) -> BuildResult:
        """Run a full build.

        Returns a ``BuildResult`` whose outcome is ``BUILT`` for a new
        version or ``UNCHANGED`` when the content matches a cached version.
        Collaborator failures propagate as ``CollaboratorError``.
        """
        source = self._config.require_source()
        self._source_fetcher.fetch(source, self._cache.root)

        secrets_enabled = self._secrets.is_enabled()
        if secrets_enabled:
            self._secrets.encrypt(self._cache.root / PAYLOAD_DIR)

        logger.info("Creating artifact...")
        self._cache.ensure()
        temp_tar = self._cache.temp_archive_path
        self._archiver.archive(
            self._cache.root,
            [PAYLOAD_DIR],
            exclusion_rules(secrets_enabled),
            temp_tar,
        )

        version = file_checksum(temp_tar)

        if self._cache.has_manifest(version):
            # Encrypted secrets differ on every run, so with secrets enabled
            # this branch is effectively never taken.
            logger.warning("This artifact version (%s) has already been built, nothing to do.", version)
            logger.warning('Did you remember to "git push" your module changes?')
            temp_tar.unlink(missing_ok=True)
            return BuildResult(outcome=BuildOutcome.UNCHANGED, version=version)

        logger.info("Compressing artifact...")
        try:
            compressed = self._archiver.compress(temp_tar)
        finally:
            temp_tar.unlink(missing_ok=True)
        self._cache.store_blob(compressed, version)

        logger.info("Building manifest information for artifact...")
        self._cache.write_manifest(
            Manifest(version=version, signature_state=SignatureState.UNSIGNED)
        )
        self._cache.update_latest(version)

        logger.info("New artifact version %s ready for pushing", version)
        return BuildResult(outcome=BuildOutcome.BUILT, version=version)
