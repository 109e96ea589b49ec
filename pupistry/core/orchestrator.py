"""Lifecycle wiring — builds the cache, collaborators and orchestrators.

``Lifecycle`` is the one place that turns a ``PupistryConfig`` into working
components.  Any collaborator may be injected instead of the default, which
is how the tests drive the orchestrators without r10k or a shared mount.
"""

from __future__ import annotations

from pupistry.bridge.archiver import Archiver, TarArchiver
from pupistry.bridge.secrets import CommandSecrets, SecretsBackend
from pupistry.bridge.signer import Ed25519Signer, Signer
from pupistry.bridge.source_fetch import R10kFetcher, SourceFetcher
from pupistry.bridge.storage import ObjectStore, open_store
from pupistry.config import PupistryConfig
from pupistry.core.builder import BuildOrchestrator
from pupistry.core.cache import ArtifactCache
from pupistry.core.fetcher import FetchOrchestrator
from pupistry.core.installer import InstallOrchestrator
from pupistry.core.publisher import PublishOrchestrator


class Lifecycle:
    """Artifact lifecycle for one configuration.

    Stores are opened lazily, so commands that never touch the store (build,
    install from cache) do not require a bucket to be configured.

    Parameters
    ----------
    config:
        The tool configuration.
    source_fetcher, archiver, signer, secrets:
        Optional collaborator overrides.
    build_store, agent_store:
        Optional store overrides for the build and agent access modes.
    """

    def __init__(
        self,
        config: PupistryConfig,
        *,
        source_fetcher: SourceFetcher | None = None,
        archiver: Archiver | None = None,
        signer: Signer | None = None,
        secrets: SecretsBackend | None = None,
        build_store: ObjectStore | None = None,
        agent_store: ObjectStore | None = None,
    ) -> None:
        self.config = config
        self.cache = ArtifactCache(config.general.app_cache)

        self.source_fetcher = source_fetcher or R10kFetcher(config.build.r10k_command)
        self.archiver = archiver or TarArchiver()
        self.signer = signer or Ed25519Signer(
            config.general.signing_key, config.general.verify_key
        )
        self.secrets = secrets or CommandSecrets(
            config.secrets.enabled,
            config.secrets.encrypt_command,
            config.secrets.decrypt_command,
        )
        self._build_store = build_store
        self._agent_store = agent_store
        self._installer: InstallOrchestrator | None = None

    # ------------------------------------------------------------------
    # Stores
    # ------------------------------------------------------------------

    @property
    def build_store(self) -> ObjectStore:
        if self._build_store is None:
            self._build_store = open_store(self.config, "build")
        return self._build_store

    @property
    def agent_store(self) -> ObjectStore:
        if self._agent_store is None:
            self._agent_store = open_store(self.config, "agent")
        return self._agent_store

    # ------------------------------------------------------------------
    # Orchestrators
    # ------------------------------------------------------------------

    @property
    def builder(self) -> BuildOrchestrator:
        return BuildOrchestrator(
            self.config,
            self.cache,
            source_fetcher=self.source_fetcher,
            archiver=self.archiver,
            secrets=self.secrets,
        )

    @property
    def fetcher(self) -> FetchOrchestrator:
        return FetchOrchestrator(self.cache, self.agent_store)

    @property
    def publisher(self) -> PublishOrchestrator:
        return PublishOrchestrator(
            self.config, self.cache, self.build_store, self.fetcher, self.signer
        )

    @property
    def installer(self) -> InstallOrchestrator:
        if self._installer is None:
            self._installer = InstallOrchestrator(
                self.config,
                self.cache,
                archiver=self.archiver,
                signer=self.signer,
                secrets=self.secrets,
            )
        return self._installer
