"""Shared test fixtures for Pupistry."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from pupistry.bridge.signer import Ed25519Signer, generate_keypair
from pupistry.bridge.storage import FilesystemObjectStore
from pupistry.config import AgentSettings, BuildSettings, GeneralSettings, PupistryConfig
from pupistry.core.cache import ArtifactCache
from pupistry.core.errors import SourceFetchError
from pupistry.core.orchestrator import Lifecycle

BUCKET = "puppet-artifacts"
PREFIX = "production/"
SOURCE = "git@example.com:ops/puppet-control.git"

DEFAULT_TREE: dict[str, str] = {
    "production/manifests/site.pp": "node default { include base }\n",
    "production/modules/base/manifests/init.pp": "class base {}\n",
    "production/hieradata/common.yaml": "ntp::servers: [pool.ntp.org]\n",
    "production/hieracrypt/encrypted/web01.yaml": "ENC[stale]\n",
    "production/hieracrypt/nodes/web01.pem": "-----BEGIN CERTIFICATE-----\n",
    "production/.git/HEAD": "ref: refs/heads/production\n",
}


# ---------------------------------------------------------------------------
# Fakes for external collaborators
# ---------------------------------------------------------------------------


class FakeSourceFetcher:
    """Writes a fixed tree under ``<cache>/puppetcode`` instead of running r10k."""

    def __init__(self, files: dict[str, str] | None = None) -> None:
        self.files = dict(DEFAULT_TREE if files is None else files)
        self.calls: list[tuple[str, Path]] = []
        self.fail = False

    def fetch(self, source: str, cache_dir: Path) -> Path:
        self.calls.append((source, cache_dir))
        if self.fail:
            raise SourceFetchError("r10k run did not complete", step="fetch-source")
        root = cache_dir / "puppetcode"
        for rel, content in self.files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return root


class RecordingStore:
    """Wraps an object store and records every upload in order."""

    def __init__(self, inner: FilesystemObjectStore) -> None:
        self.inner = inner
        self.uploads: list[str] = []

    def upload(self, local_path: Path, key: str) -> None:
        self.inner.upload(local_path, key)
        self.uploads.append(key)

    def download(self, key: str) -> bytes | None:
        return self.inner.download(key)

    def exists(self, key: str) -> bool:
        return self.inner.exists(key)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def keypair() -> tuple[str, str]:
    """Provide a fresh Ed25519 key-pair ``(private_hex, public_hex)``."""
    return generate_keypair()


@pytest.fixture
def store_root(tmp_dir: Path) -> Path:
    """Provide a store root with the test bucket already created."""
    root = tmp_dir / "store"
    (root / BUCKET).mkdir(parents=True)
    return root


@pytest.fixture
def make_config(
    tmp_dir: Path, store_root: Path, keypair: tuple[str, str]
) -> Callable[..., PupistryConfig]:
    """Factory fixture: build a PupistryConfig rooted in the temp directory."""
    private_key, public_key = keypair

    def _factory(
        *,
        signing_disabled: bool = False,
        install_target: Path | None = None,
    ) -> PupistryConfig:
        return PupistryConfig(
            general=GeneralSettings(
                app_cache=tmp_dir / "cache",
                store_root=store_root,
                bucket=BUCKET,
                prefix=PREFIX,
                signing_disabled=signing_disabled,
                signing_key=private_key,
                verify_key=public_key,
            ),
            build=BuildSettings(puppetcode=SOURCE),
            agent=AgentSettings(puppetcode=install_target or tmp_dir / "install"),
        )

    return _factory


@pytest.fixture
def config(make_config: Callable[..., PupistryConfig]) -> PupistryConfig:
    return make_config()


@pytest.fixture
def cache(config: PupistryConfig) -> ArtifactCache:
    """Provide the ArtifactCache for the default test config."""
    return ArtifactCache(config.general.app_cache)


@pytest.fixture
def source_fetcher() -> FakeSourceFetcher:
    return FakeSourceFetcher()


@pytest.fixture
def signer(keypair: tuple[str, str]) -> Ed25519Signer:
    private_key, public_key = keypair
    return Ed25519Signer(private_key, public_key)


@pytest.fixture
def make_lifecycle(
    store_root: Path, source_fetcher: FakeSourceFetcher
) -> Callable[[PupistryConfig], Lifecycle]:
    """Factory fixture: wire a Lifecycle with fakes and a recording build store."""

    def _factory(cfg: PupistryConfig) -> Lifecycle:
        return Lifecycle(
            cfg,
            source_fetcher=source_fetcher,
            build_store=RecordingStore(FilesystemObjectStore(store_root, BUCKET, PREFIX)),
            agent_store=FilesystemObjectStore(store_root, BUCKET, PREFIX, read_only=True),
        )

    return _factory


@pytest.fixture
def lifecycle(make_lifecycle: Callable[[PupistryConfig], Lifecycle], config: PupistryConfig) -> Lifecycle:
    """Provide a Lifecycle for the default test config."""
    return make_lifecycle(config)


@pytest.fixture
def built_version(lifecycle: Lifecycle) -> str:
    """Build once and return the new version."""
    return lifecycle.builder.build().version


@pytest.fixture
def agent(
    make_config: Callable[..., PupistryConfig],
    make_lifecycle: Callable[[PupistryConfig], Lifecycle],
    tmp_dir: Path,
) -> Lifecycle:
    """Agent-side Lifecycle: its own empty cache, sharing the store and install target."""
    cfg = make_config()
    cfg = cfg.model_copy(
        update={"general": cfg.general.model_copy(update={"app_cache": tmp_dir / "agent-cache"})}
    )
    return make_lifecycle(cfg)


@pytest.fixture
def published(lifecycle: Lifecycle, built_version: str) -> str:
    """Build, sign and publish once; return the version."""
    lifecycle.publisher.publish()
    return built_version
