"""Unit tests for the fetch orchestrator."""

from __future__ import annotations

import pytest

from pupistry.core.errors import ConsistencyError, InvalidVersionError
from pupistry.core.orchestrator import Lifecycle
from pupistry.models.outcomes import FetchOutcome


class TestFetch:
    def test_nothing_published(self, agent: Lifecycle):
        result = agent.fetcher.fetch()
        assert result.outcome == FetchOutcome.NOT_FOUND
        assert not result.found
        assert agent.fetcher.latest_version() is None

    def test_fetch_latest(self, agent: Lifecycle, published: str):
        result = agent.fetcher.fetch()

        assert result.outcome == FetchOutcome.DOWNLOADED
        assert result.version == published
        assert agent.cache.has_version(published)
        assert agent.cache.read_manifest(published).is_signed

    def test_fetch_latest_moves_local_latest(self, agent: Lifecycle, published: str):
        agent.fetcher.fetch()
        assert agent.cache.current_version() == published
        assert agent.installer.current_version() == published

    def test_cached_latest_moves_local_latest(self, agent: Lifecycle, published: str):
        """A version fetched explicitly earlier still becomes latest when it is the remote latest."""
        agent.fetcher.fetch(published)
        assert agent.fetcher.fetch().outcome == FetchOutcome.CACHED
        assert agent.cache.current_version() == published

    def test_explicit_fetch_leaves_local_latest(self, agent: Lifecycle, published: str):
        agent.fetcher.fetch(published)
        assert agent.cache.current_version() is None

    def test_prune_keeps_fetched_latest(self, agent: Lifecycle, published: str):
        agent.fetcher.fetch()
        assert agent.cache.prune() == []
        assert agent.cache.list_versions() == [published]

    def test_fetch_explicit_version(self, agent: Lifecycle, published: str):
        assert agent.fetcher.fetch(published).outcome == FetchOutcome.DOWNLOADED

    def test_second_fetch_is_cached(self, agent: Lifecycle, published: str):
        agent.fetcher.fetch()
        result = agent.fetcher.fetch()
        assert result.outcome == FetchOutcome.CACHED
        assert result.version == published

    def test_unknown_version_writes_nothing(self, agent: Lifecycle, published: str):
        missing = "f" * 32
        result = agent.fetcher.fetch(missing)
        assert result.outcome == FetchOutcome.NOT_FOUND
        assert result.version == missing
        assert not agent.cache.has_manifest(missing)
        assert not agent.cache.has_blob(missing)

    def test_operator_version_validated(self, agent: Lifecycle):
        with pytest.raises(InvalidVersionError):
            agent.fetcher.fetch("latest")

    def test_manifest_without_blob(self, agent: Lifecycle, published: str, store_root, config):
        bucket_dir = store_root / config.general.bucket / config.general.prefix
        (bucket_dir / f"artifact.{published}.tar.gz").unlink()

        with pytest.raises(ConsistencyError, match="no artifact blob"):
            agent.fetcher.fetch()
        assert not agent.cache.has_manifest(published)


class TestReadBack:
    def test_readable(self, lifecycle: Lifecycle, published: str):
        assert lifecycle.fetcher.check_readable(published) is True

    def test_unreadable(self, lifecycle: Lifecycle):
        assert lifecycle.fetcher.check_readable("e" * 32) is False
