"""Unit tests for the tar archiver — exclusion rules, determinism, extraction."""

from __future__ import annotations

import tarfile
from pathlib import Path

import pytest

from pupistry.bridge.archiver import TarArchiver, is_excluded
from pupistry.core.builder import exclusion_rules
from pupistry.core.errors import ArchiveError
from pupistry.core.hasher import file_checksum


def _tree(root: Path, files: dict[str, str]) -> None:
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


def _names(archive: Path) -> set[str]:
    with tarfile.open(archive) as tar:
        return set(tar.getnames())


class TestExclusionMatching:
    def test_single_component_matches_anywhere(self):
        assert is_excluded("puppetcode/production/.git", [".git"])
        assert is_excluded("puppetcode/production/.git/HEAD", [".git"])
        assert is_excluded("puppetcode/production/modules/ntp/.git/config", [".git"])

    def test_multi_component_must_be_contiguous(self):
        assert is_excluded("puppetcode/prod/hieracrypt/nodes/web01.pem", ["hieracrypt/nodes"])
        assert not is_excluded("puppetcode/prod/hieracrypt/encrypted/nodes", ["hieracrypt/nodes"])

    def test_does_not_match_partial_names(self):
        assert not is_excluded("puppetcode/prod/.gitignore", [".git"])
        assert not is_excluded("puppetcode/prod/hieradata_docs/readme", ["hieradata"])

    def test_glob_components(self):
        assert is_excluded("puppetcode/prod/notes.swp", ["*.swp"])


class TestExclusionRules:
    def test_secrets_enabled_drops_plaintext(self):
        rules = exclusion_rules(secrets_enabled=True)
        assert ".git" in rules
        assert "hieradata" in rules
        assert "hieracrypt/nodes" in rules
        assert "hieracrypt/encrypted" not in rules

    def test_secrets_disabled_drops_stale_ciphertext(self):
        rules = exclusion_rules(secrets_enabled=False)
        assert ".git" in rules
        assert "hieracrypt/encrypted" in rules
        assert "hieradata" not in rules


class TestTarArchiver:
    @pytest.fixture
    def archiver(self) -> TarArchiver:
        return TarArchiver()

    @pytest.fixture
    def tree(self, tmp_path: Path) -> Path:
        root = tmp_path / "src"
        _tree(root, {
            "puppetcode/prod/manifests/site.pp": "node default {}\n",
            "puppetcode/prod/.git/HEAD": "ref\n",
            "puppetcode/prod/hieradata/common.yaml": "a: 1\n",
        })
        return root

    def test_archive_applies_exclusions(self, archiver: TarArchiver, tree: Path, tmp_path: Path):
        out = tmp_path / "out.tar"
        archiver.archive(tree, ["puppetcode"], [".git"], out)
        names = _names(out)
        assert "puppetcode/prod/manifests/site.pp" in names
        assert "puppetcode/prod/hieradata/common.yaml" in names
        assert not any(".git" in name.split("/") for name in names)

    def test_identical_trees_produce_identical_archives(self, archiver: TarArchiver, tmp_path: Path):
        """Separate trees with the same content must yield the same version."""
        files = {
            "puppetcode/b.pp": "b\n",
            "puppetcode/a/one.pp": "1\n",
            "puppetcode/a/two.pp": "2\n",
        }
        first = tmp_path / "first"
        second = tmp_path / "second"
        _tree(first, files)
        _tree(second, dict(reversed(list(files.items()))))

        archiver.archive(first, ["puppetcode"], [], tmp_path / "1.tar")
        archiver.archive(second, ["puppetcode"], [], tmp_path / "2.tar")
        assert file_checksum(tmp_path / "1.tar") == file_checksum(tmp_path / "2.tar")

    def test_members_are_normalized(self, archiver: TarArchiver, tree: Path, tmp_path: Path):
        out = tmp_path / "out.tar"
        archiver.archive(tree, ["puppetcode"], [], out)
        with tarfile.open(out) as tar:
            members = tar.getmembers()
        assert [m.name for m in members] == sorted(m.name for m in members)
        for member in members:
            assert member.mtime == 0
            assert member.uid == 0 and member.gid == 0

    def test_nothing_to_archive_fails(self, archiver: TarArchiver, tree: Path, tmp_path: Path):
        with pytest.raises(ArchiveError, match="Nothing to archive"):
            archiver.archive(tree, ["puppetcode"], ["puppetcode"], tmp_path / "out.tar")

    def test_missing_path_fails(self, archiver: TarArchiver, tmp_path: Path):
        with pytest.raises(ArchiveError) as exc_info:
            archiver.archive(tmp_path, ["puppetcode"], [], tmp_path / "out.tar")
        assert exc_info.value.step == "archive"

    def test_compress_replaces_source(self, archiver: TarArchiver, tree: Path, tmp_path: Path):
        out = tmp_path / "out.tar"
        archiver.archive(tree, ["puppetcode"], [], out)
        compressed = archiver.compress(out)
        assert compressed.name == "out.tar.gz"
        assert compressed.is_file()
        assert not out.exists()

    def test_compress_is_deterministic(self, archiver: TarArchiver, tree: Path, tmp_path: Path):
        blobs = []
        for name in ("a.tar", "b.tar"):
            out = tmp_path / name
            archiver.archive(tree, ["puppetcode"], [], out)
            blobs.append(archiver.compress(out).read_bytes())
        assert blobs[0] == blobs[1]

    def test_extract_roundtrip(self, archiver: TarArchiver, tree: Path, tmp_path: Path):
        out = tmp_path / "out.tar"
        archiver.archive(tree, ["puppetcode"], [".git"], out)
        blob = archiver.compress(out)
        dest = tmp_path / "dest"
        dest.mkdir()
        archiver.extract(blob, dest)
        assert (dest / "puppetcode/prod/manifests/site.pp").read_text() == "node default {}\n"
        assert not (dest / "puppetcode/prod/.git").exists()

    def test_extract_corrupt_blob_fails(self, archiver: TarArchiver, tmp_path: Path):
        blob = tmp_path / "bad.tar.gz"
        blob.write_bytes(b"not gzip at all")
        dest = tmp_path / "dest"
        dest.mkdir()
        with pytest.raises(ArchiveError) as exc_info:
            archiver.extract(blob, dest)
        assert exc_info.value.step == "unpack"
