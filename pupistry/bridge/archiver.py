"""Archive bridge — deterministic tar archives, gzip compression, extraction.

Archives are built uncompressed first so the version checksum is taken over
the tar stream, which is stable, rather than the gzip stream.  Entries are
written in sorted POSIX order with owner and mtime normalized, so two trees
with identical content produce byte-identical archives.

Exclusion patterns follow ``tar --exclude`` semantics: an unanchored
sequence of path components, each component a glob, matched anywhere in the
member path.  ``.git`` excludes every ``.git`` directory;
``hieracrypt/nodes`` excludes ``puppetcode/prod/hieracrypt/nodes`` and all
of its content.
"""

from __future__ import annotations

import gzip
import logging
import os
import shutil
import tarfile
from collections.abc import Iterable, Iterator, Sequence
from fnmatch import fnmatchcase
from pathlib import Path, PurePosixPath
from typing import Protocol, runtime_checkable

from pupistry.core.errors import ArchiveError

logger = logging.getLogger(__name__)


@runtime_checkable
class Archiver(Protocol):
    """Archive, compress and extract collaborator."""

    def archive(
        self, root: Path, paths: Sequence[str], exclude: Sequence[str], output: Path
    ) -> None:
        """Write an uncompressed tar of *paths* (relative to *root*) to *output*."""
        ...

    def compress(self, path: Path) -> Path:
        """Gzip *path* in place and return the ``.gz`` path."""
        ...

    def extract(self, archive: Path, dest: Path) -> None:
        """Extract a ``.tar.gz`` archive into *dest*."""
        ...


def is_excluded(member: str, patterns: Iterable[str]) -> bool:
    """Return ``True`` if the POSIX member path matches any exclude pattern."""
    parts = PurePosixPath(member).parts
    for pattern in patterns:
        wanted = PurePosixPath(pattern).parts
        if not wanted:
            continue
        span = len(wanted)
        for start in range(len(parts) - span + 1):
            window = parts[start : start + span]
            if all(fnmatchcase(p, w) for p, w in zip(window, wanted)):
                return True
    return False


class TarArchiver:
    """``tarfile``/``gzip`` implementation of the archive collaborator."""

    def archive(
        self, root: Path, paths: Sequence[str], exclude: Sequence[str], output: Path
    ) -> None:
        members = sorted(self._walk(root, paths, exclude))
        if not members:
            raise ArchiveError(f"Nothing to archive under {root} ({', '.join(paths)})", step="archive")

        logger.debug("Archiving %d entries from %s into %s", len(members), root, output)
        output.parent.mkdir(parents=True, exist_ok=True)
        try:
            with tarfile.open(output, mode="w", format=tarfile.GNU_FORMAT) as tar:
                for rel in members:
                    self._add(tar, root / rel, rel)
        except OSError as exc:
            output.unlink(missing_ok=True)
            raise ArchiveError(f"Unable to create tarball {output}: {exc}", step="archive") from exc

    def compress(self, path: Path) -> Path:
        target = path.with_name(path.name + ".gz")
        try:
            with open(path, "rb") as src, gzip.GzipFile(
                filename=target, mode="wb", mtime=0
            ) as dst:
                shutil.copyfileobj(src, dst)
        except OSError as exc:
            target.unlink(missing_ok=True)
            raise ArchiveError(
                f"An unexpected error occurred during compression of {path}: {exc}",
                step="compress",
            ) from exc
        path.unlink()
        return target

    def extract(self, archive: Path, dest: Path) -> None:
        try:
            with tarfile.open(archive, mode="r:gz") as tar:
                tar.extractall(dest, filter="data")
        except (OSError, tarfile.TarError) as exc:
            raise ArchiveError(f"Unable to unpack {archive} to {dest}: {exc}", step="unpack") from exc

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _walk(root: Path, paths: Sequence[str], exclude: Sequence[str]) -> Iterator[str]:
        for top in paths:
            start = root / top
            if not start.exists():
                raise ArchiveError(f"Path to archive does not exist: {start}", step="archive")
            if is_excluded(top, exclude):
                continue
            yield PurePosixPath(top).as_posix()
            if not start.is_dir() or start.is_symlink():
                continue
            for dirpath, dirnames, filenames in os.walk(start):
                rel_dir = Path(dirpath).relative_to(root).as_posix()
                kept = []
                for name in sorted(dirnames):
                    rel = f"{rel_dir}/{name}"
                    if is_excluded(rel, exclude):
                        continue
                    kept.append(name)
                    yield rel
                dirnames[:] = kept
                for name in filenames:
                    rel = f"{rel_dir}/{name}"
                    if not is_excluded(rel, exclude):
                        yield rel

    @staticmethod
    def _add(tar: tarfile.TarFile, path: Path, arcname: str) -> None:
        info = tar.gettarinfo(str(path), arcname=arcname)
        info.uid = info.gid = 0
        info.uname = info.gname = ""
        info.mtime = 0
        if info.isreg():
            with open(path, "rb") as fh:
                tar.addfile(info, fh)
        else:
            tar.addfile(info)
