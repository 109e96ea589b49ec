"""Source fetch bridge — materializes the Puppet code tree with r10k.

r10k does all the git work: it follows the control repository given as the
source locator, resolves every module it references, and deploys the result
under ``<cache>/puppetcode``.  We generate its configuration file and run it
as an external process.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path
from typing import Protocol, runtime_checkable

import yaml

from pupistry.core.errors import SourceFetchError

logger = logging.getLogger(__name__)

R10K_CONFIG_NAME = "r10kconfig.yaml"


@runtime_checkable
class SourceFetcher(Protocol):
    """Populates a working tree from a remote source locator."""

    def fetch(self, source: str, cache_dir: Path) -> Path:
        """Materialize *source* under *cache_dir* and return the tree root."""
        ...


def write_r10k_config(source: str, cache_dir: Path) -> Path:
    """Write the r10k descriptor file and return its path."""
    config = {
        "cachedir": str(cache_dir / "r10kcache"),
        "sources": {
            "puppet": {
                "remote": source,
                "basedir": str(cache_dir / "puppetcode"),
            }
        },
    }
    path = cache_dir / R10K_CONFIG_NAME
    cache_dir.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(config, sort_keys=False), encoding="utf-8")
    return path


class R10kFetcher:
    """Runs ``r10k deploy environment`` against a generated config.

    Parameters
    ----------
    command:
        The r10k executable, optionally with extra leading arguments.
    """

    def __init__(self, command: str = "r10k") -> None:
        self._command = shlex.split(command)

    def fetch(self, source: str, cache_dir: Path) -> Path:
        logger.info("Using r10k utility to fetch the latest Puppet code")
        try:
            config_path = write_r10k_config(source, cache_dir)
        except OSError as exc:
            raise SourceFetchError(
                f"Unable to write the r10k configuration file: {exc}", step="fetch-source"
            ) from exc

        argv = [*self._command, "deploy", "environment", "-c", str(config_path), "-pv", "debug"]
        logger.debug("Executing %s", shlex.join(argv))
        try:
            result = subprocess.run(argv, cwd=cache_dir, check=False)
        except OSError as exc:
            raise SourceFetchError(f"Unable to execute r10k: {exc}", step="fetch-source") from exc

        if result.returncode != 0:
            raise SourceFetchError(
                f"r10k run did not complete (exit {result.returncode}), unable to generate artifact",
                step="fetch-source",
            )
        logger.info("r10k run completed")
        return cache_dir / "puppetcode"
