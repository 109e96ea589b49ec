"""Secrets bridge — external encryption of the hieradata subtree.

When enabled, the build encrypts secrets into ``hieracrypt/encrypted`` before
archiving, and agents decrypt them after unpacking.  The encryption itself is
done by external commands; this module only decides when to call them.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path
from typing import Protocol, runtime_checkable

from pupistry.core.errors import ConfigurationError, SecretsError

logger = logging.getLogger(__name__)


@runtime_checkable
class SecretsBackend(Protocol):
    def is_enabled(self) -> bool: ...

    def encrypt(self, tree: Path) -> None: ...

    def decrypt(self, tree: Path) -> None: ...


class CommandSecrets:
    """Runs operator-configured encrypt/decrypt commands.

    ``{path}`` in a command template is replaced with the tree being
    processed.  A disabled backend does nothing.
    """

    def __init__(
        self,
        enabled: bool = False,
        encrypt_command: str | None = None,
        decrypt_command: str | None = None,
    ) -> None:
        self._enabled = enabled
        self._encrypt = encrypt_command
        self._decrypt = decrypt_command

    def is_enabled(self) -> bool:
        return self._enabled

    def encrypt(self, tree: Path) -> None:
        if self._enabled:
            self._run(self._encrypt, tree, step="encrypt-secrets")

    def decrypt(self, tree: Path) -> None:
        if self._enabled:
            self._run(self._decrypt, tree, step="decrypt-secrets")

    @staticmethod
    def _run(template: str | None, tree: Path, *, step: str) -> None:
        if not template:
            raise ConfigurationError(
                f"Secrets encryption is enabled but no command is configured for {step}"
            )
        argv = [part.replace("{path}", str(tree)) for part in shlex.split(template)]
        logger.debug("Executing %s", shlex.join(argv))
        try:
            result = subprocess.run(argv, check=False)
        except OSError as exc:
            raise SecretsError(f"Unable to execute {argv[0]}: {exc}", step=step) from exc
        if result.returncode != 0:
            raise SecretsError(f"{argv[0]} exited with status {result.returncode}", step=step)
