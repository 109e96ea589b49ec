"""Install orchestrator — unpack, verify and install a fetched version.

Per-version state machine::

    fetched -> unpacked -> verified -> installed

``verify`` only runs on an unpacked version and ``install`` only on a
verified one, so there is no path that copies content whose signature was
not checked (unless checking is switched off in the configuration).
Unpacking is allowed from any state; it always deletes the scratch
directory first.

There is no rollback.  A failed install may leave the target partially
populated; running install again cleans the target first.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from pupistry.bridge.archiver import Archiver
from pupistry.bridge.secrets import SecretsBackend
from pupistry.bridge.signer import Signer
from pupistry.config import PupistryConfig
from pupistry.core.builder import PAYLOAD_DIR
from pupistry.core.cache import INSTALL_RECORD_NAME, ArtifactCache, read_manifest_file
from pupistry.core.errors import (
    ConfigurationError,
    ConsistencyError,
    InstallError,
    InvalidTransitionError,
    SignatureMismatchError,
)
from pupistry.core.hasher import validate_version
from pupistry.models.lifecycle import VALID_TRANSITIONS, InstallState

logger = logging.getLogger(__name__)

TARGET_MODE = 0o700


class InstallOrchestrator:
    """Moves cached artifacts into the agent's installation target.

    Parameters
    ----------
    config:
        Tool configuration; ``agent.puppetcode`` is the target directory and
        ``general.signing_disabled`` switches verification off.
    cache:
        The local artifact cache.
    archiver, signer, secrets:
        External collaborators.
    """

    def __init__(
        self,
        config: PupistryConfig,
        cache: ArtifactCache,
        *,
        archiver: Archiver,
        signer: Signer,
        secrets: SecretsBackend,
    ) -> None:
        self._config = config
        self._cache = cache
        self._archiver = archiver
        self._signer = signer
        self._secrets = secrets
        self._states: dict[str, InstallState] = {}

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def state(self, version: str) -> InstallState | None:
        """Current state of *version*, or ``None`` if it is not fetched."""
        if version in self._states:
            return self._states[version]
        if self._cache.has_version(version):
            return InstallState.FETCHED
        return None

    def _check_transition(self, version: str, target: InstallState) -> None:
        current = self.state(version)
        if current is None:
            raise ConsistencyError(
                f"The files expected for {version} do not appear to exist; "
                "fetch must run before install"
            )
        allowed = VALID_TRANSITIONS.get(current, set())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot move {version} from {current.value} to {target.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def unpack(self, version: str) -> Path:
        """Extract the cached blob into a fresh scratch directory."""
        version = validate_version(version)
        self._cache.require_version(version)
        self._check_transition(version, InstallState.UNPACKED)

        # A previous unpack may have been interrupted (crash, full disk).
        self._cache.clean_unpack(version)
        self._states.pop(version, None)

        scratch = self._cache.unpacked_path(version)
        scratch.mkdir(parents=True)
        self._archiver.extract(self._cache.blob_path(version), scratch)

        self._states[version] = InstallState.UNPACKED
        logger.debug("Successfully unpacked artifact %s", version)
        return scratch

    def verify(self, version: str) -> bool:
        """Check the manifest signature against the blob.

        Returns ``True`` when a signature was verified and ``False`` when
        checking is disabled.  Raises ``SignatureMismatchError`` otherwise.
        """
        version = validate_version(version)
        self._check_transition(version, InstallState.VERIFIED)

        if self._config.general.signing_disabled:
            logger.warning("You have signature validation *disabled*, whilst not critical it does weaken your security.")
            logger.warning("Skipping validation step...")
            self._states[version] = InstallState.VERIFIED
            return False

        manifest = self._cache.read_manifest(version)
        if not manifest.is_signed or manifest.signature is None:
            raise SignatureMismatchError(
                f"Artifact {version} is unsigned and signature checking is enabled"
            )
        if not self._signer.verify(self._cache.blob_path(version), manifest.signature):
            raise SignatureMismatchError(
                f"The signature could not be validated for artifact {version}. This could "
                "be a bug, a file corruption or a POSSIBLE SECURITY ISSUE such as "
                "maliciously modified content."
            )

        self._states[version] = InstallState.VERIFIED
        logger.info("Signature verified for artifact %s", version)
        return True

    def clean_install(self) -> Path:
        """Empty the installation target, creating it if necessary."""
        target = self._config.require_install_target()
        logger.debug("Cleaning up %s directory", target)
        if target.exists() and not target.is_dir():
            raise ConfigurationError(f"Installation target {target} exists and is not a directory")

        try:
            if target.is_dir():
                for child in target.iterdir():
                    if child.is_dir() and not child.is_symlink():
                        shutil.rmtree(child)
                    else:
                        child.unlink()
            else:
                target.mkdir(parents=True)
                os.chmod(target, TARGET_MODE)
        except OSError as exc:
            raise InstallError(f"Unable to prepare {target}: {exc}", step="clean-install") from exc
        return target

    def install(self, version: str) -> Path:
        """Copy the verified payload and install record into the target."""
        version = validate_version(version)
        self._check_transition(version, InstallState.INSTALLED)

        payload = self._cache.unpacked_path(version) / PAYLOAD_DIR
        if not payload.is_dir():
            raise ConsistencyError(
                f"The unpacked directory expected for {version} does not appear to "
                f"exist or is not readable: {payload}"
            )

        self._secrets.decrypt(payload)

        target = self.clean_install()
        try:
            shutil.copytree(payload, target, symlinks=True, dirs_exist_ok=True)
            shutil.copyfile(self._cache.manifest_path(version), target / INSTALL_RECORD_NAME)
        except OSError as exc:
            raise InstallError(
                f"An unexpected error occurred when copying the unpacked artifact to {target}: {exc}",
                step="install",
            ) from exc

        self._states[version] = InstallState.INSTALLED
        logger.info("Installed artifact %s into %s", version, target)
        return target

    def deploy(self, version: str) -> Path:
        """Unpack, verify and install *version* in one go."""
        self.unpack(version)
        self.verify(version)
        return self.install(version)

    # ------------------------------------------------------------------
    # Version helpers
    # ------------------------------------------------------------------

    def current_version(self) -> str | None:
        """Latest version fetched or built locally; does not touch the store."""
        return self._cache.current_version()

    def installed_version(self) -> str | None:
        """Version recorded in the installation target, or ``None``."""
        target = self._config.agent.puppetcode
        if target is None:
            logger.warning("agent.puppetcode is not configured, so no installed version can be read")
            return None
        if not target.is_dir():
            logger.warning("The destination path of %s does not appear to exist or is not readable", target)
            return None
        manifest = read_manifest_file(target / INSTALL_RECORD_NAME)
        if manifest is None:
            logger.warning("No current version installed")
            return None
        return manifest.version
