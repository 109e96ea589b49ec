"""Error taxonomy for the artifact lifecycle.

Four families, matching how the CLI reports them:

- ``ConfigurationError``: a required setting is missing or invalid.  Raised
  before the affected operation has any side effect.
- ``CollaboratorError``: an external tool or the object store failed.  The
  ``step`` attribute names what was being attempted.
- ``ConsistencyError``: a file that must exist does not.  Indicates a bug or
  an operator deleting cache files underneath us.
- ``ArtifactIntegrityError``: security-relevant.  A signature did not verify,
  or the store handed back a version identifier that is not a checksum.

No-op conditions (identical rebuild, re-publish of the current latest,
nothing found remotely) are outcome values, not exceptions.
"""

from __future__ import annotations


class PupistryError(RuntimeError):
    """Base class for every failure raised by the lifecycle core."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(PupistryError):
    """Raised when a required setting is missing or has an unusable value."""


class InvalidVersionError(ConfigurationError):
    """Raised when an operator-supplied version string is not a checksum."""


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class CollaboratorError(PupistryError):
    """Raised when an external tool or service call fails.

    Parameters
    ----------
    message:
        Human readable description of the failure.
    step:
        Short name of the lifecycle step that invoked the collaborator,
        e.g. ``"archive"`` or ``"upload"``.
    """

    def __init__(self, message: str, *, step: str = "") -> None:
        super().__init__(f"{step}: {message}" if step else message)
        self.step = step


class SourceFetchError(CollaboratorError):
    """The source-tree fetch tool failed."""


class ArchiveError(CollaboratorError):
    """Archiving, compression or extraction failed."""


class SigningError(CollaboratorError):
    """The signer could not produce a signature."""


class StorageError(CollaboratorError):
    """The object store rejected or failed a request."""


class SecretsError(CollaboratorError):
    """The secrets encryption subsystem failed."""


class InstallError(CollaboratorError):
    """Copying content into the installation target failed."""


# ---------------------------------------------------------------------------
# Consistency
# ---------------------------------------------------------------------------


class ConsistencyError(PupistryError):
    """Raised when a file expected by the cache invariants is missing."""


class NothingToPublishError(ConsistencyError):
    """Raised when publish is requested before anything has been built."""


class InvalidTransitionError(PupistryError):
    """Raised when an install step is requested out of order."""


# ---------------------------------------------------------------------------
# Integrity (security relevant)
# ---------------------------------------------------------------------------


class ArtifactIntegrityError(PupistryError):
    """Raised when an artifact cannot be trusted.

    This could be a bug, a file corruption or maliciously modified content
    in the store.  It must block installation.
    """


class SignatureMismatchError(ArtifactIntegrityError):
    """The manifest signature does not verify against the artifact blob."""


class MalformedVersionError(ArtifactIntegrityError):
    """A version identifier read from the store failed format validation."""
