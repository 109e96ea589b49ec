"""Pupistry data models — Pydantic v2, frozen."""

from pupistry.models.lifecycle import VALID_TRANSITIONS, InstallState
from pupistry.models.manifest import Manifest, SignatureState
from pupistry.models.outcomes import (
    BuildOutcome,
    BuildResult,
    FetchOutcome,
    FetchResult,
    PublishOutcome,
    PublishResult,
)

__all__ = [
    # manifest
    "Manifest",
    "SignatureState",
    # outcomes
    "BuildOutcome",
    "BuildResult",
    "PublishOutcome",
    "PublishResult",
    "FetchOutcome",
    "FetchResult",
    # lifecycle
    "InstallState",
    "VALID_TRANSITIONS",
]
