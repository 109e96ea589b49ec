"""Outcome values returned by the lifecycle orchestrators.

A no-op (rebuilding identical content, re-publishing the current latest,
nothing to fetch) is a normal outcome, not an error, but callers need to
tell it apart from work that was actually done.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class BuildOutcome(str, Enum):
    BUILT = "built"
    UNCHANGED = "unchanged"  # checksum already present locally


class PublishOutcome(str, Enum):
    PUBLISHED = "published"
    ALREADY_PUBLISHED = "already_published"  # remote latest already points here


class FetchOutcome(str, Enum):
    DOWNLOADED = "downloaded"
    CACHED = "cached"  # manifest and blob already present locally
    NOT_FOUND = "not_found"


class BuildResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    outcome: BuildOutcome
    version: str


class PublishResult(BaseModel):
    """Result of a publish.

    ``readback_ok`` is ``None`` when nothing was uploaded.
    """

    model_config = ConfigDict(frozen=True)

    outcome: PublishOutcome
    version: str
    signed: bool = False
    uploaded_keys: list[str] = []
    readback_ok: bool | None = None


class FetchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    outcome: FetchOutcome
    version: str | None = None

    @property
    def found(self) -> bool:
        return self.outcome != FetchOutcome.NOT_FOUND
