"""Artifact manifest model — one record per version, serialized as YAML."""

from __future__ import annotations

import getpass
from datetime import datetime, timezone
from enum import Enum

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pupistry.core.hasher import is_valid_version


class SignatureState(str, Enum):
    """Whether the artifact blob carries a detached signature."""

    UNSIGNED = "unsigned"
    SIGNED = "signed"


def _builder_identity() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unlabelled"


class Manifest(BaseModel):
    """Metadata describing one artifact version.

    The same record is stored locally, remotely, inside the installation
    target (as the install record) and under the ``latest`` key, where it
    acts as a pointer to ``version``.
    """

    model_config = ConfigDict(frozen=True)

    version: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    builder: str = Field(default_factory=_builder_identity)
    signature_state: SignatureState = SignatureState.UNSIGNED
    signature: str | None = None  # hex Ed25519 signature over the blob

    @field_validator("version")
    @classmethod
    def _check_version(cls, value: str) -> str:
        if not is_valid_version(value):
            raise ValueError(f"not a valid artifact version: {value!r}")
        return value

    @model_validator(mode="after")
    def _check_signature(self) -> Manifest:
        if self.signature_state == SignatureState.SIGNED and not self.signature:
            raise ValueError("signed manifest is missing its signature")
        if self.signature_state == SignatureState.UNSIGNED and self.signature:
            raise ValueError("unsigned manifest must not carry a signature")
        return self

    @property
    def is_signed(self) -> bool:
        return self.signature_state == SignatureState.SIGNED

    def with_signature(self, signature: str) -> Manifest:
        """Return a signed copy of this manifest."""
        return Manifest(
            version=self.version,
            created_at=self.created_at,
            builder=self.builder,
            signature_state=SignatureState.SIGNED,
            signature=signature,
        )

    # ------------------------------------------------------------------
    # YAML
    # ------------------------------------------------------------------

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.model_dump(mode="json"), sort_keys=False)

    @classmethod
    def from_yaml(cls, text: str | bytes) -> Manifest:
        """Parse a manifest document.

        Raises ``ValueError`` (including pydantic's ``ValidationError`` and
        ``yaml.YAMLError`` wrapped) if the document is not a valid manifest.
        """
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ValueError(f"manifest is not valid YAML: {exc}") from exc
        if not isinstance(data, dict):
            raise ValueError("manifest document is not a mapping")
        return cls.model_validate(data)
