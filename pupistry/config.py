"""Configuration — YAML settings file plus PUPISTRY_* environment overrides.

One ``PupistryConfig`` value is built at the CLI boundary and handed to every
component that needs it.  Nothing reads configuration from module state.

Settings file layout (``settings.yaml``)::

    general:
      app_cache: ~/.pupistry/cache
      store_root: /srv/pupistry-store
      bucket: example-puppet-artifacts
      prefix: production/
      signing_disabled: false
      signing_key: <hex ed25519 seed>      # build machines only
      verify_key: <hex ed25519 public key>
    build:
      puppetcode: git@example.com:ops/puppet-control.git
    agent:
      puppetcode: /etc/puppetlabs/code/environments
    secrets:
      enabled: false

Environment overrides use ``__`` for nesting::

    export PUPISTRY_GENERAL__BUCKET=example-puppet-artifacts
    export PUPISTRY_LOG_LEVEL=DEBUG
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pupistry.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

StoreMode = Literal["build", "agent"]


class GeneralSettings(BaseModel):
    app_cache: Path = Path(".pupistry/cache")
    store_root: Path = Path(".pupistry/store")
    bucket: str | None = None
    prefix: str = ""
    signing_disabled: bool = False
    signing_key: str | None = None
    verify_key: str | None = None

    @field_validator("app_cache", "store_root")
    @classmethod
    def _expand_home(cls, value: Path) -> Path:
        return value.expanduser()


class BuildSettings(BaseModel):
    puppetcode: str | None = None  # upstream source locator
    r10k_command: str = "r10k"


class AgentSettings(BaseModel):
    puppetcode: Path | None = None  # installation target

    @field_validator("puppetcode", mode="before")
    @classmethod
    def _empty_is_unset(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class SecretsSettings(BaseModel):
    enabled: bool = False
    encrypt_command: str | None = None  # "{path}" is replaced with the tree
    decrypt_command: str | None = None


class PupistryConfig(BaseSettings):
    """Complete tool configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PUPISTRY_",
        env_nested_delimiter="__",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"

    general: GeneralSettings = GeneralSettings()
    build: BuildSettings = BuildSettings()
    agent: AgentSettings = AgentSettings()
    secrets: SecretsSettings = SecretsSettings()

    def require_bucket(self) -> str:
        if not self.general.bucket:
            raise ConfigurationError(
                "You must set general.bucket in the settings file "
                "(or PUPISTRY_GENERAL__BUCKET)"
            )
        return self.general.bucket

    def require_source(self) -> str:
        if not self.build.puppetcode:
            raise ConfigurationError(
                "You must configure the build.puppetcode option in the settings file"
            )
        return self.build.puppetcode

    def require_install_target(self) -> Path:
        if self.agent.puppetcode is None:
            raise ConfigurationError(
                "You must configure agent.puppetcode, the location the Puppet "
                "code is installed to"
            )
        return self.agent.puppetcode


def load_config(path: Path | None = None, **overrides: Any) -> PupistryConfig:
    """Build the configuration from an optional YAML settings file.

    Values from the file take priority over environment variables; explicit
    *overrides* take priority over both.

    Raises
    ------
    ConfigurationError
        If the file is missing, unparseable, or fails validation.
    """
    data: dict[str, Any] = {}
    if path is not None:
        if not path.is_file():
            raise ConfigurationError(f"Settings file not found: {path}")
        try:
            loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Unable to parse settings file {path}: {exc}") from exc
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"Settings file {path} must contain a mapping")
        data.update(loaded)
        logger.debug("Loaded settings from %s", path)
    data.update(overrides)

    try:
        return PupistryConfig(**data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc
