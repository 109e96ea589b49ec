"""Agent bootstrap material, generated on the build machine.

The build machine hands a new agent everything it needs to fetch and verify
artifacts: the store location, the install target and the public
verification key.  The signing seed is never included.
"""

from __future__ import annotations

from typing import Any

import yaml

from pupistry.config import PupistryConfig
from pupistry.core.errors import ConfigurationError


def agent_settings(config: PupistryConfig) -> dict[str, Any]:
    """Settings mapping for an agent's ``settings.yaml``."""
    bucket = config.require_bucket()
    if not config.general.signing_disabled and not config.general.verify_key:
        raise ConfigurationError(
            "Signing is enabled but general.verify_key is not set; agents would be "
            "unable to verify artifacts"
        )

    agent = config.agent
    return {
        "general": {
            "store_root": str(config.general.store_root),
            "bucket": bucket,
            "prefix": config.general.prefix,
            "signing_disabled": config.general.signing_disabled,
            "verify_key": config.general.verify_key,
        },
        "agent": {
            "puppetcode": str(agent.puppetcode) if agent.puppetcode else None,
        },
        "secrets": {
            "enabled": config.secrets.enabled,
            "decrypt_command": config.secrets.decrypt_command,
        },
    }


def render_agent_bootstrap(config: PupistryConfig) -> str:
    return yaml.safe_dump(agent_settings(config), sort_keys=False)
