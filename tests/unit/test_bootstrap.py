"""Unit tests for agent bootstrap generation."""

from __future__ import annotations

import pytest
import yaml

from pupistry.config import load_config
from pupistry.core.bootstrap import agent_settings, render_agent_bootstrap
from pupistry.core.errors import ConfigurationError


class TestAgentBootstrap:
    def test_contains_what_agents_need(self, config):
        settings = agent_settings(config)
        assert settings["general"]["bucket"] == config.general.bucket
        assert settings["general"]["prefix"] == config.general.prefix
        assert settings["general"]["verify_key"] == config.general.verify_key
        assert settings["agent"]["puppetcode"] == str(config.agent.puppetcode)

    def test_never_leaks_build_secrets(self, config):
        rendered = render_agent_bootstrap(config)
        assert config.general.signing_key not in rendered
        assert config.build.puppetcode not in rendered
        assert "signing_key" not in rendered

    def test_output_loads_as_agent_config(self, config, tmp_path):
        path = tmp_path / "agent.yaml"
        path.write_text(render_agent_bootstrap(config), encoding="utf-8")
        loaded = load_config(path)
        assert loaded.general.bucket == config.general.bucket
        assert loaded.general.verify_key == config.general.verify_key
        assert loaded.agent.puppetcode == config.agent.puppetcode
        assert loaded.general.signing_key is None

    def test_requires_verify_key_when_signing(self, config):
        no_key = config.model_copy(
            update={"general": config.general.model_copy(update={"verify_key": None})}
        )
        with pytest.raises(ConfigurationError, match="verify_key"):
            agent_settings(no_key)

    def test_requires_bucket(self, config):
        no_bucket = config.model_copy(
            update={"general": config.general.model_copy(update={"bucket": None})}
        )
        with pytest.raises(ConfigurationError, match="general.bucket"):
            render_agent_bootstrap(no_bucket)

    def test_yaml_document(self, config):
        assert set(yaml.safe_load(render_agent_bootstrap(config))) == {"general", "agent", "secrets"}
