"""Tests for API key resolution."""
from __future__ import annotations

import pytest

from bgm_scout.errors import ConfigurationError
from bgm_scout.ingestion.credentials import (
    CredentialProvider,
    config_strategy,
    env_strategy,
    file_strategy,
)


class TestStrategies:
    def test_env(self, monkeypatch):
        monkeypatch.setenv("BGM_TEST_KEY", "  abc123  ")
        assert env_strategy("BGM_TEST_KEY")() == "abc123"

    def test_env_missing(self, monkeypatch):
        monkeypatch.delenv("BGM_TEST_KEY", raising=False)
        assert env_strategy("BGM_TEST_KEY")() is None

    def test_blank_config_value(self):
        assert config_strategy({"api_key": "   "})() is None

    def test_file(self, tmp_path):
        key_file = tmp_path / "api_key"
        key_file.write_text("filekey\n")
        assert file_strategy(key_file)() == "filekey"

    def test_file_missing(self, tmp_path):
        assert file_strategy(tmp_path / "absent")() is None


class TestCredentialProvider:
    def test_first_source_wins(self):
        provider = CredentialProvider([
            config_strategy({"api_key": None}),
            config_strategy({"api_key": "second"}),
            config_strategy({"api_key": "third"}),
        ])
        assert provider.resolve() == "second"

    def test_unreadable_source_skipped(self):
        def broken():
            raise PermissionError("denied")

        broken.__name__ = "broken"
        provider = CredentialProvider([broken, config_strategy({"api_key": "ok"})])
        assert provider.resolve() == "ok"

    def test_nothing_found(self):
        with pytest.raises(ConfigurationError):
            CredentialProvider([config_strategy({})]).resolve()

    def test_default_prefers_env(self, monkeypatch):
        monkeypatch.setenv("YOUTUBE_API_KEY", "from-env")
        provider = CredentialProvider.default({"api_key": "from-config"})
        assert provider.resolve() == "from-env"
