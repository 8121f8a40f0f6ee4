"""
Tests for YAML configuration loading.
"""

import pytest

from config import CONFIG_ENV_VAR, ConfigurationManager, get_config


class TestConfigurationManager:

    def test_dot_notation(self):
        assert get_config("llm.model") == "gpt-4-turbo-preview"
        assert get_config("cache.ttl_seconds") == 86400
        assert get_config("input.max_upload_bytes") == 10 * 1024 * 1024

    def test_missing_key_returns_default(self):
        assert get_config("llm.nonexistent", "fallback") == "fallback"
        assert get_config("llm.model.deeper", 7) == 7

    def test_singleton(self):
        assert ConfigurationManager() is ConfigurationManager()

    def test_relative_paths_resolved(self):
        from pathlib import Path
        assert Path(get_config("paths.output_dir")).is_absolute()

    def test_environment_variable_selects_file(self, tmp_path, monkeypatch):
        settings = tmp_path / "settings.yaml"
        settings.write_text("llm:\n  model: gpt-4\ncache:\n  ttl_seconds: 60\n", encoding="utf-8")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(settings))
        ConfigurationManager.reset()

        assert get_config("llm.model") == "gpt-4"
        assert get_config("cache.ttl_seconds") == 60
        assert get_config("input.max_upload_bytes") is None

    def test_reset_rereads_edited_file(self, tmp_path, monkeypatch):
        settings = tmp_path / "settings.yaml"
        settings.write_text("llm:\n  model: gpt-4\n", encoding="utf-8")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(settings))
        ConfigurationManager.reset()
        assert get_config("llm.model") == "gpt-4"

        settings.write_text("llm:\n  model: gpt-3.5-turbo\n", encoding="utf-8")
        ConfigurationManager.reset()

        assert get_config("llm.model") == "gpt-3.5-turbo"

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConfigurationManager(str(tmp_path / "missing.yaml"))
