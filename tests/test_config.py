"""Tests for configuration loading and settings resolution."""

import pytest

from newsdigest.core.config import (
    DEFAULT_STRATEGIES,
    load_config,
    missing_requirements,
    resolve_settings,
)
from newsdigest.core.errors import ConfigError


class TestLoadConfig:

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_empty_file_raises(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        with pytest.raises(ValueError):
            load_config(path)

    def test_loads_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("stocks:\n  - symbol: AAPL\n    name: Apple Inc.\n", encoding="utf-8")
        assert load_config(path) == {"stocks": [{"symbol": "AAPL", "name": "Apple Inc."}]}


class TestResolveSettings:

    def test_defaults(self):
        settings = resolve_settings({}, environ={})

        assert settings.fetch.strategies == DEFAULT_STRATEGIES
        assert settings.fetch.timeout_seconds == 60
        assert settings.fetch.temp_dir == "."
        assert settings.analyzer.provider == "xai"
        assert settings.analyzer.model == "grok-3"
        assert settings.analyzer.base_url == "https://api.x.ai/v1"
        assert settings.store.backend == "sqlite"
        assert settings.store.display_utc_offset_hours == 8

    def test_env_overrides_yaml_provider_and_backend(self):
        settings = resolve_settings(
            {"analyzer": {"provider": "xai"}, "store": {"backend": "sqlite"}},
            environ={"AI_PROVIDER": "OpenAI", "OPENAI_API_KEY": "sk-test", "STORE_BACKEND": "notion"},
        )

        assert settings.analyzer.provider == "openai"
        assert settings.analyzer.api_key == "sk-test"
        assert settings.analyzer.model == "gpt-3.5-turbo"
        assert settings.store.backend == "notion"

    def test_timeout_has_floor(self):
        settings = resolve_settings({"fetch": {"timeout_seconds": 5}}, environ={})
        assert settings.fetch.timeout_seconds == 30

    def test_serverless_uses_tmp(self):
        assert resolve_settings({}, environ={"VERCEL": "1"}).fetch.temp_dir == "/tmp"
        assert resolve_settings({}, environ={"AWS_LAMBDA_FUNCTION_NAME": "fn"}).fetch.temp_dir == "/tmp"

    def test_configured_strategy_order(self):
        settings = resolve_settings({"fetch": {"strategies": ["curl", "http"]}}, environ={})
        assert settings.fetch.strategies == ("curl", "http")

    def test_unknown_provider_rejected(self):
        with pytest.raises(ValueError, match="claude-2"):
            resolve_settings({}, environ={"AI_PROVIDER": "claude-2"})

    def test_stocks_and_pipeline(self):
        settings = resolve_settings(
            {"stocks": [{"symbol": "AAPL"}], "output_dir": "out", "pipeline": {"delay_seconds": 0}},
            environ={},
        )
        assert settings.pipeline.stocks == ({"symbol": "AAPL"},)
        assert settings.pipeline.delay_seconds == 0.0
        assert settings.store.sqlite_path.replace("\\", "/") == "out/articles.db"


class TestMissingRequirements:

    def test_lists_every_missing_variable(self):
        settings = resolve_settings({}, environ={"STORE_BACKEND": "notion"})

        assert missing_requirements(settings) == ["NOTION_API_KEY", "NOTION_DATABASE_ID", "XAI_API_KEY"]

    def test_nothing_missing(self):
        settings = resolve_settings({}, environ={"XAI_API_KEY": "xai-test"})
        assert missing_requirements(settings) == []

    def test_finbert_needs_no_key(self):
        settings = resolve_settings({}, environ={"AI_PROVIDER": "finbert"})
        assert missing_requirements(settings) == []

    def test_require_raises_config_error_with_list(self):
        settings = resolve_settings({}, environ={"AI_PROVIDER": "gemini"})

        with pytest.raises(ConfigError) as exc_info:
            settings.require()
        assert exc_info.value.missing == ["GEMINI_API_KEY"]
