"""Tests for settings loading and per-run options."""
from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from granola_vault.config import ImportOptions, ImportSettings, config_path, load_settings, write_settings
from granola_vault.errors import ConfigError
from granola_vault.models import DatePrefixFormat, ImportStrategy


class TestImportOptions:
    def test_defaults(self):
        options = ImportOptions()
        assert options.strategy is ImportStrategy.SKIP
        assert options.max_concurrency == 3
        assert options.delay_between_imports == pytest.approx(0.1)
        assert not options.always_prompt

    @pytest.mark.parametrize("field,value", [("max_concurrency", 0), ("delay_between_imports", -1)])
    def test_rejects_out_of_range(self, field, value):
        with pytest.raises(ValidationError):
            ImportOptions(**{field: value})

    def test_target_folder_is_normalised(self):
        assert ImportOptions(target_folder="\\Meetings\\2024/").target_folder == "Meetings/2024"

    def test_is_frozen(self):
        with pytest.raises(ValidationError):
            ImportOptions().strategy = ImportStrategy.UPDATE  # type: ignore[misc]


class TestLoadSettings:
    def test_missing_file_uses_defaults(self, isolated_config):
        settings = load_settings()
        assert settings.strategy is ImportStrategy.SKIP
        assert settings.date_prefix_format is DatePrefixFormat.ISO

    def test_reads_json_file(self, isolated_config):
        isolated_config.parent.mkdir(parents=True)
        isolated_config.write_text(json.dumps({"strategy": "update", "max_concurrency": 5}))
        settings = load_settings()
        assert settings.strategy is ImportStrategy.UPDATE
        assert settings.max_concurrency == 5

    def test_env_overrides_file(self, isolated_config, monkeypatch):
        isolated_config.parent.mkdir(parents=True)
        isolated_config.write_text(json.dumps({"strategy": "update"}))
        monkeypatch.setenv("GRANOLA_VAULT_STRATEGY", "create_new")
        assert load_settings().strategy is ImportStrategy.CREATE_NEW

    def test_invalid_json_raises_config_error(self, isolated_config):
        isolated_config.parent.mkdir(parents=True)
        isolated_config.write_text("{not json")
        with pytest.raises(ConfigError):
            load_settings()

    def test_invalid_value_raises_config_error(self, isolated_config):
        isolated_config.parent.mkdir(parents=True)
        isolated_config.write_text(json.dumps({"max_concurrency": 0}))
        with pytest.raises(ConfigError):
            load_settings()

    def test_explicit_path_wins(self, tmp_path, isolated_config):
        explicit = tmp_path / "other.json"
        assert config_path(explicit) == explicit
        assert config_path() == isolated_config

    def test_write_then_load(self, isolated_config, tmp_path):
        write_settings(ImportSettings(vault_root=tmp_path, create_backups=True))
        loaded = load_settings()
        assert loaded.vault_root == tmp_path
        assert loaded.create_backups


class TestToOptions:
    def test_overrides_win_and_none_is_ignored(self):
        settings = ImportSettings(strategy=ImportStrategy.UPDATE, max_concurrency=4)
        options = settings.to_options(max_concurrency=None, always_prompt=True)
        assert options.strategy is ImportStrategy.UPDATE
        assert options.max_concurrency == 4
        assert options.always_prompt

    def test_invalid_override_raises_config_error(self):
        with pytest.raises(ConfigError):
            ImportSettings().to_options(max_concurrency=0)
