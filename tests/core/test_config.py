# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Tests for Config: dot-notation access, files, profiles, env overrides and binding."""

from dataclasses import dataclass
from pathlib import Path

import pytest

from keyquery.core.config import Config, config_properties
from keyquery.data.properties import KeysetProperties


class TestConfig:
    def test_get_simple_value(self):
        config = Config({"app": {"name": "catalog", "port": 8080}})
        assert config.get("app.port") == 8080

    def test_get_with_default(self):
        config = Config({})
        assert config.get("missing.key", "default") == "default"

    def test_get_nested_value(self):
        config = Config({"keyquery": {"pagination": {"max_size": 50}}})
        assert config.get("keyquery.pagination.max_size") == 50

    def test_load_from_yaml_file(self, tmp_path: Path):
        config_file = tmp_path / "keyquery.yaml"
        config_file.write_text("keyquery:\n  pagination:\n    default_size: 15\n")
        config = Config.from_file(config_file)
        assert config.get("keyquery.pagination.default_size") == 15
        assert config.loaded_sources == [str(config_file)]

    def test_load_from_toml_file(self, tmp_path: Path):
        config_file = tmp_path / "keyquery.toml"
        config_file.write_text("[keyquery.pagination]\nprobe = false\n")
        config = Config.from_file(config_file)
        assert config.get("keyquery.pagination.probe") is False

    def test_missing_file_is_empty(self, tmp_path: Path):
        config = Config.from_file(tmp_path / "absent.yaml")
        assert config.to_dict() == {}
        assert config.loaded_sources == []

    def test_env_var_override(self, monkeypatch):
        monkeypatch.setenv("KEYQUERY_APP_NAME", "env-service")
        config = Config({"app": {"name": "file-service"}})
        assert config.get("app.name") == "env-service"

    def test_env_var_override_strips_keyquery_prefix(self, monkeypatch):
        monkeypatch.setenv("KEYQUERY_PAGINATION_MAX_SIZE", "25")
        config = Config({"keyquery": {"pagination": {"max-size": 100}}})
        assert config.get("keyquery.pagination.max-size") == "25"


class TestConfigProperties:
    def test_bind_to_dataclass(self):
        @config_properties(prefix="database")
        @dataclass
        class DatabaseConfig:
            url: str = "sqlite:///test.db"
            pool_size: int = 5

        config = Config({"database": {"url": "sqlite+aiosqlite:///:memory:", "pool_size": 20}})
        db_config = config.bind(DatabaseConfig)
        assert db_config.url == "sqlite+aiosqlite:///:memory:"
        assert db_config.pool_size == 20

    def test_bind_dataclass_coerces_env_strings(self, monkeypatch):
        @config_properties(prefix="feature")
        @dataclass
        class FeatureConfig:
            enabled: bool = False
            retries: int = 1

        monkeypatch.setenv("KEYQUERY_FEATURE_ENABLED", "yes")
        monkeypatch.setenv("KEYQUERY_FEATURE_RETRIES", "3")
        bound = Config({}).bind(FeatureConfig)
        assert bound.enabled is True
        assert bound.retries == 3

    def test_bind_requires_decorator(self):
        @dataclass
        class Plain:
            value: int = 1

        with pytest.raises(ValueError, match="config_properties"):
            Config({}).bind(Plain)

    def test_keyset_properties_defaults(self):
        props = Config({}).bind(KeysetProperties)
        assert props.default_size == 20
        assert props.max_size == 1000
        assert props.probe is True

    def test_keyset_properties_from_config(self):
        config = Config({"keyquery": {"pagination": {"default-size": 5, "max-size": 10, "probe": False}}})
        props = config.bind(KeysetProperties)
        assert props.default_size == 5
        assert props.max_size == 10
        assert props.probe is False

    def test_keyset_properties_env_override(self, monkeypatch):
        monkeypatch.setenv("KEYQUERY_PAGINATION_DEFAULT_SIZE", "7")
        props = Config({}).bind(KeysetProperties)
        assert props.default_size == 7

    def test_keyset_properties_validation(self):
        config = Config({"keyquery": {"pagination": {"default_size": 50, "max_size": 10}}})
        with pytest.raises(ValueError, match="KeysetProperties"):
            config.bind(KeysetProperties)


class TestProfileConfigMerging:
    def test_merge_profile_config(self, tmp_path):
        base = tmp_path / "keyquery.yaml"
        base.write_text("keyquery:\n  pagination:\n    default_size: 20\n    probe: true\n")

        profile = tmp_path / "keyquery-test.yaml"
        profile.write_text("keyquery:\n  pagination:\n    default_size: 3\n")

        config = Config.from_file(base, active_profiles=["test"])
        assert config.get("keyquery.pagination.default_size") == 3
        assert config.get("keyquery.pagination.probe") is True
        assert len(config.loaded_sources) == 2

    def test_later_profile_wins(self, tmp_path):
        base = tmp_path / "keyquery.yaml"
        base.write_text("db:\n  url: base\n")
        (tmp_path / "keyquery-dev.yaml").write_text("db:\n  url: dev-url\n")
        (tmp_path / "keyquery-local.yaml").write_text("db:\n  url: local-url\n")

        config = Config.from_file(base, active_profiles=["dev", "local"])
        assert config.get("db.url") == "local-url"

    def test_missing_profile_file_is_skipped(self, tmp_path):
        base = tmp_path / "keyquery.yaml"
        base.write_text("app:\n  name: test\n")

        config = Config.from_file(base, active_profiles=["nonexistent"])
        assert config.get("app.name") == "test"

    def test_env_vars_still_win(self, tmp_path, monkeypatch):
        base = tmp_path / "keyquery.yaml"
        base.write_text("app:\n  name: base\n")
        (tmp_path / "keyquery-dev.yaml").write_text("app:\n  name: dev\n")

        monkeypatch.setenv("KEYQUERY_APP_NAME", "env-wins")
        config = Config.from_file(base, active_profiles=["dev"])
        assert config.get("app.name") == "env-wins"
