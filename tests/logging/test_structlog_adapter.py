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
"""Tests for StructlogAdapter: default LoggingPort implementation."""

import logging

from keyquery.core.config import Config
from keyquery.logging.port import LoggingPort
from keyquery.logging.structlog_adapter import StructlogAdapter


class TestStructlogAdapterConformance:
    def test_implements_logging_port(self):
        assert isinstance(StructlogAdapter(), LoggingPort)


class TestStructlogAdapterConfigure:
    def test_configure_with_defaults(self):
        adapter = StructlogAdapter()
        adapter.configure(Config({}))
        assert adapter._root_level == "INFO"
        assert adapter._format == "console"

    def test_configure_reads_root_level(self):
        adapter = StructlogAdapter()
        adapter.configure(Config({"keyquery": {"logging": {"level": {"root": "debug"}}}}))
        assert adapter._root_level == "DEBUG"
        assert logging.getLogger().level == logging.DEBUG

    def test_configure_reads_format(self):
        adapter = StructlogAdapter()
        adapter.configure(Config({"keyquery": {"logging": {"format": "JSON"}}}))
        assert adapter._format == "json"

    def test_configure_reads_per_module_levels(self):
        adapter = StructlogAdapter()
        config = Config({"keyquery": {"logging": {"level": {"root": "INFO", "keyquery.data.keyset": "DEBUG"}}}})
        adapter.configure(config)
        assert adapter._module_levels == {"keyquery.data.keyset": "DEBUG"}
        assert logging.getLogger("keyquery.data.keyset").level == logging.DEBUG

    def test_configure_level_from_env(self, monkeypatch):
        monkeypatch.setenv("KEYQUERY_LOGGING_LEVEL_ROOT", "WARNING")
        adapter = StructlogAdapter()
        adapter.configure(Config({}))
        assert adapter._root_level == "WARNING"


class TestStructlogAdapterOutput:
    def test_stdlib_records_are_rendered_as_json(self, capsys):
        adapter = StructlogAdapter()
        adapter.configure(Config({"keyquery": {"logging": {"format": "json"}}}))
        logging.getLogger("keyquery.data.plan").info("Built query plan for %s", "Person.findById")
        out = capsys.readouterr().out
        assert '"event": "Built query plan for Person.findById"' in out
        assert '"logger": "keyquery.data.plan"' in out


class TestStructlogAdapterGetLogger:
    def test_get_logger_returns_bound_logger(self):
        adapter = StructlogAdapter()
        adapter.configure(Config({}))
        logger = adapter.get_logger("keyquery.test")
        assert callable(getattr(logger, "info", None))
        assert callable(getattr(logger, "debug", None))


class TestStructlogAdapterSetLevel:
    def test_set_level_updates_module_level(self):
        adapter = StructlogAdapter()
        adapter.configure(Config({}))
        adapter.set_level("keyquery.data.execution", "DEBUG")
        assert logging.getLogger("keyquery.data.execution").level == logging.DEBUG
