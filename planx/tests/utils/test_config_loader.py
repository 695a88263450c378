# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

import pytest

from planx.errors import ConfigError
from planx.utils.config_loader import (
    load_config_file,
    load_json,
    load_yaml,
    parse_json,
    parse_yaml,
)


@pytest.mark.unit
class TestConfigLoader:
    """Test YAML and JSON configuration loading"""

    def test_parse_yaml(self):
        """Test parsing a YAML document"""
        data = parse_yaml("service_name: engine\nmetrics:\n  interval_seconds: 5\n")

        assert data == {"service_name": "engine", "metrics": {"interval_seconds": 5}}

    def test_parse_empty_yaml(self):
        """Test an empty YAML document yields an empty mapping"""
        assert parse_yaml("") == {}

    def test_parse_invalid_yaml(self):
        """Test malformed YAML raises ConfigError"""
        with pytest.raises(ConfigError):
            parse_yaml("key: [unclosed")

    def test_parse_json(self):
        """Test parsing a JSON document"""
        assert parse_json('{"endpoint": "collector:4318"}') == {
            "endpoint": "collector:4318"
        }

    def test_parse_invalid_json(self):
        """Test malformed JSON raises ConfigError"""
        with pytest.raises(ConfigError):
            parse_json("{not json")

    def test_load_files(self, tmp_path):
        """Test loading YAML and JSON files"""
        yaml_file = tmp_path / "planx.yaml"
        yaml_file.write_text("service_name: engine\n", encoding="utf-8")
        json_file = tmp_path / "planx.json"
        json_file.write_text('{"service_name": "plugin"}', encoding="utf-8")

        assert load_yaml(str(yaml_file)) == {"service_name": "engine"}
        assert load_json(str(json_file)) == {"service_name": "plugin"}

    def test_load_config_file_by_extension(self, tmp_path):
        """Test the parser is chosen from the file extension"""
        json_file = tmp_path / "planx.JSON"
        json_file.write_text('{"a": 1}', encoding="utf-8")
        yml_file = tmp_path / "planx.yml"
        yml_file.write_text("a: 2\n", encoding="utf-8")

        assert load_config_file(str(json_file)) == {"a": 1}
        assert load_config_file(str(yml_file)) == {"a": 2}

    def test_missing_file(self, tmp_path):
        """Test a missing file raises ConfigError"""
        with pytest.raises(ConfigError) as exc_info:
            load_yaml(str(tmp_path / "missing.yaml"))

        assert isinstance(exc_info.value.cause, OSError)
