"""Tests for configuration loading."""

import json

import pytest
import yaml

from goalplan.utils.config import get_default_config, load_config, merge_config


class TestLoadConfig:
    def test_yaml_merged_over_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({'capacity': {'utilization_ceiling': 0.8}}))

        config = load_config(str(path))

        assert config['capacity']['utilization_ceiling'] == 0.8
        assert config['capacity']['iteration_cap_multiplier'] == 3
        assert config['scheduling']['max_block_minutes'] == 120

    def test_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({'sessions': {'concurrent_request_mode': 'reject'}}))
        assert load_config(str(path))['sessions']['concurrent_request_mode'] == 'reject'

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("")
        assert load_config(str(path)) == get_default_config()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.yaml"))

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("")
        with pytest.raises(ValueError):
            load_config(str(path))


def test_merge_does_not_mutate_base():
    base = get_default_config()
    merged = merge_config(base, {'slot_weights': {'priority': 1.0}})
    assert merged['slot_weights']['priority'] == 1.0
    assert base['slot_weights']['priority'] == 0.4
    assert merged['slot_weights']['dependency'] == 0.4
