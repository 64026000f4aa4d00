"""
Tests for EngineConfig loading and validation.
"""

import json

import pytest
from pydantic import ValidationError

from molang import ConfigurationError, EngineConfig, MolangEngine
from molang.limits import DEFAULT_EXPRESSION_LIMITS


class TestFromMapping:
    """Tests for EngineConfig.from_mapping."""

    def test_defaults(self):
        config = EngineConfig.from_mapping(None)
        assert config.cache_enabled
        assert not config.use_radians
        assert not config.strict
        assert config.random_seed is None
        assert config.to_limits() == DEFAULT_EXPRESSION_LIMITS

    def test_camel_case_keys(self):
        config = EngineConfig.from_mapping(
            {"cacheEnabled": False, "useRadians": True, "maxDieRolls": 50}
        )
        assert not config.cache_enabled
        assert config.use_radians
        assert config.to_limits().max_die_rolls == 50

    def test_snake_case_keys(self):
        config = EngineConfig.from_mapping({"cache_enabled": False, "random_seed": 9})
        assert not config.cache_enabled
        assert config.random_seed == 9

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError) as exc_info:
            EngineConfig.from_mapping({"cacheEnabeld": False}, source="inline")
        assert exc_info.value.source == "inline"

    @pytest.mark.parametrize(
        "data",
        [
            {"maxDieRolls": -1},
            {"maxAstDepth": 0},
            {"strict": "sometimes"},
            {"globalVariables": {"variable.a": [1]}},
        ],
    )
    def test_invalid_values(self, data):
        with pytest.raises(ConfigurationError):
            EngineConfig.from_mapping(data)

    def test_frozen(self):
        config = EngineConfig()
        with pytest.raises(ValidationError):
            config.strict = True  # type: ignore[misc]


class TestFromFile:
    """Tests for EngineConfig.from_file."""

    def test_yaml(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text(
            "cacheEnabled: false\n"
            "maxIndirectionDepth: 4\n"
            "globalVariables:\n"
            "  variable.speed: 2\n"
            "  variable.formula: 'v.speed * 3'\n"
        )
        config = EngineConfig.from_file(path)
        assert not config.cache_enabled
        assert config.max_indirection_depth == 4
        assert config.global_variables["variable.speed"] == 2

        engine = MolangEngine(config)
        assert engine.evaluate("v.formula") == 6

    def test_json(self, tmp_path):
        path = tmp_path / "engine.json"
        path.write_text(json.dumps({"strict": True, "randomSeed": 5}))
        config = EngineConfig.from_file(str(path))
        assert config.strict
        assert config.random_seed == 5

    def test_empty_yaml_uses_defaults(self, tmp_path):
        path = tmp_path / "engine.yml"
        path.write_text("")
        assert EngineConfig.from_file(path) == EngineConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            EngineConfig.from_file(tmp_path / "absent.yaml")
        assert exc_info.value.source.endswith("absent.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text("cacheEnabled: [\n")
        with pytest.raises(ConfigurationError):
            EngineConfig.from_file(path)

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "engine.json"
        path.write_text("{not json")
        with pytest.raises(ConfigurationError):
            EngineConfig.from_file(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigurationError):
            EngineConfig.from_file(path)
