"""
Unit Tests: Configuration Loader

Run with: pytest testing/test_config_loader.py -v
"""

import asyncio
import copy
import json

import pytest
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fusion import config_loader
from fusion.config_loader import (
    DEFAULT_CONFIG,
    ConfigError,
    get_alert_rules,
    get_blendshape_coefficients,
    get_model_service_urls,
    get_trend_window_sizes,
    get_weight_config,
    get_window_size,
    load_config,
)


@pytest.fixture(autouse=True)
def fresh_cache():
    config_loader.clear_config_cache()
    yield
    config_loader.clear_config_cache()


def config_with(**overrides) -> dict:
    config = copy.deepcopy(DEFAULT_CONFIG)
    config.update(overrides)
    return config


class TestLoadConfig:

    def test_loads_json_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"fusion_weights": {"face": 1, "voice": 0, "text": 0}}))

        config = load_config(str(path))

        assert config["fusion_weights"]["face"] == 1

    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_config(str(tmp_path / "missing.json"))

        assert config == DEFAULT_CONFIG

    def test_invalid_json_uses_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")

        assert load_config(str(path)) == DEFAULT_CONFIG

    def test_env_path_is_used(self, tmp_path, monkeypatch):
        path = tmp_path / "env_config.json"
        path.write_text(json.dumps({"window_size": 7}))
        monkeypatch.setenv("FUSION_CONFIG_PATH", str(path))

        assert load_config()["window_size"] == 7

    def test_result_is_cached(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"window_size": 3}))
        first = load_config(str(path))
        path.write_text(json.dumps({"window_size": 9}))

        assert load_config(str(path)) is first

    def test_shipped_config_is_valid(self):
        module_dir = os.path.dirname(os.path.abspath(config_loader.__file__))
        config = load_config(os.path.join(module_dir, "config.json"))

        assert get_weight_config(config).as_dict() == {"face": 0.4, "voice": 0.3, "text": 0.3}
        assert get_window_size(config) == 5


class TestWeightConfig:

    def test_default_weights(self):
        weights = get_weight_config(DEFAULT_CONFIG)

        assert weights.face == 0.4
        assert weights.voice == 0.3
        assert weights.text == 0.3

    def test_missing_modality_is_fatal(self):
        with pytest.raises(ConfigError, match="voice"):
            get_weight_config(config_with(fusion_weights={"face": 0.5, "text": 0.5}))

    def test_negative_weight_is_fatal(self):
        with pytest.raises(ConfigError):
            get_weight_config(config_with(fusion_weights={"face": 1.0, "voice": -0.5, "text": 0.5}))

    def test_non_numeric_weight_is_fatal(self):
        with pytest.raises(ConfigError):
            get_weight_config(config_with(fusion_weights={"face": "heavy", "voice": 0.5, "text": 0.5}))

    def test_all_zero_weights_are_fatal(self):
        with pytest.raises(ConfigError):
            get_weight_config(config_with(fusion_weights={"face": 0, "voice": 0, "text": 0}))

    def test_weights_need_not_sum_to_one(self):
        weights = get_weight_config(config_with(fusion_weights={"face": 1, "voice": 1, "text": 1}))

        assert sum(weights.as_dict().values()) == 3.0

    def test_config_error_is_value_error(self):
        assert issubclass(ConfigError, ValueError)


class TestOtherSettings:

    def test_window_size_must_be_positive(self):
        with pytest.raises(ConfigError):
            get_window_size(config_with(window_size=0))

    def test_trend_sizes_must_be_positive(self):
        with pytest.raises(ConfigError):
            get_trend_window_sizes(config_with(trend_window_sizes=[5, 0]))
        with pytest.raises(ConfigError):
            get_trend_window_sizes(config_with(trend_window_sizes=[]))

    def test_coefficients_and_rules(self):
        coefficients = get_blendshape_coefficients(DEFAULT_CONFIG)
        rules = get_alert_rules(DEFAULT_CONFIG)

        assert coefficients.smile_gain == 1.2
        assert [r.emotion for r in rules] == ["angry", "sad"]

    def test_trend_sizes_reject_booleans(self):
        with pytest.raises(ConfigError):
            get_trend_window_sizes(config_with(trend_window_sizes=[True, 5]))


class TestModelServiceUrls:

    def test_absent_key_uses_default_urls(self):
        config = {"fusion_weights": {"face": 0.4, "voice": 0.3, "text": 0.3}}

        assert get_model_service_urls(config) == DEFAULT_CONFIG["model_service_urls"]

    def test_missing_modality_url_is_fatal(self):
        config = config_with(model_service_urls={"voice": "http://v", "text": "http://t"})

        with pytest.raises(ConfigError, match="face"):
            get_model_service_urls(config)

    def test_non_object_is_fatal(self):
        with pytest.raises(ConfigError):
            get_model_service_urls(config_with(model_service_urls="http://localhost:8005"))

    def test_startup_aborts_with_config_error(self, tmp_path, monkeypatch):
        import main

        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "fusion_weights": {"face": 0.4, "voice": 0.3, "text": 0.3},
            "model_service_urls": {"voice": "http://v", "text": "http://t"}
        }))
        monkeypatch.setenv("FUSION_CONFIG_PATH", str(path))

        async def start():
            async with main.lifespan(main.app):
                pass

        with pytest.raises(ConfigError, match="face"):
            asyncio.run(start())
