"""
Tests for EngineConfig validation and environment parsing.
Run with: pytest tests/test_config.py -v
"""

import pytest

from propedge.config import DEFAULT_NAME_INFLATION, EngineConfig


class TestEngineConfig:
    def test_defaults(self):
        cfg = EngineConfig()
        assert cfg.calibration_factor == 1.0
        assert cfg.smart_overlays is False
        assert cfg.sample_quota == 10
        assert cfg.name_inflation_names == DEFAULT_NAME_INFLATION

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"calibration_factor": 0.0},
            {"calibration_factor": float("inf")},
            {"sample_quota": 0},
            {"recent_weight": 1.5},
            {"batch_concurrency": 0},
            {"name_matcher": "phonetic"},
        ],
    )
    def test_invalid_values_raise(self, kwargs):
        with pytest.raises(ValueError):
            EngineConfig(**kwargs)


class TestFromEnv:
    def test_empty_environment_gives_defaults(self):
        assert EngineConfig.from_env({}) == EngineConfig()

    def test_reads_every_variable(self):
        cfg = EngineConfig.from_env({
            "SMART_OVERLAYS": "ON",
            "CALIBRATION_FACTOR": "0.97",
            "NAME_INFLATION_LIST": "Curry, James ,",
            "SAMPLE_QUOTA": "5",
            "NAME_MATCHER": "Fuzzy",
            "SYNTHETIC_SEED": "42",
            "BATCH_CONCURRENCY": "3",
            "SPORTSDATA_API_KEY": "abc123",
            "SPORTSDATA_RATE_LIMIT_SEC": "0.25",
            "LOG_SPORTSDATA": "1",
            "CALIBRATION_LOG_PATH": "/var/log/propedge/calibration.jsonl",
            "CORS_ORIGINS": "https://app.example.com, http://localhost:3000,",
        })
        assert cfg.smart_overlays is True
        assert cfg.calibration_factor == 0.97
        assert cfg.name_inflation_names == ("curry", "james")
        assert cfg.sample_quota == 5
        assert cfg.name_matcher == "fuzzy"
        assert cfg.synthetic_seed == 42
        assert cfg.batch_concurrency == 3
        assert cfg.sportsdata_api_key == "abc123"
        assert cfg.sportsdata_rate_limit_sec == 0.25
        assert cfg.log_sportsdata is True
        assert cfg.calibration_log_path == "/var/log/propedge/calibration.jsonl"
        assert cfg.cors_origins == ("https://app.example.com", "http://localhost:3000")

    def test_smart_overlays_off_unless_truthy(self):
        assert EngineConfig.from_env({"SMART_OVERLAYS": "off"}).smart_overlays is False

    def test_bad_numbers_fall_back_to_defaults(self):
        cfg = EngineConfig.from_env({"CALIBRATION_FACTOR": "abc", "SAMPLE_QUOTA": "many"})
        assert cfg.calibration_factor == 1.0
        assert cfg.sample_quota == 10

    def test_unknown_matcher_falls_back(self):
        assert EngineConfig.from_env({"NAME_MATCHER": "levenshtein"}).name_matcher == "substring"

    def test_non_positive_calibration_is_rejected(self):
        with pytest.raises(ValueError):
            EngineConfig.from_env({"CALIBRATION_FACTOR": "0"})

    def test_unset_cors_allows_any_origin(self):
        cfg = EngineConfig.from_env({"CORS_ORIGINS": " , "})
        assert cfg.cors_origins == ("*",)
        assert cfg.calibration_log_path is None
