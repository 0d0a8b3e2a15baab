"""Tests for RelayConfig defaults, validation and mapping round-trips."""

from __future__ import annotations

import pytest

from picrelay.config import DEFAULT_SUPPORTED_FORMATS, MAX_PROBE_TIMEOUT, RelayConfig

# =========================================================================
# Defaults
# =========================================================================


class TestDefaults:
    def test_default_config_is_valid(self):
        cfg = RelayConfig()
        assert cfg.tool_path == ""
        assert cfg.tool_name == "upic"
        assert cfg.upload_timeout == 30.0
        assert cfg.probe_timeout == MAX_PROBE_TIMEOUT
        assert cfg.max_file_size_bytes == 50 * 1024 * 1024

    def test_positive_ttl_outlives_negative_ttl(self):
        cfg = RelayConfig()
        assert cfg.positive_cache_ttl > cfg.negative_cache_ttl

    def test_supported_formats_default_is_a_copy(self):
        cfg = RelayConfig()
        cfg.supported_formats.append("tiff")
        assert "tiff" not in DEFAULT_SUPPORTED_FORMATS

    def test_is_configured(self):
        assert not RelayConfig().is_configured()
        assert not RelayConfig(tool_path="   ").is_configured()
        assert RelayConfig(tool_path="/usr/bin/upic").is_configured()


# =========================================================================
# Validation
# =========================================================================


class TestValidation:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"tool_name": ""},
            {"upload_timeout": 0},
            {"probe_timeout": 0},
            {"probe_timeout": MAX_PROBE_TIMEOUT + 1},
            {"negative_cache_ttl": -1},
            {"positive_cache_ttl": 10, "negative_cache_ttl": 20},
            {"check_interval": 0},
            {"check_throttle": -1},
            {"max_file_size_bytes": 0},
            {"max_concurrent": 0},
            {"supported_formats": []},
            {"supported_formats": ["", "  "]},
        ],
    )
    def test_invalid_values_raise(self, kwargs):
        with pytest.raises(ValueError):
            RelayConfig(**kwargs)

    def test_formats_are_normalised(self):
        cfg = RelayConfig(supported_formats=[".PNG", " Jpg ", "webp"])
        assert cfg.supported_formats == ["png", "jpg", "webp"]


# =========================================================================
# Mapping
# =========================================================================


class TestMapping:
    def test_from_mapping_ignores_unknown_keys(self):
        cfg = RelayConfig.from_mapping({"tool_path": "~/bin/upic", "theme": "dark"})
        assert cfg.tool_path == "~/bin/upic"

    def test_overrides_win(self):
        cfg = RelayConfig.from_mapping({"upload_timeout": 10}, upload_timeout=20)
        assert cfg.upload_timeout == 20

    def test_from_none(self):
        assert RelayConfig.from_mapping(None) == RelayConfig()

    def test_to_mapping_excludes_metrics(self):
        data = RelayConfig(metrics=object()).to_mapping()
        assert "metrics" not in data
        assert data["tool_name"] == "upic"

    def test_round_trip(self):
        cfg = RelayConfig(tool_path="/opt/upic", delete_local_file=True, max_concurrent=2)
        assert RelayConfig.from_mapping(cfg.to_mapping()) == cfg
