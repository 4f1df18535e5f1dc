"""
Tests for fleet_config: defaults, overrides, validation and bridges.
"""

import logging

import pytest

from fleet_config import get_active_config
from fleet_config.bridges import allocation_options, engine_options, log_level
from fleet_config.loader import compute_checksum, merge, parse_config


class TestDefaults:
    def test_packaged_defaults(self):
        config = get_active_config(use_env=False)

        assert config.money.currency == "GBP"
        assert config.money.decimal_places == 2
        assert config.allocation.direct_revenue_map() == {
            "InitialFee": "Initial Fees",
            "Other": "Initial Fees",
        }
        assert config.allocation.include_rental_less_charges is True
        assert config.database.url.startswith("sqlite")

    def test_checksum_is_stable(self):
        first = get_active_config(use_env=False)
        second = get_active_config(use_env=False)

        assert first.checksum == second.checksum
        assert len(first.checksum) == 64


class TestOverrides:
    def test_override_file_merges(self, tmp_path):
        override = tmp_path / "ledger.yaml"
        override.write_text(
            "allocation:\n"
            "  direct_revenue_categories:\n"
            "    Other: Other\n"
            "money:\n"
            "  decimal_places: 3\n"
        )

        config = get_active_config(override, use_env=False)

        assert config.allocation.direct_revenue_map() == {
            "InitialFee": "Initial Fees",
            "Other": "Other",
        }
        assert config.money.decimal_places == 3
        assert config.money.currency == "GBP"
        assert str(override) in config.source

    def test_env_overrides(self, monkeypatch):
        monkeypatch.delenv("FLEET_LEDGER_CONFIG", raising=False)
        monkeypatch.setenv("DATABASE_URL", "postgresql://fleet@localhost/fleet")
        monkeypatch.setenv("FLEET_LEDGER_LOG_LEVEL", "debug")

        config = get_active_config()

        assert config.database.url == "postgresql://fleet@localhost/fleet"
        assert config.logging.level == "DEBUG"
        assert config.source.endswith("env")

    def test_missing_override_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "missing.yaml", use_env=False)

    def test_trace_logged(self, captured_logs):
        get_active_config(use_env=False)

        traces = [r for r in captured_logs() if r["message"] == "FLEET_CONFIG_TRACE"]
        assert traces
        assert traces[-1]["decimal_places"] == 2


class TestValidation:
    def test_unknown_section_rejected(self):
        with pytest.raises(ValueError, match="Unknown configuration sections"):
            parse_config({"reporting": {}})

    def test_unknown_payment_type_rejected(self):
        with pytest.raises(ValueError, match="unknown payment type"):
            parse_config({"allocation": {"direct_revenue_categories": {"Rental": "Other"}}})

    def test_unknown_category_rejected(self):
        with pytest.raises(ValueError, match="unknown category"):
            parse_config({"allocation": {"direct_revenue_categories": {"Other": "Fines"}}})

    def test_bad_decimal_places_rejected(self):
        with pytest.raises(ValueError):
            parse_config({"money": {"decimal_places": 12}})

    def test_bool_is_not_an_int(self):
        with pytest.raises(ValueError):
            parse_config({"database": {"pool_size": True}})

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValueError):
            parse_config({"logging": {"level": "CHATTY"}})


class TestLoaderHelpers:
    def test_merge_is_recursive(self):
        merged = merge({"a": {"x": 1, "y": 2}, "b": 1}, {"a": {"y": 3}})
        assert merged == {"a": {"x": 1, "y": 3}, "b": 1}

    def test_checksum_ignores_key_order(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})


class TestBridges:
    def test_engine_options(self):
        config = get_active_config(use_env=False)
        options = engine_options(config)

        assert options["database_url"] == config.database.url
        assert options["pool_size"] == config.database.pool_size

    def test_allocation_options(self):
        config = get_active_config(use_env=False)

        assert allocation_options(config) == {
            "places": 2,
            "direct_revenue_categories": {
                "InitialFee": "Initial Fees",
                "Other": "Initial Fees",
            },
            "include_rental_less_charges": True,
        }

    def test_log_level(self):
        assert log_level(get_active_config(use_env=False)) == logging.INFO
