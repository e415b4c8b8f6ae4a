"""Tests for configuration loading and validation."""

import pytest

from shootmatch.config import AppConfig, _validate_config


def _config_with(pricing=None, matching=None, schedule=None) -> AppConfig:
    from shootmatch.config import MatchingConfig, PricingConfig, ScheduleConfig

    config = AppConfig.__new__(AppConfig)
    object.__setattr__(config, "pricing", pricing or PricingConfig())
    object.__setattr__(config, "matching", matching or MatchingConfig())
    object.__setattr__(config, "schedule", schedule or ScheduleConfig())
    object.__setattr__(config, "log_level", "INFO")
    return config


class TestConfigValidation:
    def test_default_config_passes_validation(self):
        config = AppConfig()
        _validate_config(config)  # should not raise

    def test_defaults(self):
        config = AppConfig()
        assert config.pricing.payout_share == pytest.approx(0.6)
        assert config.pricing.negative_balance_limit == 100
        assert config.matching.home_city == "Curitiba"
        assert config.schedule.default_day_template[0] == "08:00"

    def test_invalid_payout_share(self):
        from shootmatch.config import PricingConfig

        pricing = PricingConfig.__new__(PricingConfig)
        object.__setattr__(pricing, "payout_share", 1.5)
        object.__setattr__(pricing, "negative_balance_limit", 100.0)
        object.__setattr__(pricing, "retention_discount", 0.5)
        object.__setattr__(pricing, "currency", "BRL")

        with pytest.raises(ValueError, match="PAYOUT_SHARE"):
            _validate_config(_config_with(pricing=pricing))

    def test_negative_balance_limit(self):
        from shootmatch.config import PricingConfig

        pricing = PricingConfig.__new__(PricingConfig)
        object.__setattr__(pricing, "payout_share", 0.6)
        object.__setattr__(pricing, "negative_balance_limit", -1.0)
        object.__setattr__(pricing, "retention_discount", 0.5)
        object.__setattr__(pricing, "currency", "BRL")

        with pytest.raises(ValueError, match="NEGATIVE_BALANCE_LIMIT"):
            _validate_config(_config_with(pricing=pricing))

    def test_empty_home_city(self):
        from shootmatch.config import MatchingConfig

        matching = MatchingConfig.__new__(MatchingConfig)
        object.__setattr__(matching, "home_city", "  ")
        object.__setattr__(matching, "flash_lead_minutes", 0)
        object.__setattr__(matching, "balance_weight_km", 5.0)
        object.__setattr__(matching, "route_swap_min_saving_km", 5.0)

        with pytest.raises(ValueError, match="HOME_CITY"):
            _validate_config(_config_with(matching=matching))

    def test_negative_flash_lead(self):
        from shootmatch.config import MatchingConfig

        matching = MatchingConfig.__new__(MatchingConfig)
        object.__setattr__(matching, "home_city", "Curitiba")
        object.__setattr__(matching, "flash_lead_minutes", -30)
        object.__setattr__(matching, "balance_weight_km", 5.0)
        object.__setattr__(matching, "route_swap_min_saving_km", 5.0)

        with pytest.raises(ValueError, match="FLASH_LEAD_MINUTES"):
            _validate_config(_config_with(matching=matching))

    @pytest.mark.parametrize(
        "template, message",
        [
            (("08:00", "9h30"), "malformed"),
            (("11:00", "08:00"), "ascending"),
            (("08:00", "08:00"), "ascending"),
        ],
    )
    def test_bad_day_template(self, template, message):
        from shootmatch.config import ScheduleConfig

        schedule = ScheduleConfig.__new__(ScheduleConfig)
        object.__setattr__(schedule, "default_day_template", template)

        with pytest.raises(ValueError, match=message):
            _validate_config(_config_with(schedule=schedule))

    def test_safe_int_parsing(self):
        from shootmatch.config import _safe_int

        assert _safe_int("NONEXISTENT_VAR_12345", "42") == 42

    def test_safe_float_parsing(self):
        from shootmatch.config import _safe_float

        assert _safe_float("NONEXISTENT_VAR_12345", "3.14") == pytest.approx(3.14)

    def test_safe_float_rejects_garbage(self, monkeypatch):
        from shootmatch.config import _safe_float

        monkeypatch.setenv("SHOOTMATCH_TEST_FLOAT", "abc")
        with pytest.raises(ValueError, match="SHOOTMATCH_TEST_FLOAT"):
            _safe_float("SHOOTMATCH_TEST_FLOAT", "1")

    def test_csv_parsing(self, monkeypatch):
        from shootmatch.config import _csv

        monkeypatch.setenv("SHOOTMATCH_TEST_CSV", " 08:00, 09:30 ,,11:00")
        assert _csv("SHOOTMATCH_TEST_CSV", "") == ("08:00", "09:30", "11:00")


class TestLogFormat:
    def test_request_id_printed(self):
        import io
        import logging

        from shootmatch.config import LOG_FORMAT
        from shootmatch.logging_context import install_request_id, set_request_id

        stream = io.StringIO()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        install_request_id(handler)
        logger = logging.getLogger("shootmatch.tests.format")
        logger.addHandler(handler)
        try:
            set_request_id("REQ-1234abcd")
            logger.warning("Slot taken before commit")
        finally:
            logger.removeHandler(handler)
        assert "[REQ-1234abcd] WARNING: Slot taken before commit" in stream.getvalue()

    def test_filter_installed_once(self):
        import logging

        from shootmatch.logging_context import RequestIdFilter, install_request_id

        handler = logging.NullHandler()
        install_request_id(handler)
        install_request_id(handler)
        assert sum(isinstance(f, RequestIdFilter) for f in handler.filters) == 1
