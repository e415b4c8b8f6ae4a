"""Tests for shared utility functions."""

import pytest

from shootmatch.errors import ValidationError
from shootmatch.utils import (
    dedupe,
    minutes_to_time,
    normalize_city,
    normalize_code,
    time_to_minutes,
)


class TestTimeToMinutes:
    def test_afternoon(self):
        assert time_to_minutes("14:15") == 855

    def test_midnight(self):
        assert time_to_minutes("00:00") == 0

    def test_single_digit_hour(self):
        assert time_to_minutes("9:30") == 570

    def test_strips_whitespace(self):
        assert time_to_minutes(" 16:00 ") == 960

    @pytest.mark.parametrize("value", ["", "1430", "9h30", "24:00", "12:60", "ab:cd"])
    def test_rejects_malformed(self, value):
        with pytest.raises(ValidationError) as exc:
            time_to_minutes(value)
        assert exc.value.code == "BAD_TIME"


class TestMinutesToTime:
    def test_pads(self):
        assert minutes_to_time(545) == "09:05"

    def test_last_minute_of_day(self):
        assert minutes_to_time(1439) == "23:59"

    @pytest.mark.parametrize("value", [-1, 1440, 1500])
    def test_outside_day(self, value):
        with pytest.raises(ValidationError):
            minutes_to_time(value)


class TestNormalizeCode:
    def test_upper_and_strip(self):
        assert normalize_code("  desconto10 ") == "DESCONTO10"


class TestNormalizeCity:
    def test_folds_accents_and_case(self):
        assert normalize_city("  São José dos Pinhais ") == "sao jose dos pinhais"

    def test_collapses_inner_spaces(self):
        assert normalize_city("Campo   Largo") == "campo largo"

    def test_plain_name_unchanged(self):
        assert normalize_city("curitiba") == "curitiba"


class TestDedupe:
    def test_keeps_first_seen_order(self):
        assert dedupe(["video", "foto", "video", "drone", "foto"]) == ["video", "foto", "drone"]

    def test_empty(self):
        assert dedupe([]) == []


class TestRequestLogger:
    def test_records_carry_request_id(self, caplog):
        from shootmatch.logging_context import get_request_logger, new_request_id

        request_id = new_request_id()
        logger = get_request_logger("shootmatch.tests")
        with caplog.at_level("INFO", logger="shootmatch.tests"):
            logger.info("Creating booking")
        assert caplog.records[-1].request_id == request_id

    def test_filter_attached_once(self):
        from shootmatch.logging_context import get_request_logger

        logger = get_request_logger("shootmatch.tests.once")
        get_request_logger("shootmatch.tests.once")
        assert len(logger.filters) == 1
