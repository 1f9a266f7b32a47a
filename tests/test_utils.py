"""Tests for utils package."""

import logging
import pytest

from utils.formatting import format_bytes, format_duration, format_ratio
from utils.logger import setup_logger
from utils.validation import validate_identifier, validate_positive_int, validate_timeout


class TestFormatBytes:
    """Tests for format_bytes function."""

    def test_bytes(self):
        """Test formatting bytes."""
        assert format_bytes(0) == "0.0 B"
        assert format_bytes(100) == "100.0 B"
        assert format_bytes(1023) == "1023.0 B"

    def test_kilobytes(self):
        """Test formatting kilobytes."""
        assert format_bytes(1024) == "1.0 KB"
        assert format_bytes(1536) == "1.5 KB"

    def test_megabytes(self):
        """Test formatting megabytes."""
        assert format_bytes(1024 * 1024) == "1.0 MB"


class TestFormatDuration:
    """Tests for format_duration function."""

    def test_seconds(self):
        assert format_duration(2.5) == "2.50 s"

    def test_milliseconds(self):
        assert format_duration(0.0125) == "12.50 ms"

    def test_microseconds(self):
        assert format_duration(0.0000425) == "42.5 µs"


class TestFormatRatio:
    """Tests for format_ratio function."""

    def test_speedup(self):
        assert format_ratio(3.0, 1.0) == "3.0x"

    def test_zero_optimized(self):
        """Test a zero denominator doesn't divide."""
        assert format_ratio(1.0, 0.0) == "n/a"


class TestValidateTimeout:
    """Tests for validate_timeout function."""

    def test_valid(self):
        assert validate_timeout(5) == (True, None)
        assert validate_timeout(0.5) == (True, None)

    @pytest.mark.parametrize("value", [0, -1, 3601])
    def test_out_of_range(self, value):
        ok, error = validate_timeout(value)
        assert ok is False
        assert "timeout" in error

    @pytest.mark.parametrize("value", ["5", None, True])
    def test_not_a_number(self, value):
        ok, error = validate_timeout(value)
        assert ok is False
        assert "must be a number" in error


class TestValidatePositiveInt:
    """Tests for validate_positive_int function."""

    def test_valid(self):
        assert validate_positive_int(4, "capacity") == (True, None)

    def test_zero(self):
        ok, error = validate_positive_int(0, "capacity")
        assert ok is False
        assert error == "capacity must be positive, got 0"

    def test_max_value(self):
        ok, error = validate_positive_int(11, "capacity", max_value=10)
        assert ok is False
        assert "too large" in error

    def test_bool_rejected(self):
        """Test booleans are not accepted as integers."""
        assert validate_positive_int(True)[0] is False


class TestValidateIdentifier:
    """Tests for validate_identifier function."""

    @pytest.mark.parametrize("name", ["id", "blog_id", "_private", "Rating2"])
    def test_valid(self, name):
        assert validate_identifier(name) == (True, None)

    @pytest.mark.parametrize("name", ["", "2fast", "name;", "a b", "x--", "p.id"])
    def test_invalid(self, name):
        assert validate_identifier(name)[0] is False


class TestSetupLogger:
    """Tests for setup_logger function."""

    def test_file_handler(self, tmp_path):
        """Test log output goes to the given file."""
        log_file = tmp_path / "logs" / "bench.log"
        logger = setup_logger("blogbench.test", log_file=log_file)
        logger.info("hello")
        for handler in logger.handlers:
            handler.flush()

        assert log_file.exists()
        assert "hello" in log_file.read_text()
        assert logger.level == logging.DEBUG

    def test_no_duplicate_handlers(self, tmp_path):
        """Test calling twice doesn't add a second handler."""
        log_file = tmp_path / "bench.log"
        first = setup_logger("blogbench.dupe", log_file=log_file)
        count = len(first.handlers)
        second = setup_logger("blogbench.dupe", log_file=log_file)
        assert second is first
        assert len(second.handlers) == count
