"""
Unit tests for the error taxonomy and retry decorator
=====================================================
"""

from unittest.mock import Mock

import pytest

from resilience_patterns import (
    CodecError, CompressionError, ConfigError, JobCancelledError,
    RetryConfig, StreamIOError, StreamOpenError, with_retry
)


class TestRetryConfig:
    """Test backoff calculation"""

    def test_exponential_backoff(self):
        config = RetryConfig(initial_delay=0.1, exponential_base=2.0, jitter=False)

        assert config.calculate_delay(1) == pytest.approx(0.1)
        assert config.calculate_delay(2) == pytest.approx(0.2)
        assert config.calculate_delay(3) == pytest.approx(0.4)

    def test_delay_is_capped(self):
        config = RetryConfig(initial_delay=1.0, max_delay=2.0, jitter=False)

        assert config.calculate_delay(10) == 2.0

    def test_jitter_stays_in_range(self):
        config = RetryConfig(initial_delay=1.0, jitter=True)

        for _ in range(50):
            assert 0.5 <= config.calculate_delay(1) <= 1.5


class TestWithRetry:
    """Test the retry decorator"""

    def test_transient_errors_are_retried(self):
        """Test that a retryable error is retried until success"""
        func = Mock(side_effect=[InterruptedError("EINTR"), BlockingIOError("busy"), "opened"])
        func.__name__ = "open_source"
        wrapped = with_retry(RetryConfig(max_attempts=3, initial_delay=0, jitter=False))(func)

        assert wrapped() == "opened"
        assert func.call_count == 3

    def test_gives_up_after_max_attempts(self):
        func = Mock(side_effect=TimeoutError("slow"))
        func.__name__ = "open_source"
        wrapped = with_retry(RetryConfig(max_attempts=2, initial_delay=0, jitter=False))(func)

        with pytest.raises(TimeoutError):
            wrapped()
        assert func.call_count == 2

    def test_permanent_errors_are_not_retried(self):
        """Test that a missing file fails on the first attempt"""
        func = Mock(side_effect=FileNotFoundError("missing"))
        func.__name__ = "open_source"
        wrapped = with_retry(RetryConfig(max_attempts=5, initial_delay=0, jitter=False))(func)

        with pytest.raises(FileNotFoundError):
            wrapped()
        assert func.call_count == 1


class TestCompressionErrors:
    """Test error formatting and classification"""

    def test_message_with_path_and_cause(self):
        cause = FileNotFoundError(2, "No such file or directory")
        error = StreamOpenError("Cannot open input file", cause=cause, path="data/a.bin")

        assert str(error) == ("Cannot open input file: data/a.bin "
                              "(caused by FileNotFoundError: [Errno 2] No such file or directory)")
        assert error.cause is cause

    def test_plain_message(self):
        assert str(CodecError("Inflate failed")) == "Inflate failed"

    def test_log_context(self):
        error = StreamIOError("Failed to write output stream", path="out.gz",
                              details={'bytes_written': 10})

        context = error.log_context()

        assert context['error_type'] == "StreamIOError"
        assert context['error_code'] == "stream_io"
        assert context['path'] == "out.gz"
        assert context['details'] == {'bytes_written': 10}
        assert context['cause'] is None

    @pytest.mark.parametrize("error_class,code", [
        (StreamOpenError, "stream_open"),
        (StreamIOError, "stream_io"),
        (CodecError, "codec"),
        (JobCancelledError, "cancelled"),
        (ConfigError, "config"),
    ])
    def test_taxonomy(self, error_class, code):
        error = error_class("failure")

        assert isinstance(error, CompressionError)
        assert error.error_code == code

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            raise ConfigError("bad level")
