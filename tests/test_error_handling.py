"""
Tests for user-facing error mapping and retry helpers
"""

import pytest

from errors.exceptions import (
    CodecError,
    ContractCallError,
    NetworkError,
    RateLimitError,
    RequestTimeoutError,
    StorageError,
    ValidationError,
)
from errors.handling import get_user_friendly_error, is_retryable, retry_with_backoff


class TestUserFriendlyErrors:
    def test_contract_error_code(self):
        error = ContractCallError("Transaction rejected: ERR-ALREADY-VOTED")
        assert get_user_friendly_error(error) == (
            "Already Voted", "You have already voted in this round."
        )

    def test_timeout(self):
        title, message = get_user_friendly_error(RequestTimeoutError("get-story", 10))
        assert title == "Network Error"
        assert "timed out" in message

    def test_plain_exception_with_network_text(self):
        title, message = get_user_friendly_error(Exception("Network request failed"))
        assert title == "Network Error"
        assert "internet connection" in message

    def test_generic_network_error(self):
        title, _ = get_user_friendly_error(NetworkError("HTTP 502 from node"))
        assert title == "Network Error"

    def test_fallback_uses_message(self):
        assert get_user_friendly_error(ValidationError("Prompt too long")) == ("Error", "Prompt too long")
        assert get_user_friendly_error(Exception("")) == (
            "Error", "An unexpected error occurred. Please try again."
        )


class TestRetryable:
    @pytest.mark.parametrize("error", [
        RequestTimeoutError("get-story", 10),
        RateLimitError(),
        NetworkError("connection reset"),
        Exception("ECONNREFUSED"),
    ])
    def test_retryable(self, error):
        assert is_retryable(error)

    @pytest.mark.parametrize("error", [
        ContractCallError("ERR-NOT-FOUND"),
        ValidationError("bad input"),
        CodecError("truncated"),
        StorageError("disk full"),
        Exception("something else"),
    ])
    def test_not_retryable(self, error):
        assert not is_retryable(error)

    def test_error_codes(self):
        assert RequestTimeoutError("f", 1).code == "TIMEOUT_ERROR"
        assert CodecError("x").code == "CODEC_ERROR"
        assert ContractCallError("x").cause == "x"


class TestRetryWithBackoff:
    @pytest.fixture
    def sleeps(self, monkeypatch):
        delays = []

        async def fake_sleep(delay):
            delays.append(delay)

        monkeypatch.setattr("errors.handling.asyncio.sleep", fake_sleep)
        return delays

    @pytest.mark.asyncio
    async def test_succeeds_after_failures(self, sleeps):
        attempts = []

        async def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise NetworkError("flaky")
            return "done"

        assert await retry_with_backoff(flaky, max_attempts=3, initial_delay=1.0) == "done"
        assert sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_raises_last_error(self, sleeps):
        async def always_fails():
            raise NetworkError("still down")

        with pytest.raises(NetworkError, match="still down"):
            await retry_with_backoff(always_fails, max_attempts=2, initial_delay=0.5)
        assert sleeps == [0.5]

    @pytest.mark.asyncio
    async def test_non_retryable_raises_immediately(self, sleeps):
        attempts = []

        async def rejected():
            attempts.append(1)
            raise ContractCallError("ERR-UNAUTHORIZED")

        with pytest.raises(ContractCallError):
            await retry_with_backoff(rejected, retry_on=is_retryable)
        assert len(attempts) == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_invalid_attempts(self):
        async def op():
            return 1

        with pytest.raises(ValueError):
            await retry_with_backoff(op, max_attempts=0)
