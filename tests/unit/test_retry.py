"""Unit tests for the retry-until-deadline combinator."""
import pytest

from idbridge.core.keycloak import DeadlineExceededError, retry_until_deadline


class Flaky:
    def __init__(self, failures, exc_type=ValueError, result="done"):
        self.failures = failures
        self.exc_type = exc_type
        self.result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc_type(f"attempt {self.calls}")
        return self.result


def test_returns_immediately_on_success(fake_clock):
    op = Flaky(0)
    assert retry_until_deadline(op, retry_on=ValueError, interval=5, timeout=30) == "done"
    assert op.calls == 1
    assert fake_clock.sleeps == []


def test_retries_with_fixed_interval(fake_clock):
    op = Flaky(3)
    assert retry_until_deadline(op, retry_on=ValueError, interval=5, timeout=30) == "done"
    assert op.calls == 4
    assert fake_clock.sleeps == [5, 5, 5]


def test_gives_up_at_deadline(fake_clock):
    op = Flaky(100)
    with pytest.raises(DeadlineExceededError) as excinfo:
        retry_until_deadline(op, retry_on=ValueError, interval=5, timeout=30)

    assert fake_clock.now <= 30
    assert op.calls == 7
    assert excinfo.value.attempts == 7
    assert isinstance(excinfo.value.last_error, ValueError)
    assert str(excinfo.value.last_error) == "attempt 7"


def test_non_retryable_error_propagates_unchanged(fake_clock):
    op = Flaky(1, exc_type=KeyError)
    with pytest.raises(KeyError):
        retry_until_deadline(op, retry_on=ValueError, interval=5, timeout=30)
    assert op.calls == 1


def test_predicate_selects_retryable_errors(fake_clock):
    op = Flaky(2)
    result = retry_until_deadline(
        op,
        retry_on=lambda exc: "attempt" in str(exc),
        interval=1,
        timeout=10,
    )
    assert result == "done"
    assert fake_clock.sleeps == [1, 1]


def test_tuple_of_types(fake_clock):
    op = Flaky(1, exc_type=KeyError)
    assert retry_until_deadline(op, retry_on=(ValueError, KeyError), interval=1, timeout=10) == "done"


def test_zero_timeout_means_single_attempt(fake_clock):
    op = Flaky(1)
    with pytest.raises(DeadlineExceededError):
        retry_until_deadline(op, retry_on=ValueError, interval=5, timeout=0)
    assert op.calls == 1
