import pytest

from transcript_intake.errors import GraphError, TransientError
from transcript_intake.services.retry import RetryPolicy, is_transient_status, parse_retry_after


class Recorder:
    def __init__(self):
        self.sleeps = []

    async def __call__(self, seconds):
        self.sleeps.append(seconds)


def test_parse_retry_after():
    assert parse_retry_after("7") == 7.0
    assert parse_retry_after(" 2.5 ") == 2.5
    assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT") == 0.0
    assert parse_retry_after(None) is None
    assert parse_retry_after("soon") is None


def test_transient_statuses():
    assert is_transient_status(429)
    assert is_transient_status(503)
    assert not is_transient_status(404)


@pytest.mark.asyncio
async def test_retries_transient_using_provider_hint():
    sleeper = Recorder()
    policy = RetryPolicy(max_attempts=3, default_backoff=5, sleep=sleeper)
    attempts = []

    async def flaky():
        attempts.append(1)
        if len(attempts) == 1:
            raise TransientError("throttled", retry_after=2)
        if len(attempts) == 2:
            raise TransientError("unavailable")
        return "ok"

    assert await policy.call(flaky) == "ok"
    assert len(attempts) == 3
    assert sleeper.sleeps == [2, 5]


@pytest.mark.asyncio
async def test_reraises_after_exhaustion():
    sleeper = Recorder()
    policy = RetryPolicy(max_attempts=2, default_backoff=1, sleep=sleeper)

    async def always_down():
        raise TransientError("down", status=503)

    with pytest.raises(TransientError, match="down"):
        await policy.call(always_down)
    assert sleeper.sleeps == [1]


@pytest.mark.asyncio
async def test_permanent_errors_are_not_retried():
    sleeper = Recorder()
    policy = RetryPolicy(max_attempts=3, sleep=sleeper)
    attempts = []

    async def forbidden():
        attempts.append(1)
        raise GraphError("forbidden", status=403)

    with pytest.raises(GraphError):
        await policy.call(forbidden)
    assert len(attempts) == 1
    assert sleeper.sleeps == []


def test_backoff_is_capped():
    policy = RetryPolicy(max_backoff=30)
    assert policy.backoff_for(TransientError("slow down", retry_after=600)) == 30
    assert policy.backoff_for(ValueError("no hint")) == policy.default_backoff
