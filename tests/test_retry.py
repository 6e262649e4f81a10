import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from marketplace.services.retry import compute_backoff_seconds, is_transient_db_error, with_db_retry


def _operational():
    return OperationalError("SELECT 1", {}, Exception("connection reset"))


def test_backoff_is_exponential():
    assert [compute_backoff_seconds(a, base=1.0) for a in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 8.0]
    assert compute_backoff_seconds(10, base=1.0, cap=30.0) == 30.0
    assert 2.0 <= compute_backoff_seconds(2, base=1.0, jitter=True) <= 2.0 + 2.0 / 3


def test_transient_classification():
    assert is_transient_db_error(_operational())
    assert is_transient_db_error(TimeoutError())
    assert is_transient_db_error(ConnectionResetError())
    assert not is_transient_db_error(IntegrityError("INSERT", {}, Exception("dup")))
    assert not is_transient_db_error(ValueError("nope"))


@pytest.mark.asyncio
async def test_retries_transient_errors_then_succeeds():
    calls, sleeps, rollbacks = [], [], []

    async def operation():
        calls.append(1)
        if len(calls) < 3:
            raise _operational()
        return "ok"

    async def on_retry():
        rollbacks.append(1)

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    result = await with_db_retry(operation, attempts=3, base_delay=0.5, timeout=1, on_retry=on_retry, sleep=fake_sleep)
    assert result == "ok"
    assert len(calls) == 3
    assert sleeps == [0.5, 1.0]
    assert len(rollbacks) == 2


@pytest.mark.asyncio
async def test_gives_up_after_configured_attempts():
    calls = []

    async def operation():
        calls.append(1)
        raise _operational()

    async def fake_sleep(seconds):
        pass

    with pytest.raises(OperationalError):
        await with_db_retry(operation, attempts=3, base_delay=0.01, timeout=1, sleep=fake_sleep)
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_non_transient_errors_are_not_retried():
    calls = []

    async def operation():
        calls.append(1)
        raise IntegrityError("INSERT", {}, Exception("dup"))

    with pytest.raises(IntegrityError):
        await with_db_retry(operation, attempts=3, base_delay=0.01, timeout=1)
    assert len(calls) == 1
