"""
Tests for the advisory loading deadline.
"""

import asyncio

import pytest

from rewear.services.session.timeout_guard import LoadingDeadline


def test_deadline_must_be_positive():
    with pytest.raises(ValueError):
        LoadingDeadline(0, lambda: None)


@pytest.mark.asyncio
async def test_fires_after_deadline():
    fired = []
    deadline = LoadingDeadline(0.01, lambda: fired.append(True))

    deadline.arm()
    await asyncio.sleep(0.05)

    assert fired == [True]
    assert deadline.expired is True
    assert deadline.armed is False


@pytest.mark.asyncio
async def test_disarm_prevents_late_fire():
    fired = []
    deadline = LoadingDeadline(0.02, lambda: fired.append(True))

    deadline.arm()
    deadline.disarm()
    await asyncio.sleep(0.05)

    assert fired == []
    assert deadline.expired is False


@pytest.mark.asyncio
async def test_rearm_restarts_timer():
    fired = []
    deadline = LoadingDeadline(0.1, lambda: fired.append(True))

    deadline.arm()
    await asyncio.sleep(0.06)
    deadline.arm()
    await asyncio.sleep(0.06)

    assert fired == []

    await asyncio.sleep(0.1)
    assert fired == [True]


@pytest.mark.asyncio
async def test_watch_disarms_on_exit():
    fired = []
    deadline = LoadingDeadline(0.02, lambda: fired.append(True))

    async with deadline.watch():
        assert deadline.armed is True

    await asyncio.sleep(0.04)
    assert fired == []
    assert deadline.armed is False


@pytest.mark.asyncio
async def test_deadline_does_not_cancel_watched_work():
    fired = []
    deadline = LoadingDeadline(0.01, lambda: fired.append(True))

    async with deadline.watch():
        await asyncio.sleep(0.03)
        result = "done"

    assert result == "done"
    assert fired == [True]


@pytest.mark.asyncio
async def test_failing_callback_is_contained():
    def explode():
        raise RuntimeError("boom")

    deadline = LoadingDeadline(0.01, explode)
    deadline.arm()
    await asyncio.sleep(0.03)

    assert deadline.expired is True
