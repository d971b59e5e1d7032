"""Fixtures shared by the unit tests."""

from __future__ import annotations

import pytest

from hubspot_fakes import ManualClock, at


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(at(1000))


@pytest.fixture
def stoppers():
    """Collect iterators so every poll thread is stopped after the test."""
    started: list = []
    yield started
    for iterator in started:
        iterator.stop()
