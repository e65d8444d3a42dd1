"""Shared fixtures for the reminder engine tests."""

from __future__ import annotations

import pytest

from lifeops.models.schedule import EveryNMonths, FixedDate, Yearly


@pytest.fixture
def fixed_schedule() -> FixedDate:
    return FixedDate()


@pytest.fixture
def monthly_schedule() -> EveryNMonths:
    return EveryNMonths(months=1)


@pytest.fixture
def leap_day_schedule() -> Yearly:
    return Yearly(month=2, day=29)
