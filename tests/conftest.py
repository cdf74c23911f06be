"""Pytest configuration and shared fixtures."""

import os
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

# Set testing mode BEFORE importing settings
os.environ["TESTING"] = "true"

from therapy_profiles.config import settings

settings.testing = True

from factories import SUPPORTED_BASAL_RATES, FakeClock
from therapy_profiles.schemas.therapy_settings import SupportedIncrements, TherapySettings
from therapy_profiles.services.profile_store import ProfileStore


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 6, 15, 12, 0, 0))


@pytest.fixture
def store(tmp_path, clock) -> ProfileStore:
    """A store in a fresh directory that does not exist yet."""
    return ProfileStore(tmp_path / "LoopProfile", clock=clock)


@pytest.fixture
def therapy_settings() -> TherapySettings:
    return TherapySettings(maximum_basal_rate_per_hour=2.0)


@pytest.fixture
def device() -> MagicMock:
    """Pump capabilities reporting the default supported basal rates."""
    device = MagicMock()
    device.supported_increments.return_value = SupportedIncrements(
        basal_rates=SUPPORTED_BASAL_RATES
    )
    return device


@pytest.fixture
def pump() -> MagicMock:
    """Pump delegate that confirms whatever basal schedule it is sent."""
    pump = MagicMock()
    pump.sync_basal_rate_schedule = AsyncMock(side_effect=lambda items: items)
    return pump
