"""Shared fixtures for deal health engine tests."""

from __future__ import annotations

from datetime import datetime

import pytest

from src.deal_health.dimensions import DimensionScorer
from src.deal_health.engine import DealHealthEngine
from tests.health_builders import AS_OF


@pytest.fixture
def as_of() -> datetime:
    """Fixed reference instant for time-relative metrics."""
    return AS_OF


@pytest.fixture
def scorer() -> DimensionScorer:
    """DimensionScorer with the default policy."""
    return DimensionScorer()


@pytest.fixture
def engine() -> DealHealthEngine:
    """DealHealthEngine with the default policy."""
    return DealHealthEngine()
