"""Pytest configuration and fixtures for guardrail tests."""

import pytest
from datetime import datetime, timedelta, timezone
from typing import List

from data_guardrails.core.data_quality import DataQualityService
from data_guardrails.database.store import MemoryKeyValueStore
from data_guardrails.models.config import GuardrailSettings
from data_guardrails.models.guardrails import GuardrailMode, MetricClass


# ============================================================================
# TIME FIXTURES
# ============================================================================

@pytest.fixture
def now():
    """Fixed evaluation time."""
    return datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def minutes_ago(now):
    """Build a datetime N minutes before the fixed evaluation time."""
    def _minutes_ago(minutes: float) -> datetime:
        return now - timedelta(minutes=minutes)
    return _minutes_ago


# ============================================================================
# SERVICE FIXTURES
# ============================================================================

@pytest.fixture
def store():
    """Empty in-memory key-value store."""
    return MemoryKeyValueStore()


@pytest.fixture
def settings():
    """Settings isolated from the environment."""
    return GuardrailSettings(storage_backend="memory", default_mode=GuardrailMode.STRICT)


@pytest.fixture
def service(store, settings):
    """DataQualityService in strict mode backed by the memory store."""
    return DataQualityService(store=store, settings=settings)


@pytest.fixture
def make_sources(service, minutes_ago, now):
    """Build fresh price sources named Source A, Source B, ..."""
    def _make_sources(count: int, age_minutes: float = 1,
                      metric_class: MetricClass = MetricClass.PRICE) -> List:
        return [
            service.create_data_source(f"Source {chr(ord('A') + i)}", minutes_ago(age_minutes),
                                       metric_class=metric_class, now=now)
            for i in range(count)
        ]
    return _make_sources


# ============================================================================
# SAMPLE DATA FIXTURES
# ============================================================================

@pytest.fixture
def sample_market_data():
    """CoinGecko markets record for bitcoin, updated 2 minutes before `now`."""
    return {
        "id": "bitcoin",
        "symbol": "btc",
        "name": "Bitcoin",
        "current_price": 42150.0,
        "market_cap": 826000000000,
        "market_cap_rank": 1,
        "total_volume": 18500000000,
        "price_change_percentage_24h": 1.25,
        "circulating_supply": 19600000,
        "total_supply": 21000000,
        "max_supply": 21000000,
        "ath": 69045,
        "ath_date": "2021-11-10T14:24:11.849Z",
        "atl": 67.81,
        "atl_date": "2013-07-06T00:00:00.000Z",
        "last_updated": "2024-01-15T11:58:00.000Z",
    }
