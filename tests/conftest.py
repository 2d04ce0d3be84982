"""Shared fixtures for the search service tests."""

from typing import Dict

import pytest
from prometheus_client import CollectorRegistry

from libs.common.metrics import MetricsCollector
from libs.common.models import Chunk

from tests.fakes import make_chunk


@pytest.fixture
def chunks() -> Dict[str, Chunk]:
    """Chunks c1..c9 with 100 tokens each."""
    return {f"c{i}": make_chunk(f"c{i}") for i in range(1, 10)}


@pytest.fixture
def metrics() -> MetricsCollector:
    """Metrics collector with an isolated registry."""
    return MetricsCollector("test-service", registry=CollectorRegistry())
