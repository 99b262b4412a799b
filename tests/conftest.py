"""Pytest configuration and shared fixtures."""

from typing import List, Tuple

import pytest
from fastapi.testclient import TestClient

from predictive_api.services.training_service import TrainingService


@pytest.fixture
def service() -> TrainingService:
    """Return a CPU-only training service with the default learning rate."""
    return TrainingService(use_gpu=False, timeout=60.0)


@pytest.fixture
def doubling_dataset() -> Tuple[List[List[float]], List[float]]:
    """Return a learnable single-feature dataset: y = 2x for x in 0..9."""
    rows = [[float(x)] for x in range(10)]
    labels = [2.0 * x for x in range(10)]
    return rows, labels


@pytest.fixture
def two_feature_dataset() -> Tuple[List[List[float]], List[float]]:
    """Return a small two-feature dataset: y = x1 + 3 * x2."""
    rows = [[1.0, 0.0], [0.0, 1.0], [2.0, 1.0], [1.0, 2.0], [3.0, 0.5]]
    labels = [r[0] + 3.0 * r[1] for r in rows]
    return rows, labels


@pytest.fixture
def client():
    """Return a test client with the app lifespan running."""
    from main import app

    with TestClient(app) as test_client:
        yield test_client
