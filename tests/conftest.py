"""Shared pytest configuration and fixtures for the widgetsync test suite."""

import sys
from pathlib import Path

import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from widgetsync.core.channel import InMemoryChannel
from widgetsync.core.manager import ModelRegistry

from tests.infrastructure.models import BoxModel, CounterModel, RecordingView


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def channel() -> InMemoryChannel:
    return InMemoryChannel("comm-test")


@pytest.fixture
def registry() -> ModelRegistry:
    reg = ModelRegistry()
    reg.register_model_class("CounterModel", CounterModel)
    reg.register_model_class("BoxModel", BoxModel)
    reg.register_view_class("RecordingView", RecordingView)
    return reg


@pytest.fixture
def model(registry, channel) -> CounterModel:
    """A live CounterModel with default throttle."""
    return CounterModel(registry, "m1", channel)
