import pytest
from session_guard.core.config.app_config import SessionGuardConfig


@pytest.fixture
def guard_config() -> SessionGuardConfig:
    """Default configuration with detection enabled and no turn budget."""
    return SessionGuardConfig()
