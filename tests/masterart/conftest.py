import pytest

from masterart.foundation.config import UnifiedConfig
from masterart.foundation.configuration import (
    reset_runtime_config_cache,
    runtime_config_override,
)
from masterart.runtime import metrics


@pytest.fixture(autouse=True)
def _isolated_runtime():
    """Default configuration and zeroed metrics for every test."""
    reset_runtime_config_cache()
    metrics.reset_metrics()
    try:
        with runtime_config_override(UnifiedConfig()):
            yield
    finally:
        reset_runtime_config_cache()
