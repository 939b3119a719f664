"""
Pytest configuration and fixtures
"""
import os
import sys

import pytest
from kubernetes.client.rest import ApiException

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cronjob_runner.utils.context import Context
from fakes import RecordingContainerLogger


# ============================================
# Fixtures
# ============================================

@pytest.fixture
def ctx():
    """Cancellation context, cancelled after the test"""
    c = Context()
    yield c
    c.cancel("test finished")


@pytest.fixture
def container_logger():
    """Sink recording the container logs"""
    return RecordingContainerLogger()


@pytest.fixture
def not_found():
    return ApiException(status=404, reason="Not Found")
