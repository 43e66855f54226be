import pytest
import os
import sys

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from memoize import CacheRegistry, default_registry

@pytest.fixture
def registry():
    return CacheRegistry(threadsafe=False, purity_check_every=0)

@pytest.fixture
def clean_default_registry():
    default_registry.clear()
    yield default_registry
    default_registry.clear()
