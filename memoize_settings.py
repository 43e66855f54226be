"""
Defaults for the memoizing invoker, read from the environment.
"""

import os
from dotenv import load_dotenv

load_dotenv()

def _flag(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")

# Serialize the lookup/compute/store sequence of each registry
THREADSAFE: bool = _flag("MEMOIZE_THREADSAFE")

# Recompute and compare every Nth cache hit, 0 disables. Parsed by CacheRegistry
PURITY_CHECK_EVERY: str = os.getenv("MEMOIZE_PURITY_CHECK_EVERY", "0")

LOG_LEVEL: str = os.getenv("MEMOIZE_LOG_LEVEL", "WARNING").upper()
