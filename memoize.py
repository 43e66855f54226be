"""Per-argument-combination result caching for pure callables.

    def fib(n):
        if n < 2: return n
        return cached_function(fib, n - 1) + cached_function(fib, n - 2)

Cache instances are selected by the callable's signature and the types of
the arguments, not by which callable is passed: two functions with the same
signature called with the same argument types share one cache. Callables
without a return annotation have no known result type and are never shared.
The wrapped callable must be a pure function of its arguments, nothing here
checks that unless a registry is built with purity_check_every.
"""

import inspect
import functools
import pickle
import hashlib
import logging
import math
import threading
import contextlib
from collections import namedtuple

import numpy as np

import memoize_settings as settings

logger = logging.getLogger(__name__)
logger.setLevel(settings.LOG_LEVEL)

CacheInfo = namedtuple("CacheInfo", ["hits", "misses", "instances", "entries"])

objhash = lambda x: hashlib.md5(pickle.dumps(x)).hexdigest()

class ImpurityError(ValueError):
    pass

def signature_token(f):
    try:
        sig = inspect.signature(f)
    except (TypeError, ValueError):
        # Builtins without introspectable signatures get a cache of their own
        return f
    params = tuple((p.kind, p.annotation, p.default is not p.empty)
            for p in sig.parameters.values())
    if sig.return_annotation is sig.empty:
        # Unknown result type, only the callable itself can stand for it
        return params, f
    return params, sig.return_annotation

_name = lambda f: getattr(f, "__qualname__", repr(f))

def _same_result(a, b):
    if a is b:
        return True
    if isinstance(a, np.ndarray) or isinstance(b, np.ndarray):
        try:
            return np.array_equal(a, b, equal_nan=True)
        except TypeError:
            # equal_nan needs a numeric dtype
            return np.array_equal(a, b)
    if isinstance(a, float) and isinstance(b, float) and math.isnan(a) and math.isnan(b):
        return True
    return bool(a == b)

class CacheRegistry:
    """Owns one cache mapping per (signature, argument types) instantiation.

    factory builds each cache mapping. keyfunc, if given, maps the bare
    argument (one argument) or the argument tuple (two or more) to the
    stored key, e.g. objhash for unhashable arguments. threadsafe holds a
    reentrant lock over the whole lookup, compute and store sequence.
    purity_check_every recomputes every Nth hit and raises ImpurityError
    if the fresh result differs from the stored one.
    """

    def __init__(self, factory=dict, keyfunc=None, threadsafe=None, purity_check_every=None):
        if threadsafe is None:
            threadsafe = settings.THREADSAFE
        if purity_check_every is None:
            purity_check_every = settings.PURITY_CHECK_EVERY
        try:
            purity_check_every = int(purity_check_every)
        except (TypeError, ValueError):
            raise ValueError(f"purity_check_every must be an integer, got {purity_check_every!r}") from None
        if purity_check_every < 0:
            raise ValueError(f"purity_check_every must be >= 0, got {purity_check_every}")

        self.factory = factory
        self.keyfunc = keyfunc
        self.threadsafe = bool(threadsafe)
        self.purity_check_every = purity_check_every
        self._lock = threading.RLock() if self.threadsafe else contextlib.nullcontext()
        self._instances = {}
        self.hits = 0
        self.misses = 0

    def __len__(self):
        return len(self._instances)

    def instance_key(self, f, args):
        return signature_token(f), tuple(type(a) for a in args)

    def cache_for(self, f, *args):
        ikey = self.instance_key(f, args)
        cache = self._instances.get(ikey)
        if cache is None:
            cache = self._instances[ikey] = self.factory()
            logger.debug("New cache instance for %s with argument types %s",
                    _name(f), ikey[1])
        return cache

    def key(self, arg, *args):
        key = (arg, *args) if args else arg
        if self.keyfunc is not None:
            key = self.keyfunc(key)
        return key

    def call(self, f, arg, *args):
        with self._lock:
            cache = self.cache_for(f, arg, *args)
            key = self.key(arg, *args)
            if key in cache:
                self.hits += 1
                result = cache[key]
                if self.purity_check_every and self.hits % self.purity_check_every == 0:
                    self._check_purity(f, (arg, *args), result)
                return result

            self.misses += 1
            logger.debug("Cache miss for %s%r", _name(f), (arg, *args))
            result = f(arg, *args)
            cache[key] = result
            return result

    def _check_purity(self, f, args, stored):
        logger.debug("Purity check of %s%r", _name(f), args)
        fresh = f(*args)
        if not _same_result(stored, fresh):
            raise ImpurityError(
                f"{_name(f)}{args!r} returned {fresh!r}, "
                f"cached result is {stored!r}")

    def cache_info(self):
        with self._lock:
            entries = sum(len(c) for c in self._instances.values())
            return CacheInfo(self.hits, self.misses, len(self._instances), entries)

    def clear(self):
        with self._lock:
            self._instances.clear()
            self.hits = 0
            self.misses = 0

default_registry = CacheRegistry()

def cached_function(f, arg, *args, registry=None):
    """Return f(arg, *args), computing it only on the first call with equal arguments.

    A single argument is used as the key as is, two or more are keyed by
    their tuple. If f raises, nothing is stored and the exception propagates.
    """
    if registry is None:
        registry = default_registry
    return registry.call(f, arg, *args)

def memoize(f=None, registry=None):
    if f is None:
        return functools.partial(memoize, registry=registry)
    if registry is None:
        registry = default_registry

    @functools.wraps(f)
    def callit(arg, *args):
        return registry.call(f, arg, *args)

    callit.registry = registry
    return callit
