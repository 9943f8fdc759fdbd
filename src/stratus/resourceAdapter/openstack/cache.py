# Copyright 2008-2018 Univa Corporation
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Short-lived memoization of expensive OpenStack lookups.

Both values and exceptions are cached. Concurrent callers missing the
same key share a single evaluation of the underlying function.
"""

import threading
import time
from typing import Any, Callable, Dict, Optional

import cachetools


# Index used in the cache when the function argument is None so it never
# collides with a legitimate key such as ''
NULL = object()

_MISSING = object()

DEFAULT_MAXSIZE = 1024


class Result(object):
    """Outcome of a single evaluation of the cached function"""

    __slots__ = ('value', 'ex', 'tb')

    def __init__(self, value: Any = None,
                 ex: Optional[BaseException] = None) -> None:
        self.value = value
        self.ex = ex

        # Traceback as captured when the function originally failed
        self.tb = ex.__traceback__ if ex is not None else None

    def unwrap(self) -> Any:
        if self.ex is not None:
            # Raise the very same instance with the original traceback so
            # the frames read 'this call site -> ... -> original failure'
            # instead of pointing at whoever happened to miss the cache.
            raise self.ex.with_traceback(self.tb)

        return self.value


class CachedFunction(object):
    """
    Caches the result of calling a single-argument function for the given
    number of seconds.

    :param func: function to memoize; anything it raises is cached too
    :param seconds_to_cache_data: how long an entry remains valid after
                                  being calculated
    :param cache_exceptions: when False, failures are handed to the
                             caller but not remembered
    :param timer: clock used for expiry, mostly useful for testing
    """

    def __init__(self, func: Callable[[Any], Any],
                 seconds_to_cache_data: float,
                 maxsize: int = DEFAULT_MAXSIZE,
                 cache_exceptions: bool = True,
                 timer: Callable[[], float] = time.monotonic) -> None:
        self._func = func
        self._cache_exceptions = cache_exceptions

        self.cache = cachetools.TTLCache(
            maxsize=maxsize, ttl=seconds_to_cache_data, timer=timer)

        self._lock = threading.RLock()

        # Locks for keys currently being calculated
        self._inflight: Dict[Any, threading.Lock] = {}

    def calculate(self, key: Any) -> Result:
        try:
            return Result(value=self._func(key))
        except Exception as exc:  # pylint: disable=broad-except
            return Result(ex=exc)

    def get(self, key: Any = None) -> Any:
        cache_key = NULL if key is None else key

        with self._lock:
            result = self.cache.get(cache_key, _MISSING)
            if result is _MISSING:
                key_lock = self._inflight.setdefault(
                    cache_key, threading.Lock())

        if result is _MISSING:
            with key_lock:
                # Another caller may have completed the calculation while
                # we were waiting for the key lock
                with self._lock:
                    result = self.cache.get(cache_key, _MISSING)

                if result is _MISSING:
                    result = self.calculate(key)

                    with self._lock:
                        if result.ex is None or self._cache_exceptions:
                            self.cache[cache_key] = result

                        if self._inflight.get(cache_key) is key_lock:
                            del self._inflight[cache_key]

        return result.unwrap()

    def invalidate(self, key: Any = None) -> None:
        with self._lock:
            self.cache.pop(NULL if key is None else key, None)

    def clear(self) -> None:
        with self._lock:
            self.cache.clear()

    def __call__(self, key: Any = None) -> Any:
        return self.get(key)


class CachedData(object):
    """
    Caches the result of a zero-argument function.
    """

    def __init__(self, func: Callable[[], Any],
                 seconds_to_cache_data: float,
                 timer: Callable[[], float] = time.monotonic) -> None:
        self.cache = CachedFunction(
            lambda _: func(), seconds_to_cache_data, maxsize=1, timer=timer)

    def get(self) -> Any:
        return self.cache.get('')

    def clear(self) -> None:
        self.cache.clear()

    def __call__(self) -> Any:
        return self.get()
