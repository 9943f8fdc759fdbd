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

import threading

import mock
import pytest

from stratus.resourceAdapter.openstack.cache import CachedData, CachedFunction


class FakeTimer:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def timer():
    return FakeTimer()


def test_cached_within_ttl(timer):
    func = mock.Mock(side_effect=lambda key: key.upper())

    cached = CachedFunction(func, 10, timer=timer)

    assert cached.get('a') == 'A'
    assert cached.get('a') == 'A'

    timer.now = 9.9

    assert cached.get('a') == 'A'

    assert func.call_count == 1

    timer.now = 10

    assert cached.get('a') == 'A'

    assert func.call_count == 2


def test_keys_are_independent(timer):
    func = mock.Mock(side_effect=lambda key: key)

    cached = CachedFunction(func, 10, timer=timer)

    cached.get('a')
    cached.get('b')
    cached.get('a')

    assert func.call_count == 2


def test_none_key_is_distinct_from_empty_string(timer):
    func = mock.Mock(side_effect=lambda key: repr(key))

    cached = CachedFunction(func, 10, timer=timer)

    assert cached.get(None) == 'None'
    assert cached.get('') == "''"
    assert cached.get(None) == 'None'

    assert func.call_count == 2


def test_empty_value_is_cached(timer):
    func = mock.Mock(return_value=[])

    cached = CachedFunction(func, 10, timer=timer)

    assert cached.get('a') == []
    assert cached.get('a') == []

    assert func.call_count == 1


def test_same_exception_instance_is_raised(timer):
    func = mock.Mock(side_effect=ValueError('boom'))

    cached = CachedFunction(func, 10, timer=timer)

    with pytest.raises(ValueError) as first:
        cached.get('a')

    with pytest.raises(ValueError) as second:
        cached.get('a')

    assert first.value is second.value

    assert func.call_count == 1


def test_exceptions_not_cached_when_disabled(timer):
    func = mock.Mock(side_effect=[ValueError('boom'), 'ok'])

    cached = CachedFunction(func, 10, cache_exceptions=False, timer=timer)

    with pytest.raises(ValueError):
        cached.get('a')

    assert cached.get('a') == 'ok'
    assert cached.get('a') == 'ok'

    assert func.call_count == 2


def test_invalidate(timer):
    func = mock.Mock(return_value=1)

    cached = CachedFunction(func, 10, timer=timer)

    cached.get('a')
    cached.invalidate('a')
    cached.get('a')

    assert func.call_count == 2


def test_single_flight():
    started = threading.Event()
    release = threading.Event()

    calls = []

    def slow(key):
        calls.append(key)
        started.set()
        release.wait(5)
        return key

    cached = CachedFunction(slow, 10)

    results = []

    threads = [threading.Thread(target=lambda: results.append(cached('a')))
               for _ in range(5)]

    threads[0].start()

    started.wait(5)

    for thread in threads[1:]:
        thread.start()

    release.set()

    for thread in threads:
        thread.join(5)

    assert results == ['a'] * 5

    assert calls == ['a']


def test_cached_data(timer):
    func = mock.Mock(return_value={'x': 1})

    cached = CachedData(func, 10, timer=timer)

    assert cached() == {'x': 1}
    assert cached.get() == {'x': 1}

    assert func.call_count == 1

    cached.clear()

    cached.get()

    assert func.call_count == 2
