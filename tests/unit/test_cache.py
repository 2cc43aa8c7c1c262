"""
Unit tests for the metadata cache.
"""
import threading

from tests.fixtures.entities import Account, SampleEntity

from entitymap.cache import Cache


def test_cache_singleton():
    """Test that the process-wide Cache is a singleton"""
    cache1 = Cache.get_instance()
    cache2 = Cache.get_instance()
    assert cache1 is cache2
    assert Cache() is not cache1


def test_cache_operations():
    """Test named cache get/put/clear operations"""
    cache = Cache()

    schemas = cache.get_cache('schemas')
    cache.put('schemas', Account, 'account schema')
    assert cache.get_cache('schemas') is schemas
    assert schemas[Account] == 'account schema'

    cache.clear_all()
    assert Account not in cache.get_cache('schemas')


def test_get_or_compute_runs_factory_once():
    cache = Cache()
    calls = []

    def factory():
        calls.append(1)
        return object()

    first = cache.get_or_compute('things', 'key', factory)
    assert cache.get_or_compute('things', 'key', factory) is first
    assert len(calls) == 1


def test_get_or_compute_keeps_first_value_under_contention():
    cache = Cache()
    barrier = threading.Barrier(8)
    results = []

    def factory():
        return object()

    def worker():
        barrier.wait()
        results.append(cache.get_or_compute('things', 'key', factory))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len({id(r) for r in results}) == 1


def test_clear_cache():
    cache = Cache()
    cache.put('a', 1, 'one')
    cache.put('b', 1, 'one')

    cache.clear_cache('a')
    cache.clear_cache('missing')

    assert 1 not in cache.get_cache('a')
    assert 1 in cache.get_cache('b')


def test_clear_for_type():
    """Test clearing cache entries for one entity type"""
    cache = Cache()
    cache.put('schemas', Account, 'account')
    cache.put('schemas', SampleEntity, 'sample')
    cache.put('properties', Account, 'account')

    cache.clear_for_type(Account)

    assert Account not in cache.get_cache('schemas')
    assert Account not in cache.get_cache('properties')
    assert SampleEntity in cache.get_cache('schemas')


def test_discard_where():
    cache = Cache()
    cache.put('plans', (Account, 'a'), 1)
    cache.put('plans', (Account, 'b'), 2)
    cache.put('plans', (SampleEntity, 'a'), 3)

    cache.discard_where('plans', lambda key: key[0] is Account)

    assert list(cache.get_cache('plans')) == [(SampleEntity, 'a')]


if __name__ == '__main__':
    __import__('pytest').main([__file__])
