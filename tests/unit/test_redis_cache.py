import fnmatch

from mf_engine.infrastructure.cache.redis_cache import RedisCache


class FakeRedis:
    """Just enough of redis.Redis for the cache wrapper"""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, ex=None):
        self.store[key] = value
        self.ttls[key] = ex

    def delete(self, *keys):
        for key in keys:
            self.store.pop(key, None)

    def scan_iter(self, match=None):
        return [k for k in list(self.store) if match is None or fnmatch.fnmatch(k, match)]

    def close(self):
        pass


class BrokenRedis:
    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise ConnectionError("redis down")
        return fail


def test_json_round_trip_with_prefix_and_ttl():
    client = FakeRedis()
    cache = RedisCache("redis://unused", prefix="mf:", client=client)

    cache.set_json("holdings:P1:v0", [{"fund_code": "F1"}], ttl_seconds=300)

    assert "mf:holdings:P1:v0" in client.store
    assert client.ttls["mf:holdings:P1:v0"] == 300
    assert cache.get_json("holdings:P1:v0") == [{"fund_code": "F1"}]


def test_delete_prefix_only_touches_matching_keys():
    client = FakeRedis()
    cache = RedisCache("redis://unused", prefix="mf:", client=client)
    cache.set_json("holdings:P1:v0", 1, 60)
    cache.set_json("holdings:P2:v0", 2, 60)

    cache.delete_prefix("holdings:P1:")

    assert cache.get_json("holdings:P1:v0") is None
    assert cache.get_json("holdings:P2:v0") == 2


def test_disabled_cache_is_a_no_op():
    client = FakeRedis()
    cache = RedisCache("redis://unused", enabled=False, client=client)

    cache.set_json("k", 1, 60)

    assert client.store == {}
    assert cache.get_json("k") is None


def test_failures_read_as_misses():
    cache = RedisCache("redis://unused", client=BrokenRedis())

    cache.set_json("k", 1, 60)
    cache.delete("k")
    cache.delete_prefix("k")
    assert cache.get_json("k") is None
