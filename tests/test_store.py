import ipaddress

import pytest

from vmlbipam.apis import IPPool, NotFoundError, ObjectMeta, Range
from vmlbipam.store import FakeStore, PoolStore

POOL = "pool1"
APPLICANT = "default/lb1"
OTHER = "default/lb2"
IP = "10.0.0.5"


class _Registry:
    def __init__(self, *pools):
        self.pools = {pool.metadata.name: pool for pool in pools}
        self.updates = 0
        self.fail = False

    def get(self, name):
        try:
            return self.pools[name]
        except KeyError:
            raise NotFoundError(name) from None

    def update(self, pool):
        if self.fail:
            raise RuntimeError("conflict")
        self.updates += 1
        self.pools[pool.metadata.name] = pool
        return pool


@pytest.fixture
def registry():
    return _Registry(IPPool(metadata=ObjectMeta(name=POOL)))


@pytest.fixture
def store(registry):
    return PoolStore(POOL, registry, registry)


def test_reserve_records_applicant(registry, store):
    before = registry.pools[POOL].status.available
    assert store.reserve(APPLICANT, IP) is True
    status = registry.pools[POOL].status
    assert status.allocated == {IP: APPLICANT}
    assert status.last_allocated == IP
    assert status.available == before - 1


def test_reserve_does_not_mutate_cached_object(registry, store):
    original = registry.pools[POOL]
    store.reserve(APPLICANT, IP)
    assert original.status.allocated == {}
    assert registry.pools[POOL] is not original


def test_reserve_taken_by_other_fails(registry, store):
    store.reserve(APPLICANT, IP)
    assert store.reserve(OTHER, IP) is False
    assert registry.pools[POOL].status.allocated == {IP: APPLICANT}


def test_reserve_again_by_same_applicant_succeeds_without_update(registry, store):
    store.reserve(APPLICANT, IP)
    updates = registry.updates
    assert store.reserve(APPLICANT, IP) is True
    assert registry.updates == updates


def test_reserve_update_failure_raises(registry, store):
    registry.fail = True
    with pytest.raises(RuntimeError, match="fail to reserve"):
        store.reserve(APPLICANT, IP)


def test_reserve_clears_history(registry, store):
    registry.pools[POOL].status.allocated_history[IP] = OTHER
    store.reserve(APPLICANT, IP)
    assert IP not in registry.pools[POOL].status.allocated_history


def test_reserve_missing_pool_raises():
    registry = _Registry()
    with pytest.raises(NotFoundError):
        PoolStore(POOL, registry, registry).reserve(APPLICANT, IP)


def test_release_moves_to_history(registry, store):
    start = registry.pools[POOL].status.available
    store.reserve(APPLICANT, IP)
    store.release(ipaddress.ip_address(IP))
    status = registry.pools[POOL].status
    assert status.allocated == {}
    assert status.allocated_history == {IP: APPLICANT}
    assert status.available == start


def test_release_free_address_writes_nothing(registry, store):
    store.release(IP)
    assert registry.updates == 0
    assert registry.pools[POOL].status.allocated_history == {}


def test_release_by_id(registry, store):
    store.reserve(APPLICANT, IP)
    store.reserve(OTHER, "10.0.0.6")
    store.release_by_id(APPLICANT)
    status = registry.pools[POOL].status
    assert status.allocated == {"10.0.0.6": OTHER}
    assert status.allocated_history == {IP: APPLICANT}


def test_release_by_unknown_id_writes_nothing(registry, store):
    store.reserve(APPLICANT, IP)
    updates = registry.updates
    store.release_by_id(OTHER)
    assert registry.updates == updates


def test_get_by_id(store):
    store.reserve(APPLICANT, IP)
    assert store.get_by_id(APPLICANT) == [ipaddress.ip_address(IP)]
    assert store.get_by_id(OTHER) == []


def test_get_by_id_missing_pool_is_empty():
    registry = _Registry()
    assert PoolStore(POOL, registry, registry).get_by_id(APPLICANT) == []


def test_last_reserved_ip(store):
    assert store.last_reserved_ip() is None
    store.reserve(APPLICANT, IP)
    assert store.last_reserved_ip() == ipaddress.ip_address(IP)


def test_fake_store_holds_pool():
    ranges = [Range(subnet="10.0.0.0/24")]
    fake = FakeStore(POOL, ranges)
    assert fake.pool.metadata.name == POOL
    assert fake.pool.spec.ranges == ranges


def test_fake_store_reserve_and_release():
    fake = FakeStore(POOL, [])
    assert fake.reserve(APPLICANT, IP) is True
    assert fake.reserve(APPLICANT, IP) is False
    assert fake.get_by_id(APPLICANT) == [ipaddress.ip_address(IP)]
    assert fake.last_reserved_ip() == ipaddress.ip_address(IP)
    fake.release(IP)
    assert fake.pool.status.allocated == {}
    assert fake.pool.status.allocated_history == {IP: APPLICANT}
    assert fake.pool.status.available == 0


def test_fake_store_release_by_id():
    fake = FakeStore(POOL, [])
    fake.reserve(APPLICANT, IP)
    fake.release_by_id(APPLICANT)
    assert fake.get_by_id(APPLICANT) == []
    assert fake.pool.status.allocated_history == {IP: APPLICANT}