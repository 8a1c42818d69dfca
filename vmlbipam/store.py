"""Stores that record allocated addresses in the status of an IP pool."""

import ipaddress
from typing import Optional, Protocol

from .apis import IPPool, IPPoolSpec, IPPoolStatus, ObjectMeta


class _IPPoolCache(Protocol):
    def get(self, name: str) -> IPPool: ...


class _IPPoolClient(Protocol):
    def update(self, pool: IPPool) -> IPPool: ...


def _parse_ip(value) -> Optional[ipaddress._BaseAddress]:
    """Parse an address, or return None when it is not one."""
    try:
        ip = ipaddress.ip_address(str(value))
    except ValueError:
        return None
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped
    return ip


def _key(ip) -> str:
    parsed = _parse_ip(ip)
    if parsed is None:
        raise ValueError(f"invalid IP {ip}")
    return str(parsed)


def _record(status: IPPoolStatus, key: str, applicant_id: str) -> None:
    status.allocated_history.pop(key, None)
    status.allocated[key] = applicant_id
    status.last_allocated = key
    status.available -= 1


def _retire(status: IPPoolStatus, key: str) -> None:
    status.allocated_history[key] = status.allocated.pop(key)
    status.available += 1


def _key_of(status: IPPoolStatus, applicant_id: str) -> Optional[str]:
    return next(
        (key for key, owner in status.allocated.items() if owner == applicant_id),
        None,
    )


def _ips_of(status: IPPoolStatus, applicant_id: str) -> list:
    return [
        _parse_ip(key)
        for key, owner in status.allocated.items()
        if owner == applicant_id
    ]


class PoolStore:
    """Records allocations in the status of a stored IP pool."""

    def __init__(self, pool_name: str, cache: _IPPoolCache, client: _IPPoolClient):
        self.pool_name = pool_name
        self._cache = cache
        self._client = client

    def reserve(self, applicant_id: str, ip) -> bool:
        """Book an address for an applicant; False if someone else holds it."""
        pool = self._cache.get(self.pool_name)
        key = _key(ip)
        owner = pool.status.allocated.get(key)
        if owner is not None:
            # A repeated booking by the same applicant succeeds without a write.
            return owner == applicant_id

        updated = pool.deep_copy()
        _record(updated.status, key, applicant_id)
        try:
            self._client.update(updated)
        except Exception as err:
            raise RuntimeError(f"fail to reserve {key} into {self.pool_name}") from err
        return True

    def last_reserved_ip(self):
        pool = self._cache.get(self.pool_name)
        return _parse_ip(pool.status.last_allocated)

    def release(self, ip) -> None:
        """Free an address; releasing a free address does nothing."""
        pool = self._cache.get(self.pool_name)
        key = _key(ip)
        if key not in pool.status.allocated:
            return
        updated = pool.deep_copy()
        _retire(updated.status, key)
        self._client.update(updated)

    def release_by_id(self, applicant_id: str) -> None:
        """Free the address held by an applicant, if any."""
        pool = self._cache.get(self.pool_name)
        key = _key_of(pool.status, applicant_id)
        if key is None:
            return
        updated = pool.deep_copy()
        _retire(updated.status, key)
        self._client.update(updated)

    def get_by_id(self, applicant_id: str) -> list:
        try:
            pool = self._cache.get(self.pool_name)
        except Exception:
            return []
        return _ips_of(pool.status, applicant_id)


class FakeStore:
    """An in-memory store that keeps its own pool object."""

    def __init__(self, name: str, ranges):
        self.pool = IPPool(
            metadata=ObjectMeta(name=name),
            spec=IPPoolSpec(ranges=list(ranges)),
        )

    def reserve(self, applicant_id: str, ip) -> bool:
        key = _key(ip)
        if key in self.pool.status.allocated:
            return False
        _record(self.pool.status, key, applicant_id)
        return True

    def last_reserved_ip(self):
        return _parse_ip(self.pool.status.last_allocated)

    def release(self, ip) -> None:
        key = _key(ip)
        if key in self.pool.status.allocated:
            _retire(self.pool.status, key)

    def release_by_id(self, applicant_id: str) -> None:
        key = _key_of(self.pool.status, applicant_id)
        if key is not None:
            _retire(self.pool.status, key)

    def get_by_id(self, applicant_id: str) -> list:
        return _ips_of(self.pool.status, applicant_id)