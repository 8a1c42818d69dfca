"""Address allocation from the ranges of an IP pool."""

import hashlib
import ipaddress
import logging
import threading
from dataclasses import dataclass
from typing import Iterator, Optional

from .netrange import IPAddress, IPNetwork, IPRange, RangeSet, make_range
from .store import PoolStore

log = logging.getLogger(__name__)


def _parse_ip(value) -> Optional[IPAddress]:
    if isinstance(value, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        ip = value
    else:
        try:
            ip = ipaddress.ip_address(str(value))
        except ValueError:
            return None
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped
    return ip


@dataclass(frozen=True)
class IPConfig:
    """An allocated address with its subnet and gateway."""

    ip: IPAddress
    subnet: IPNetwork
    gateway: Optional[IPAddress] = None

    @property
    def mask(self) -> IPAddress:
        return self.subnet.netmask


class IPAllocator:
    """Hands out addresses from a range set, round robin after the last one booked."""

    def __init__(self, range_set: RangeSet, store):
        if len(range_set) == 0:
            raise ValueError("range set can't be empty")
        self.range_set = range_set
        self.store = store

    def get(self, applicant_id: str, requested_ip=None) -> IPConfig:
        if requested_ip is not None:
            addr = _parse_ip(requested_ip)
            if addr is None:
                raise ValueError(f"invalid IP {requested_ip}")
            r = self.range_set.range_for(addr)
            if addr == r.gateway:
                raise ValueError(f"requested ip {addr} is subnet's gateway")
            if not self.store.reserve(applicant_id, addr):
                raise ValueError(
                    f"requested IP address {addr} is not available in range set {self.range_set}"
                )
            return IPConfig(addr, r.subnet, r.gateway)

        for ip in self.store.get_by_id(applicant_id):
            if ip is not None and self.range_set.contains(ip):
                raise RuntimeError(
                    f"{ip} has been allocated to {applicant_id}, duplicate allocation is not allowed"
                )

        for r, ip in self._candidates():
            if self.store.reserve(applicant_id, ip):
                return IPConfig(ip, r.subnet, r.gateway)

        raise RuntimeError(f"no IP addresses available in range set: {self.range_set}")

    def release(self, applicant_id: str) -> None:
        self.store.release_by_id(applicant_id)

    def _last_reserved(self) -> Optional[IPAddress]:
        try:
            return self.store.last_reserved_ip()
        except Exception as err:
            log.error("error retrieving last reserved ip: %s", err)
            return None

    @staticmethod
    def _span(r: IPRange, low: int, high: int) -> Iterator[tuple]:
        kind = type(r.range_start)
        for value in range(low, high + 1):
            ip = kind(value)
            if ip != r.gateway:
                yield r, ip

    def _candidates(self) -> Iterator[tuple]:
        ranges = list(self.range_set)
        last = self._last_reserved()
        if last is None or not self.range_set.contains(last):
            for r in ranges:
                yield from self._span(r, int(r.range_start), int(r.range_end))
            return

        index = next(i for i, r in enumerate(ranges) if r.contains(last))
        first = ranges[index]
        yield from self._span(first, int(last) + 1, int(first.range_end))
        for r in ranges[index + 1:] + ranges[:index]:
            yield from self._span(r, int(r.range_start), int(r.range_end))
        yield from self._span(first, int(first.range_start), int(last))


@dataclass
class Allocator:
    """The allocator of one IP pool, preferring addresses an applicant held before."""

    name: str
    ip_allocator: IPAllocator
    check_sum: str
    total: int
    cache: object = None

    def get(self, applicant_id: str) -> IPConfig:
        pool = self.cache.get(self.name)
        for ip_text, owner in pool.status.allocated_history.items():
            if owner == applicant_id:
                return self.ip_allocator.get(applicant_id, _parse_ip(ip_text))
        return self.ip_allocator.get(applicant_id)

    def release(self, applicant_id: str) -> None:
        self.ip_allocator.release(applicant_id)


def _format_ranges(ranges) -> str:
    items = " ".join(
        f"{{{r.range_start} {r.range_end} {r.subnet} {r.gateway}}}" for r in ranges
    )
    return f"[{items}]"


def calculate_check_sum(ranges) -> str:
    """A SHA-256 hex digest identifying a list of pool ranges."""
    return hashlib.sha256(_format_ranges(ranges).encode()).hexdigest()


def new_allocator(name: str, ranges, cache, client) -> Allocator:
    """Build the allocator of a pool backed by its stored status."""
    ranges = list(ranges)
    if not ranges:
        raise ValueError("range can't be empty")
    resolved = tuple(make_range(r) for r in ranges)
    return Allocator(
        name=name,
        ip_allocator=IPAllocator(RangeSet(resolved), PoolStore(name, cache, client)),
        check_sum=calculate_check_sum(ranges),
        total=sum(r.count() for r in resolved),
        cache=cache,
    )


class SafeAllocatorMap:
    """A thread-safe mapping from pool name to allocator."""

    def __init__(self):
        self._allocators: dict = {}
        self._lock = threading.Lock()

    def add_or_update(self, name: str, allocator: Allocator) -> None:
        with self._lock:
            self._allocators[name] = allocator

    def delete(self, name: str) -> None:
        with self._lock:
            self._allocators.pop(name, None)

    def get(self, name: str) -> Optional[Allocator]:
        with self._lock:
            return self._allocators.get(name)