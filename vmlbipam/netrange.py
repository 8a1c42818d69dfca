"""Address ranges inside subnets, with the defaults the IP pools apply."""

import ipaddress
from dataclasses import dataclass
from typing import Iterator, Optional, Union

from .apis import Range

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


def _to_ip(value) -> IPAddress:
    """Parse an address, mapping IPv4-mapped IPv6 addresses to IPv4."""
    if isinstance(value, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        ip = value
    elif isinstance(value, str):
        if "%" in value:
            raise ValueError(f"invalid IP {value}")
        ip = ipaddress.ip_address(value)
    else:
        raise TypeError(f"not an IP address: {value!r}")
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped
    return ip


def _as_network(network) -> IPNetwork:
    if isinstance(network, str):
        return ipaddress.ip_network(network, strict=False)
    return network


def _offset(ip: IPAddress, delta: int) -> IPAddress:
    return type(ip)((int(ip) + delta) % (1 << ip.max_prefixlen))


def network_ip(network) -> IPAddress:
    """The network address of a subnet."""
    return _as_network(network).network_address


def broadcast_ip(network) -> IPAddress:
    """The address with every host bit set."""
    return _as_network(network).broadcast_address


def last_ip(network) -> IPAddress:
    """The last usable address of a subnet; the broadcast is excluded for IPv4."""
    end = _as_network(network).broadcast_address
    if end.version == 4:
        value = int(end)
        return ipaddress.IPv4Address((value & ~0xFF) | ((value - 1) & 0xFF))
    return end


@dataclass(frozen=True)
class IPRange:
    """An inclusive span of addresses inside a subnet."""

    subnet: IPNetwork
    range_start: IPAddress
    range_end: IPAddress
    gateway: Optional[IPAddress] = None

    def contains(self, ip) -> bool:
        addr = _to_ip(ip)
        if addr.version != self.subnet.version or addr not in self.subnet:
            return False
        return self.range_start <= addr <= self.range_end

    def count(self) -> int:
        """Number of allocatable addresses; a gateway inside the span is not one."""
        total = int(self.range_end) - int(self.range_start) + 1
        if self.gateway is not None and self.contains(self.gateway):
            total -= 1
        return total

    def __str__(self) -> str:
        return f"{self.range_start}-{self.range_end}"


@dataclass(frozen=True)
class RangeSet:
    """An ordered collection of ranges."""

    ranges: tuple = ()

    def __iter__(self) -> Iterator[IPRange]:
        return iter(self.ranges)

    def __len__(self) -> int:
        return len(self.ranges)

    def contains(self, ip) -> bool:
        addr = _to_ip(ip)
        return any(r.contains(addr) for r in self.ranges)

    def range_for(self, ip) -> IPRange:
        """The first range holding the address; ValueError if none does."""
        addr = _to_ip(ip)
        for r in self.ranges:
            if r.contains(addr):
                return r
        raise ValueError(f"{addr} not in range set {self}")

    def __str__(self) -> str:
        return ",".join(str(r) for r in self.ranges)


def _parse_cidr(text: str) -> tuple:
    address, sep, prefix = text.partition("/")
    error = ValueError(f"invalid CIDR address: {text}, a valid example is 192.168.1.0/24")
    if not sep or not (prefix.isascii() and prefix.isdigit()) or "%" in address:
        raise error
    try:
        interface = ipaddress.ip_interface(text)
    except ValueError:
        raise error from None
    return interface.ip, interface.network


def _parse_in_subnet(text: str, network: IPNetwork, default, label: str):
    if text == "":
        return default
    try:
        ip = _to_ip(text)
    except ValueError:
        raise ValueError(f"invalid {label} {text}: invalid IP {text}") from None
    if ip.version != network.version or ip not in network:
        raise ValueError(f"invalid {label} {text}: IP {text} is out of subnet {network}")
    if ip == network_ip(network):
        raise ValueError(f"invalid {label} {text}: IP {text} is the network address")
    if ip == broadcast_ip(network):
        raise ValueError(f"invalid {label} {text}: IP {text} is the broadcast address")
    return ip


def make_range(r: Range) -> IPRange:
    """Resolve a pool range, filling in defaults and validating every address."""
    host, network = _parse_cidr(r.subnet)

    if network.version == 4 and network.prefixlen == 32:
        default_start = default_end = host
        default_gateway = None
    else:
        # Start and gateway default to the first host; the end to the last usable one.
        default_start = _offset(network.network_address, 1)
        default_end = last_ip(network)
        default_gateway = default_start

    start = _parse_in_subnet(r.range_start, network, default_start, "range start")
    end = _parse_in_subnet(r.range_end, network, default_end, "range end")
    gateway = _parse_in_subnet(r.gateway, network, default_gateway, "gateway")

    if start > end:
        start, end = end, start

    return IPRange(subnet=network, range_start=start, range_end=end, gateway=gateway)


def lb_ranges_to_range_set(ranges) -> RangeSet:
    """Resolve every pool range into a range set."""
    return RangeSet(tuple(make_range(r) for r in ranges))