"""Conversion of the legacy kube-vip address configuration into IP pools."""

import copy
import ipaddress
import json
import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

from .apis import (
    GROUP_NAME,
    IPPool,
    IPPoolSpec,
    IPPoolStatus,
    NotFoundError,
    ObjectMeta,
    Range,
    Selector,
    Tuple,
)
from .netrange import RangeSet, lb_ranges_to_range_set
from .selector import ALL, VALUE_TRUE

log = logging.getLogger(__name__)

KUBE_SYSTEM_NAMESPACE = "kube-system"
KUBEVIP_IP_POOL_CONFIG_MAP = "kubevip"
KUBEVIP_DATA_KEY = "kubevip-services"
GLOBAL_IP_POOL_NAME = "global"
FORMAT_CIDR = "cidr"
FORMAT_RANGE = "range"
KEY_AFTER_CONVERSION = f"{GROUP_NAME}/after-conversion"
ADDRESS_FOR_DHCP = "0.0.0.0"


class InvalidFormatError(ValueError):
    """A kube-vip pool entry uses a format other than cidr or range."""


@dataclass
class ConfigMap:
    """A named set of string data with annotations."""

    name: str = ""
    namespace: str = ""
    annotations: dict[str, str] = field(default_factory=dict)
    data: dict[str, str] = field(default_factory=dict)


@dataclass
class KubeVIPService:
    """An address kube-vip handed out to a service."""

    vip: str = ""
    service_name: str = ""


class _ConfigMapClient(Protocol):
    def get(self, namespace: str, name: str) -> ConfigMap: ...

    def update(self, config_map: ConfigMap) -> ConfigMap: ...

    def list(self) -> list: ...


def _parse_ip(text: str):
    if "%" in text:
        return None
    try:
        ip = ipaddress.ip_address(text)
    except ValueError:
        return None
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped
    return ip


def _parse_cidr(text: str):
    address, sep, prefix = text.partition("/")
    error = ValueError(f"invalid CIDR address: {text}")
    if not sep or not (prefix.isascii() and prefix.isdigit()) or "%" in address:
        raise error
    try:
        return ipaddress.ip_interface(text).network
    except ValueError:
        raise error from None


def get_format_and_name(key: str) -> tuple:
    """Split a data key such as "cidr-default" into its format and pool name."""
    fmt, sep, name = key.partition("-")
    if not sep:
        raise ValueError(f"invalid input {key}")
    return fmt, name


def get_ip_net(start_ip: str, end_ip: str) -> ipaddress.IPv4Network:
    """The smallest network, at most a /31, that holds both addresses."""
    start = _parse_ip(start_ip)
    if start is None:
        raise ValueError(f"invalid start IP address: {start_ip}")
    end = _parse_ip(end_ip)
    if end is None:
        raise ValueError(f"invalid end IP address: {end_ip}")
    if start.version != end.version:
        raise ValueError(
            f"IP version mismatch between start ({start_ip}) and end ({end_ip}) IP addresses"
        )
    if start.version != 4:
        raise ValueError(f"IPv6 range {start_ip}-{end_ip} is not supported")

    first, last = int(start), int(end)
    prefix = next(
        i for i in range(31, -1, -1) if first >> (32 - i) == last >> (32 - i)
    )
    mask = (0xFFFFFFFF << (32 - prefix)) & 0xFFFFFFFF
    return ipaddress.IPv4Network((first & mask, prefix))


def parse_kubevip_ip_pool(pool: str, fmt: str) -> list:
    """Parse a comma separated kube-vip pool value into pool ranges."""
    ranges = []
    for item in pool.split(","):
        if fmt == FORMAT_CIDR:
            ranges.append(Range(subnet=str(_parse_cidr(item))))
        elif fmt == FORMAT_RANGE:
            parts = item.split("-")
            if len(parts) != 2 or _parse_ip(parts[0]) is None or _parse_ip(parts[1]) is None:
                raise ValueError(f"invalid range {item}")
            try:
                network = get_ip_net(parts[0], parts[1])
            except ValueError as err:
                raise ValueError(f"get IP net failed for range {item}, error: {err}") from err
            ranges.append(Range(range_start=parts[0], range_end=parts[1], subnet=str(network)))
        else:
            raise InvalidFormatError(f"invalid format {fmt}")
    return ranges


def make_ip_pool(name: str, ranges) -> IPPool:
    """An IP pool serving the namespace it is named after, or every namespace if global."""
    namespace = ALL if name == GLOBAL_IP_POOL_NAME else name
    return IPPool(
        metadata=ObjectMeta(name=name),
        spec=IPPoolSpec(
            ranges=list(ranges),
            selector=Selector(scope=[Tuple(project=ALL, namespace=namespace, guest_cluster=ALL)]),
        ),
        status=IPPoolStatus(allocated_history={}),
    )


def decode_kube_vip_services_json(text: str) -> list:
    """Decode the services document kube-vip keeps in its config map."""
    try:
        document = json.loads(text)
        if not isinstance(document, dict):
            raise ValueError("expected a JSON object")
        services = document.get("services") or []
        return [
            KubeVIPService(
                vip=str(entry.get("vip", "")),
                service_name=str(entry.get("serviceName", "")),
            )
            for entry in services
        ]
    except (ValueError, AttributeError, TypeError) as err:
        raise ValueError(f"failed to decode JSON: {err}") from err


class IPPoolConverter:
    """Turns the kube-vip config map into IP pools, keeping allocations as history."""

    def __init__(self, cm_client: _ConfigMapClient):
        self.cm_client = cm_client
        self.global_ip_pool: Optional[IPPool] = None
        self.global_range_set: Optional[RangeSet] = None

    def _kubevip_config_map(self) -> Optional[ConfigMap]:
        try:
            return self.cm_client.get(KUBE_SYSTEM_NAMESPACE, KUBEVIP_IP_POOL_CONFIG_MAP)
        except NotFoundError:
            return None

    def convert_from_kubevip_config_map(self) -> list:
        """Pools described by the kube-vip config map; empty if absent or already converted."""
        cm = self._kubevip_config_map()
        if cm is None or cm.annotations.get(KEY_AFTER_CONVERSION) == VALUE_TRUE:
            return []

        global_keys = {f"{FORMAT_CIDR}-{GLOBAL_IP_POOL_NAME}", f"{FORMAT_RANGE}-{GLOBAL_IP_POOL_NAME}"}
        # The global pool goes first so that it is known before allocations are assigned.
        configs = [(k, v) for k, v in cm.data.items() if k in global_keys]
        configs += [(k, v) for k, v in cm.data.items() if k not in global_keys]
        log.info("kubevip configs: %s", configs)

        pools = []
        for key, value in configs:
            try:
                pool = self._convert_kubevip_ip_pool(key, value)
            except InvalidFormatError:
                log.error("invalid config %s: %s", key, value)
                continue
            except ValueError as err:
                raise ValueError(f"convert kubevip IP pool {key}:{value} failed, {err}") from err
            log.info(
                "convert kubevip IP pool %s to IPPool %s whose IP ranges are %s",
                key, pool.metadata.name, pool.spec.ranges,
            )
            pools.append(pool)

        try:
            self._assign_all_allocated_ips(pools)
        except ValueError as err:
            raise ValueError(f"assign allocated IPs to pools failed, {err}") from err
        return pools

    def after_conversion(self) -> None:
        """Mark the kube-vip config map as converted."""
        cm = self._kubevip_config_map()
        if cm is None or cm.annotations.get(KEY_AFTER_CONVERSION) == VALUE_TRUE:
            return
        updated = copy.deepcopy(cm)
        updated.annotations[KEY_AFTER_CONVERSION] = VALUE_TRUE
        self.cm_client.update(updated)

    def _convert_kubevip_ip_pool(self, key: str, value: str) -> IPPool:
        fmt, name = get_format_and_name(key)
        pool = make_ip_pool(name, parse_kubevip_ip_pool(value, fmt))
        if name == GLOBAL_IP_POOL_NAME:
            self.global_ip_pool = pool
            self.global_range_set = lb_ranges_to_range_set(pool.spec.ranges)
        return pool

    def _assign_all_allocated_ips(self, pools) -> None:
        by_name = {pool.metadata.name: pool for pool in pools}
        for cm in self.cm_client.list():
            if cm.name != KUBEVIP_IP_POOL_CONFIG_MAP:
                continue
            try:
                self._assign_allocated_ips(cm, by_name.get(cm.namespace))
            except ValueError as err:
                raise ValueError(
                    f"assign allocated IPs from configmap {cm.namespace}/{cm.name} failed, error: {err}"
                ) from err

    def _assign_allocated_ips(self, cm: ConfigMap, pool: Optional[IPPool]) -> None:
        text = cm.data.get(KUBEVIP_DATA_KEY)
        if text is None:
            return
        services = decode_kube_vip_services_json(text)
        range_set = lb_ranges_to_range_set(pool.spec.ranges) if pool is not None else RangeSet()

        for service in services:
            if service.vip == ADDRESS_FOR_DHCP:
                continue
            ip = _parse_ip(service.vip)
            if ip is None:
                log.warning("invalid IP %s of kubevip service %s", service.vip, service)
                continue
            owner = f"{cm.namespace}/{service.service_name}"
            if pool is not None and len(range_set) > 0 and range_set.contains(ip):
                log.info("ip %s in the pool %s", ip, pool.metadata.name)
                pool.status.allocated_history[service.vip] = owner
            elif (
                self.global_ip_pool is not None
                and self.global_range_set is not None
                and self.global_range_set.contains(ip)
            ):
                log.info("ip %s in the global pool", ip)
                self.global_ip_pool.status.allocated_history[service.vip] = owner