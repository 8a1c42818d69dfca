"""Reconciliation of IP pools into their address allocators."""

import ipaddress
import logging
from typing import Optional

from .allocator import SafeAllocatorMap, calculate_check_sum, new_allocator
from .apis import IPPOOL_READY, AlreadyExistsError, IPPool
from .netrange import lb_ranges_to_range_set

log = logging.getLogger(__name__)

CONTROLLER_NAME = "harvester-ipam-controller"


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


def correct_allocated_history(pool: IPPool) -> dict:
    """The pool's allocation history restricted to addresses still in its ranges."""
    range_set = lb_ranges_to_range_set(pool.spec.ranges)
    history = {}
    for ip_text, owner in pool.status.allocated_history.items():
        ip = _parse_ip(ip_text)
        if ip is None:
            raise ValueError(f"invalid ip {ip_text}")
        if range_set.contains(ip):
            history[ip_text] = owner
    return history


class IPPoolHandler:
    """Keeps one allocator per IP pool and the pool's status in step with its ranges."""

    def __init__(self, ip_pool_cache, ip_pool_client, allocator_map: SafeAllocatorMap, kubevip_converter):
        self.ip_pool_cache = ip_pool_cache
        self.ip_pool_client = ip_pool_client
        self.allocator_map = allocator_map
        self.kubevip_converter = kubevip_converter

    def on_change(self, key: str, pool: Optional[IPPool]) -> Optional[IPPool]:
        """Rebuild the allocator when a pool is new or its ranges changed."""
        if pool is None or pool.metadata.deletion_timestamp is not None:
            return None
        name = pool.metadata.name
        log.debug("IP Pool %s has been changed", name)

        previous = self.allocator_map.get(name)
        if previous is None or previous.check_sum != calculate_check_sum(pool.spec.ranges):
            allocator = new_allocator(name, pool.spec.ranges, self.ip_pool_cache, self.ip_pool_client)
            self.allocator_map.add_or_update(name, allocator)
            self.update_status(pool, allocator.total)
        return pool

    def on_remove(self, key: str, pool: Optional[IPPool]) -> Optional[IPPool]:
        """Drop the allocator of a deleted pool."""
        if pool is None:
            return None
        log.info("IP Pool %s is deleted", pool.metadata.name)
        self.allocator_map.delete(pool.metadata.name)
        return pool

    def initialize_from_kubevip_config_map(self) -> None:
        """Create the pools described by the legacy kube-vip configuration."""
        log.info("Initialize IP pool from kube-vip configmap")
        try:
            pools = self.kubevip_converter.convert_from_kubevip_config_map()
        except ValueError as err:
            raise ValueError(f"convert IP pool from kube-vip configmap failed, {err}") from err

        for pool in pools:
            try:
                self.ip_pool_client.create(pool)
            except AlreadyExistsError:
                continue
            except Exception as err:
                raise RuntimeError(f"create IP pool {pool.metadata.name} failed, {err}") from err

        self.kubevip_converter.after_conversion()

    def update_status(self, pool: IPPool, total: int) -> None:
        """Write totals, history and readiness to the pool if they changed."""
        updated = pool.deep_copy()
        updated.status.available = total - len(pool.status.allocated)
        updated.status.total = total
        try:
            updated.status.allocated_history = correct_allocated_history(pool)
        except ValueError as err:
            raise ValueError(
                f"correct allocated history for {pool.metadata.name} failed, {err}"
            ) from err

        IPPOOL_READY.set_true(updated)
        IPPOOL_READY.set_message(updated, "")

        if updated.status == pool.status:
            return
        try:
            self.ip_pool_client.update(updated)
        except Exception as err:
            raise RuntimeError(
                f"update IP pool {pool.metadata.name} status failed, {err}"
            ) from err