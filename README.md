# vmlbipam

IP address management for virtual-machine load balancers. The package
models IP pools and load balancers, resolves pool ranges into concrete
address spans, allocates addresses from them, picks the right pool for a
load balancer, and turns legacy kube-vip configuration into IP pools.

It needs only the Python standard library, Python 3.10 or later.

## Installation

```
pip install .
```

To run the tests as well:

```
pip install ".[test]"
pytest
```

## Modules

- `vmlbipam.apis`: the resource types as dataclasses (`IPPool`,
  `IPPoolSpec`, `IPPoolStatus`, `Range`, `Selector`, `Tuple`,
  `LoadBalancer`, `LoadBalancerSpec`, `LoadBalancerStatus`,
  `AllocatedAddress`, `Listener`, `HealthCheck`, `ObjectMeta`,
  `Condition`), the enums `WorkloadType` and `IPAM`, and the errors
  `NotFoundError` and `AlreadyExistsError`. `Cond` names a status
  condition; `IPPOOL_READY` and `LOAD_BALANCER_READY` are the `Ready`
  conditions, with `set_true`, `set_false`, `set_message` and `is_true`.
  `IPPool.deep_copy()` and `LoadBalancer.deep_copy()` return independent
  copies.
- `vmlbipam.apis_v1alpha1`: the older load-balancer layout, where backend
  servers are listed by address.
- `vmlbipam.netrange`: `make_range` turns a `Range` into an `IPRange`,
  filling in defaults (start and gateway at the first host, end at the last
  usable address; a `/32` subnet is a single address with no gateway) and
  rejecting addresses that are malformed, outside the subnet, the network
  address or the broadcast address. A reversed start and end are swapped.
  `IPRange.count()` leaves out a gateway inside the span.
  `lb_ranges_to_range_set` builds a `RangeSet` with `contains` and
  `range_for`. `network_ip`, `broadcast_ip` and `last_ip` work on
  networks.
- `vmlbipam.store`: `PoolStore` records bookings (`reserve`, `release`,
  `release_by_id`, `get_by_id`, `last_reserved_ip`) in the status of a
  stored pool, moving released addresses into its allocation history.
  `FakeStore` does the same on a pool object it holds itself.
- `vmlbipam.allocator`: `IPAllocator` hands out addresses round robin,
  starting after the last one booked and skipping gateways, and refuses
  to give one applicant a second address. `Allocator` first offers an
  applicant the address it held before, as found in the pool's allocation
  history. `new_allocator` builds one for a pool; `calculate_check_sum`
  identifies a list of ranges; `SafeAllocatorMap` maps pool names to
  allocators under a lock.
- `vmlbipam.selector`: `PoolSelector.select` returns the pool whose
  selector matches a `Requirement` (network, project, namespace, cluster)
  with the highest priority, else the pool labelled as global, else
  `None`. `"*"` on either side of a scope entry matches anything.
- `vmlbipam.kubevip`: `IPPoolConverter` reads the `kubevip` config map in
  `kube-system` (`cidr-<name>` and `range-<name>` entries, comma-separated
  values), builds one pool per entry, and records addresses already handed
  out in `kubevip-services` as allocation history, falling back to the
  global pool. `after_conversion` marks the config map as converted so the
  next run returns no pools.
- `vmlbipam.ippool_controller`: `IPPoolHandler` reacts to pools being
  changed (`on_change` rebuilds the allocator when the ranges change and
  updates total, available, history and the `Ready` condition) or removed
  (`on_remove`), and `initialize_from_kubevip_config_map` creates the
  converted pools. `correct_allocated_history` drops history entries that
  are no longer inside the pool's ranges.

## Examples

Resolving ranges:

```python
from vmlbipam.apis import Range
from vmlbipam.netrange import make_range, lb_ranges_to_range_set

r = make_range(Range(subnet="192.168.100.0/24"))
print(r.range_start, r.range_end, r.gateway)   # 192.168.100.1 192.168.100.254 192.168.100.1
print(r.count())                               # 253

rs = lb_ranges_to_range_set([
    Range(subnet="192.168.0.0/24", range_start="192.168.0.10", range_end="192.168.0.20"),
])
print(rs)                                      # 192.168.0.10-192.168.0.20
```

Allocating from an in-memory store:

```python
from vmlbipam.allocator import IPAllocator
from vmlbipam.store import FakeStore

ranges = [Range(subnet="192.168.100.0/24", range_start="192.168.100.10",
                range_end="192.168.100.20")]
allocator = IPAllocator(lb_ranges_to_range_set(ranges), FakeStore("pool", ranges))
first = allocator.get("default/lb1")
print(first.ip, first.mask)                    # 192.168.100.10 255.255.255.0
print(allocator.get("default/lb2").ip)         # 192.168.100.11
```

Bad input raises `ValueError`, with a message that says what was wrong:

```python
make_range(Range(subnet="192.168.300.0/24"))   # ValueError
```

## Storage and clients

The package keeps no storage of its own and talks to no cluster. The
classes that read or write stored objects take caller-supplied objects:

- a pool cache with `get(name)` (used by `PoolStore` and `Allocator`) and
  `list()` (used by `PoolSelector`);
- a pool client with `update(pool)`, and `create(pool)` for
  `IPPoolHandler.initialize_from_kubevip_config_map`, which ignores
  `AlreadyExistsError`;
- a config-map client with `get(namespace, name)` raising
  `NotFoundError` when absent, `update(config_map)` and `list()`, for
  `IPPoolConverter`.

## What it does not do

There is no command to run and no long-running service: nothing watches
for pool or load-balancer changes and calls the handlers. Load balancers
are modelled as data only; the package does not reconcile them, create
their services or health-check their backends.