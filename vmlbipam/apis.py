"""Resource types of the load balancer API group, version v1beta1."""

import copy
import enum
from dataclasses import dataclass, field
from typing import ClassVar, Optional

GROUP_NAME = "loadbalancer.harvesterhci.io"
VERSION = "v1beta1"
SCHEME_GROUP_VERSION = f"{GROUP_NAME}/{VERSION}"

CONDITION_TRUE = "True"
CONDITION_FALSE = "False"


class NotFoundError(LookupError):
    """The requested object does not exist."""


class AlreadyExistsError(Exception):
    """An object with the same name already exists."""


@dataclass
class Condition:
    """One entry of an object's status conditions."""

    type: str = ""
    status: str = ""
    last_update_time: str = ""
    last_transition_time: str = ""
    reason: str = ""
    message: str = ""


class Cond(str):
    """A named condition that can be set on any object with status conditions."""

    def _find(self, obj):
        for condition in obj.status.conditions:
            if condition.type == self:
                return condition
        return None

    def _find_or_create(self, obj):
        condition = self._find(obj)
        if condition is None:
            factory = getattr(obj.status, "_condition_type", Condition)
            condition = factory(type=str(self))
            obj.status.conditions.append(condition)
        return condition

    def set_true(self, obj) -> None:
        self._find_or_create(obj).status = CONDITION_TRUE

    def set_false(self, obj) -> None:
        self._find_or_create(obj).status = CONDITION_FALSE

    def set_message(self, obj, message: str) -> None:
        self._find_or_create(obj).message = message

    def is_true(self, obj) -> bool:
        condition = self._find(obj)
        return condition is not None and condition.status == CONDITION_TRUE


@dataclass
class ObjectMeta:
    """Identity and bookkeeping data of a stored object."""

    name: str = ""
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    deletion_timestamp: Optional[str] = None


@dataclass
class Range:
    """An address range inside a subnet; empty fields take their defaults."""

    range_start: str = ""
    range_end: str = ""
    subnet: str = ""
    gateway: str = ""


@dataclass
class Tuple:
    """A project, namespace and guest cluster triple that a pool serves."""

    project: str = ""
    namespace: str = ""
    guest_cluster: str = ""


@dataclass
class Selector:
    """Decides which load balancers a pool serves."""

    priority: int = 0
    network: str = ""
    scope: list[Tuple] = field(default_factory=list)


@dataclass
class IPPoolSpec:
    description: str = ""
    ranges: list[Range] = field(default_factory=list)
    selector: Selector = field(default_factory=Selector)


@dataclass
class IPPoolStatus:
    _condition_type: ClassVar[type] = Condition

    total: int = 0
    available: int = 0
    last_allocated: str = ""
    allocated: dict[str, str] = field(default_factory=dict)
    allocated_history: dict[str, str] = field(default_factory=dict)
    conditions: list[Condition] = field(default_factory=list)


@dataclass
class IPPool:
    """A cluster-wide pool of addresses handed out to load balancers."""

    api_version: str = SCHEME_GROUP_VERSION
    kind: str = "IPPool"
    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: IPPoolSpec = field(default_factory=IPPoolSpec)
    status: IPPoolStatus = field(default_factory=IPPoolStatus)

    def deep_copy(self) -> "IPPool":
        return copy.deepcopy(self)


IPPOOL_READY = Cond("Ready")


@dataclass
class AllocatedAddress:
    ip_pool: str = ""
    ip: str = ""
    mask: str = ""
    gateway: str = ""


@dataclass
class Listener:
    name: str = ""
    port: int = 0
    protocol: str = ""
    backend_port: int = 0


@dataclass
class HealthCheck:
    port: int = 0
    success_threshold: int = 0
    failure_threshold: int = 0
    period_seconds: int = 0
    timeout_seconds: int = 0


class WorkloadType(str, enum.Enum):
    VM = "vm"
    CLUSTER = "cluster"


class IPAM(str, enum.Enum):
    POOL = "pool"
    DHCP = "dhcp"


@dataclass
class LoadBalancerSpec:
    description: str = ""
    workload_type: Optional[WorkloadType] = None
    ipam: Optional[IPAM] = None
    ip_pool: str = ""
    listeners: list[Listener] = field(default_factory=list)
    backend_server_selector: dict[str, list[str]] = field(default_factory=dict)
    health_check: Optional[HealthCheck] = None


@dataclass
class LoadBalancerStatus:
    _condition_type: ClassVar[type] = Condition

    backend_servers: list[str] = field(default_factory=list)
    allocated_address: AllocatedAddress = field(default_factory=AllocatedAddress)
    address: str = ""
    conditions: list[Condition] = field(default_factory=list)


@dataclass
class LoadBalancer:
    """A namespaced load balancer in front of VMs or a guest cluster."""

    api_version: str = SCHEME_GROUP_VERSION
    kind: str = "LoadBalancer"
    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: LoadBalancerSpec = field(default_factory=LoadBalancerSpec)
    status: LoadBalancerStatus = field(default_factory=LoadBalancerStatus)

    def deep_copy(self) -> "LoadBalancer":
        return copy.deepcopy(self)


LOAD_BALANCER_READY = Cond("Ready")