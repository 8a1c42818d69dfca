"""Resource types of the load balancer API group, deprecated version v1alpha1."""

import enum
from dataclasses import dataclass, field
from typing import ClassVar, Optional

from .apis import GROUP_NAME, Cond, ObjectMeta

VERSION = "v1alpha1"
SCHEME_GROUP_VERSION = f"{GROUP_NAME}/{VERSION}"


class IPAM(str, enum.Enum):
    POOL = "pool"
    DHCP = "dhcp"


@dataclass
class Listener:
    name: str = ""
    port: int = 0
    protocol: str = ""
    backend_port: int = 0


@dataclass
class HeathCheck:
    port: int = 0
    success_threshold: int = 0
    failure_threshold: int = 0
    period_seconds: int = 0
    timeout_seconds: int = 0


@dataclass
class Condition:
    type: str = ""
    status: str = ""
    last_update_time: str = ""
    last_transition_time: str = ""
    reason: str = ""
    message: str = ""


@dataclass
class LoadBalancerSpec:
    description: str = ""
    ipam: Optional[IPAM] = None
    listeners: list[Listener] = field(default_factory=list)
    backend_servers: list[str] = field(default_factory=list)
    heath_check: Optional[HeathCheck] = None


@dataclass
class LoadBalancerStatus:
    _condition_type: ClassVar[type] = Condition

    address: str = ""
    conditions: list[Condition] = field(default_factory=list)


@dataclass
class LoadBalancer:
    """A load balancer whose backend servers are listed explicitly."""

    api_version: str = SCHEME_GROUP_VERSION
    kind: str = "LoadBalancer"
    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: LoadBalancerSpec = field(default_factory=LoadBalancerSpec)
    status: LoadBalancerStatus = field(default_factory=LoadBalancerStatus)


LOAD_BALANCER_READY = Cond("Ready")