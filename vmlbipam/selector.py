"""Choosing the IP pool that serves a load balancer."""

from dataclasses import dataclass
from typing import Optional

from .apis import GROUP_NAME, IPPool, Selector, Tuple

ALL = "*"
GLOBAL_IP_POOL_LABEL = f"{GROUP_NAME}/global-ip-pool"
VALUE_TRUE = "true"


@dataclass
class Requirement:
    """What a load balancer asks of a pool."""

    network: str = ""
    project: str = ""
    namespace: str = ""
    cluster: str = ""


def is_match(scope: Tuple, requirement: Requirement) -> bool:
    """Whether a scope entry covers a requirement; "*" on either side matches anything."""
    return (
        ALL in (scope.project, requirement.project)
        or scope.project == requirement.project
    ) and (
        ALL in (scope.namespace, requirement.namespace)
        or scope.namespace == requirement.namespace
    ) and (
        ALL in (scope.guest_cluster, requirement.cluster)
        or scope.guest_cluster == requirement.cluster
    )


@dataclass
class Matcher:
    """Matches requirements against a pool selector."""

    selector: Selector

    def matches(self, requirement: Requirement) -> bool:
        if self.selector.network != requirement.network:
            return False
        return any(is_match(scope, requirement) for scope in self.selector.scope)


class PoolSelector:
    """Selects pools from a cache that lists every pool."""

    def __init__(self, cache):
        self.cache = cache

    def select(self, requirement: Requirement) -> Optional[IPPool]:
        """The matching pool of highest priority, else the global pool, else None."""
        selected = None
        global_pool = None
        priority = 0
        for pool in self.cache.list():
            if pool.metadata.labels.get(GLOBAL_IP_POOL_LABEL) == VALUE_TRUE:
                global_pool = pool
                continue
            selector = pool.spec.selector
            if Matcher(selector).matches(requirement) and selector.priority >= priority:
                selected = pool
                priority = selector.priority
        return selected if selected is not None else global_pool