import pytest

from vmlbipam.apis import IPPool, IPPoolSpec, ObjectMeta, Selector, Tuple
from vmlbipam.selector import (
    ALL,
    GLOBAL_IP_POOL_LABEL,
    Matcher,
    PoolSelector,
    Requirement,
    VALUE_TRUE,
    is_match,
)


class _Cache:
    def __init__(self, pools):
        self.pools = pools

    def list(self):
        return list(self.pools)


def _pool(name, scope=None, network="", priority=0, is_global=False):
    labels = {GLOBAL_IP_POOL_LABEL: VALUE_TRUE} if is_global else {}
    return IPPool(
        metadata=ObjectMeta(name=name, labels=labels),
        spec=IPPoolSpec(
            selector=Selector(priority=priority, network=network, scope=scope or [])
        ),
    )


def _ns_scope(namespace):
    return [Tuple(project=ALL, namespace=namespace, guest_cluster=ALL)]


_GLOBAL = _pool("global", scope=_ns_scope(ALL), is_global=True)
_DEFAULT = _pool("default", scope=_ns_scope("default"))

CASES = [
    ([_DEFAULT, _GLOBAL], Requirement(namespace="default"), "default"),
    ([_DEFAULT, _GLOBAL], Requirement(namespace="test"), "global"),
    (
        [
            _DEFAULT,
            _pool(
                "default-vlan10",
                scope=[Tuple(project="project1", namespace="default", guest_cluster="cluster1")],
                network="default/vlan10",
            ),
            _GLOBAL,
        ],
        Requirement(
            network="default/vlan10",
            project="project1",
            namespace="default",
            cluster="cluster1",
        ),
        "default-vlan10",
    ),
    (
        [
            _pool("default-priority100", scope=_ns_scope("default"), priority=100),
            _DEFAULT,
            _GLOBAL,
        ],
        Requirement(namespace="default"),
        "default-priority100",
    ),
]


@pytest.mark.parametrize("pools, requirement, expected", CASES)
def test_select(pools, requirement, expected):
    pool = PoolSelector(_Cache(pools)).select(requirement)
    assert pool.metadata.name == expected


def test_select_nothing_without_global():
    assert PoolSelector(_Cache([_DEFAULT])).select(Requirement(namespace="test")) is None


def test_select_empty_cache():
    assert PoolSelector(_Cache([])).select(Requirement(namespace="default")) is None


def test_is_match_wildcards():
    scope = Tuple(project=ALL, namespace="default", guest_cluster=ALL)
    assert is_match(scope, Requirement(project="p", namespace="default", cluster="c"))
    assert not is_match(scope, Requirement(namespace="other"))
    assert is_match(
        Tuple(project="p", namespace="n", guest_cluster="c"),
        Requirement(project=ALL, namespace=ALL, cluster=ALL),
    )


def test_matcher_network_mismatch():
    matcher = Matcher(Selector(network="default/vlan10", scope=_ns_scope(ALL)))
    assert not matcher.matches(Requirement(namespace="default"))
    assert matcher.matches(Requirement(network="default/vlan10", namespace="default"))


def test_matcher_without_scope():
    assert not Matcher(Selector()).matches(Requirement())