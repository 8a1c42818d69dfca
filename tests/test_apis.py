from vmlbipam.apis import (
    IPAM,
    IPPOOL_READY,
    LOAD_BALANCER_READY,
    SCHEME_GROUP_VERSION,
    IPPool,
    LoadBalancer,
    ObjectMeta,
    Range,
    WorkloadType,
)


def test_set_true_creates_single_ready_condition():
    pool = IPPool(metadata=ObjectMeta(name="pool1"))
    IPPOOL_READY.set_true(pool)
    IPPOOL_READY.set_true(pool)
    assert [(c.type, c.status) for c in pool.status.conditions] == [("Ready", "True")]
    assert IPPOOL_READY.is_true(pool)


def test_set_false_and_message_update_existing_condition():
    lb = LoadBalancer()
    LOAD_BALANCER_READY.set_true(lb)
    LOAD_BALANCER_READY.set_false(lb)
    LOAD_BALANCER_READY.set_message(lb, "no available IP")
    assert len(lb.status.conditions) == 1
    assert lb.status.conditions[0].status == "False"
    assert lb.status.conditions[0].message == "no available IP"
    assert not LOAD_BALANCER_READY.is_true(lb)


def test_is_true_does_not_create_condition():
    pool = IPPool()
    assert not IPPOOL_READY.is_true(pool)
    assert pool.status.conditions == []


def test_ippool_deep_copy_is_independent():
    pool = IPPool(metadata=ObjectMeta(name="default"))
    pool.spec.ranges.append(Range(subnet="192.168.0.0/24"))
    duplicate = pool.deep_copy()
    assert duplicate == pool
    duplicate.status.allocated["192.168.0.2"] = "default/lb1"
    duplicate.spec.ranges[0].range_start = "192.168.0.10"
    assert "192.168.0.2" not in pool.status.allocated
    assert pool.spec.ranges[0].range_start == ""


def test_load_balancer_deep_copy_is_independent():
    lb = LoadBalancer(metadata=ObjectMeta(name="lb1", namespace="default"))
    lb.spec.backend_server_selector["app"] = ["web"]
    duplicate = lb.deep_copy()
    assert duplicate == lb
    duplicate.spec.backend_server_selector["app"].append("db")
    duplicate.metadata.annotations["key"] = "value"
    assert lb.spec.backend_server_selector["app"] == ["web"]
    assert lb.metadata.annotations == {}


def test_enums_parse_wire_values():
    assert WorkloadType("vm") is WorkloadType.VM
    assert WorkloadType("cluster") is WorkloadType.CLUSTER
    assert IPAM("pool") is IPAM.POOL
    assert IPAM("dhcp") is IPAM.DHCP


def test_default_api_version_and_spec():
    lb = LoadBalancer()
    assert lb.api_version == SCHEME_GROUP_VERSION
    assert SCHEME_GROUP_VERSION == "loadbalancer.harvesterhci.io/v1beta1"
    assert lb.spec.workload_type is None
    assert lb.spec.health_check is None


def test_default_collections_are_not_shared():
    first, second = IPPool(), IPPool()
    first.metadata.labels["a"] = "b"
    first.status.allocated_history["10.0.0.1"] = "ns/lb"
    assert second.metadata.labels == {}
    assert second.status.allocated_history == {}