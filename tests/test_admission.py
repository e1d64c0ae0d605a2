import json

import pytest

from factories import make_node, make_pod
from nodeplan.errors import ConfigurationError
from nodeplan.schedule.admission import check, load_thresholds, resource_occupancy
from nodeplan.schedule.constants import ANNO_NODE_LOCAL_STORAGE
from nodeplan.schedule.model import NodeStatus, Thresholds, clamp_percent


def _statuses(cpu_alloc="1", cpu_used="900m", memory="1Gi"):
    node = make_node("n1", cpu=cpu_alloc, memory=memory)
    pod = make_pod("p", cpu=cpu_used, memory="0", node_name="n1")
    return [NodeStatus(node, [pod])]


def test_cpu_ceiling_rejects_with_floor_percent():
    verdict = check(_statuses(), Thresholds(cpu=80))
    assert not verdict.ok
    assert verdict.resource == "cpu"
    assert verdict.occupancy == 90
    assert verdict.reason == "the average occupancy rate(90%) of cpu goes beyond the env setting(80%)"


def test_cpu_ceiling_accepts():
    assert check(_statuses(), Thresholds(cpu=95)).ok


def test_first_failing_kind_wins():
    node = make_node("n1", cpu="1", memory="1Gi")
    pod = make_pod("p", cpu="900m", memory="1000Mi", node_name="n1")
    verdict = check([NodeStatus(node, [pod])], Thresholds(cpu=50, memory=50))
    assert verdict.resource == "cpu"


def test_occupancy_spans_all_nodes():
    a = make_node("a", cpu="1")
    b = make_node("b", cpu="1")
    occ = resource_occupancy([NodeStatus(a, [make_pod("p", cpu="1", node_name="a")]), NodeStatus(b, [])])
    assert occ["cpu"].allocatable == 2000
    assert occ["cpu"].percent == 50


def test_missing_storage_is_skipped():
    occ = resource_occupancy(_statuses())
    assert occ["storage"].percent is None
    assert check(_statuses(), Thresholds(storage=0)).ok


def test_storage_uses_vg_label():
    storage = json.dumps({"vgs": [{"name": "pool", "capacity": "10Gi", "requested": "9Gi"}]})
    node = make_node("n1", annotations={ANNO_NODE_LOCAL_STORAGE: storage})
    verdict = check([NodeStatus(node, [])], Thresholds(storage=50))
    assert verdict.resource == "storage"
    assert "of vg goes beyond" in verdict.reason


def test_extended_resources_are_reported():
    node = make_node("n1", extra={"nvidia.com/gpu": "4"})
    occ = resource_occupancy([NodeStatus(node, [])], ["nvidia.com/gpu", "open-local"])
    assert occ["nvidia.com/gpu"].allocatable == 4
    assert "open-local" not in occ


@pytest.mark.parametrize("value,expected", [(-1, 100), (0, 0), (55, 55), (100, 100), (101, 100)])
def test_clamp_percent(value, expected):
    assert clamp_percent(value) == expected


def test_load_thresholds_from_env():
    t = load_thresholds({"MaxCPU": "70", "MaxMemory": "150", "MaxVG": ""})
    assert (t.cpu, t.memory, t.storage) == (70, 100, 100)


def test_load_thresholds_reads_os_environ(monkeypatch):
    monkeypatch.setenv("MaxMemory", "60")
    assert load_thresholds().memory == 60


def test_non_integer_env_is_configuration_error():
    with pytest.raises(ConfigurationError):
        load_thresholds({"MaxCPU": "eighty"})


def test_thresholds_are_clamped_on_construction():
    t = Thresholds(cpu=-5, memory=250, storage=40)
    assert t.as_dict() == {"cpu": 100, "memory": 100, "storage": 40}


@pytest.mark.parametrize("value", ["80", 80.0, None, True])
def test_thresholds_reject_non_integers(value):
    with pytest.raises(ConfigurationError):
        Thresholds(cpu=value)
