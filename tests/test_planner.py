import threading

import pytest

from factories import make_daemonset, make_node, make_pod
from nodeplan.errors import ConfigurationError, InvalidTemplateError, OracleError
from nodeplan.schedule.classifier import PodClass
from nodeplan.schedule.model import (AppResource, NodeStatus, SimulateResult,
                                     Thresholds, UnscheduledPod)
from nodeplan.schedule.oracle_interface import BaseOracle
from nodeplan.schedule.planner import NodePlanner, SearchState
from nodeplan.schedule.report import build_report
from nodeplan.schedule.resource_model import ClusterSnapshot


class StubOracle(BaseOracle):
    """可控桩：need 个新节点之前，每个 Pod 都放不下"""

    def __init__(self, need=None, error=None, on_call=None):
        self.need = need
        self.error = error
        self.on_call = on_call
        self.calls = []

    def simulate(self, snapshot, apps):
        new = sum(1 for n in snapshot.nodes if n.metadata.name.startswith("simulated-node"))
        self.calls.append(new)
        if self.on_call:
            self.on_call(new)
        if self.error:
            raise self.error
        statuses = [NodeStatus(n, []) for n in snapshot.nodes]
        if self.need is not None and new >= self.need:
            return SimulateResult(statuses, [])
        pods = [p for a in apps for p in a.pods]
        return SimulateResult(statuses, [UnscheduledPod(p, "Insufficient cpu") for p in pods])


def _app(n=1, **kwargs):
    return AppResource("web", pods=[make_pod(f"p{i}", **kwargs) for i in range(n)])


def test_zero_pods_succeeds_at_zero(template):
    plan = NodePlanner(thresholds=Thresholds()).plan(ClusterSnapshot(nodes=[make_node("n1")]), template, [])
    assert plan.state is SearchState.SUCCESS
    assert plan.node_count == 0
    assert plan.ok


def test_every_count_is_tried_in_order(template):
    oracle = StubOracle(need=3)
    plan = NodePlanner(oracle=oracle, thresholds=Thresholds()).plan(ClusterSnapshot(), template, [_app()])
    assert plan.state is SearchState.SUCCESS
    assert plan.node_count == 3
    assert oracle.calls == [0, 1, 2, 3]
    assert [a.node_count for a in plan.attempts] == [0, 1, 2, 3]


def test_unfixable_stops_at_zero():
    template = make_node("t", taints=[("dedicated", "gpu", "NoSchedule")])
    oracle = StubOracle()
    plan = NodePlanner(oracle=oracle, thresholds=Thresholds()).plan(ClusterSnapshot(), template, [_app()])
    assert plan.state is SearchState.STRUCTURALLY_FAILED
    assert plan.blocker.kind is PodClass.UNFIXABLE
    assert oracle.calls == [0]


def test_overhead_blocked_stops_at_zero(template):
    snap = ClusterSnapshot(daemonsets=[make_daemonset("fat", cpu="2")])
    oracle = StubOracle()
    plan = NodePlanner(oracle=oracle, thresholds=Thresholds()).plan(snap, template, [_app()])
    assert plan.state is SearchState.STRUCTURALLY_FAILED
    assert plan.blocker.kind is PodClass.OVERHEAD_BLOCKED
    assert oracle.calls == [0]


def test_exhausted_after_exactly_max_attempts(template):
    oracle = StubOracle()
    plan = NodePlanner(oracle=oracle, thresholds=Thresholds(), max_new_nodes=5).plan(
        ClusterSnapshot(), template, [_app()])
    assert plan.state is SearchState.EXHAUSTED
    assert oracle.calls == [0, 1, 2, 3, 4]
    assert plan.reason == "we have tried adding up to 4 node(s) but it still failed"


def test_admission_rejection_adds_nodes(template):
    snap = ClusterSnapshot(nodes=[make_node("n1", cpu="1", memory="4Gi")])
    # 0 个新节点：900m/1000m = 90% > 80%；1 个：900m/3000m = 30%
    app = _app(cpu="900m", memory="1Mi")
    plan = NodePlanner(thresholds=Thresholds(cpu=80)).plan(snap, template, [app])
    assert plan.state is SearchState.SUCCESS
    assert plan.node_count == 1
    assert plan.attempts[0].admission.occupancy == 90


def test_cancel_between_iterations(template):
    cancel = threading.Event()
    oracle = StubOracle(on_call=lambda n: n == 1 and cancel.set())
    plan = NodePlanner(oracle=oracle, thresholds=Thresholds(), cancel_event=cancel).plan(
        ClusterSnapshot(), template, [_app()])
    assert plan.state is SearchState.CANCELLED
    assert oracle.calls == [0, 1]


def test_oracle_error_propagates(template):
    planner = NodePlanner(oracle=StubOracle(error=OracleError("boom")), thresholds=Thresholds())
    with pytest.raises(OracleError):
        planner.plan(ClusterSnapshot(), template, [_app()])


def test_missing_template(template):
    with pytest.raises(InvalidTemplateError):
        NodePlanner(thresholds=Thresholds()).plan(ClusterSnapshot(), None, [])


@pytest.mark.parametrize("value", [0, -3, "5"])
def test_bad_max_new_nodes(value):
    with pytest.raises(ConfigurationError):
        NodePlanner(max_new_nodes=value)


def test_single_pod_fits_existing_node(template):
    snap = ClusterSnapshot(nodes=[make_node("n1", cpu="2000m", memory="4Gi")])
    plan = NodePlanner(thresholds=Thresholds()).plan(snap, template, [_app(cpu="500m", memory="1Gi")])
    assert plan.state is SearchState.SUCCESS
    assert plan.node_count == 0

    report = build_report(plan)
    assert report.occupancy["cpu"].percent == 25
    assert report.occupancy["memory"].percent == 25


def test_capacity_limited_pods_get_new_nodes(template):
    snap = ClusterSnapshot(nodes=[make_node("n1", cpu="2", memory="4Gi")])
    plan = NodePlanner(thresholds=Thresholds()).plan(snap, template, [_app(3, cpu="1500m", memory="1Gi")])
    assert plan.state is SearchState.SUCCESS
    assert plan.node_count == 2


def test_out_of_range_ceiling_means_no_limit(template):
    snap = ClusterSnapshot(nodes=[make_node("n1", cpu="2000m", memory="4Gi")])
    planner = NodePlanner(thresholds=Thresholds(cpu=-5), max_new_nodes=5)
    plan = planner.plan(snap, template, [_app(cpu="500m", memory="1Gi")])
    assert plan.state is SearchState.SUCCESS
    assert plan.node_count == 0
    assert plan.verdict.ok


def test_missing_extended_resource_stops_at_zero(template):
    snap = ClusterSnapshot(nodes=[make_node("n1")])
    app = AppResource("ml", pods=[make_pod("trainer", cpu="1", extra={"nvidia.com/gpu": "1"})])
    plan = NodePlanner(thresholds=Thresholds(), max_new_nodes=10).plan(snap, template, [app])
    assert plan.state is SearchState.STRUCTURALLY_FAILED
    assert plan.blocker.kind is PodClass.OVERHEAD_BLOCKED
    assert [a.node_count for a in plan.attempts] == [0]


def test_daemonsets_overflowing_candidate_node_stop_search():
    template = make_node("t", cpu="2", pods="1")
    snap = ClusterSnapshot(nodes=[make_node("n1", cpu="1")],
                           daemonsets=[make_daemonset("a"), make_daemonset("b")])
    plan = NodePlanner(thresholds=Thresholds(), max_new_nodes=10).plan(
        snap, template, [_app(cpu="900m", memory="1Gi")])
    assert plan.state is SearchState.STRUCTURALLY_FAILED
    assert plan.blocker.kind is PodClass.OVERHEAD_BLOCKED
    assert plan.blocker.pod.spec.node_name == "simulated-node-00"
    assert [a.node_count for a in plan.attempts] == [0, 1]
