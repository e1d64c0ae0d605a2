"""
report.py
~~~~~~~~~
把搜索终态整理成结构化报告（节点维度 + Pod 维度），交给外部展示层。
纯转换：不做 I/O，不决定格式。
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Dict, Iterable, List, Optional

from .admission import resource_occupancy
from .constants import (EXTENDED_LOCAL_STORAGE, RESOURCE_CPU, RESOURCE_MEMORY,
                        RESOURCE_STORAGE)
from .model import NodeStatus, ResourceOccupancy
from .planner import PlanResult
from .resource_types import (app_name, full_name, is_new_node, node_allocatable,
                             node_storage, pod_requests, pod_volumes)


@dataclass
class ResourceUsage:
    allocatable: int
    requested: int
    percent: Optional[int]

    @classmethod
    def of(cls, allocatable: int, requested: int) -> "ResourceUsage":
        return cls(allocatable, requested,
                   ResourceOccupancy(allocatable, requested).percent)


@dataclass
class PodReport:
    name: str
    node: str
    app: str
    requests: Dict[str, int]
    percent: Dict[str, Optional[int]]
    volumes: List[Dict] = field(default_factory=list)


@dataclass
class NodeReport:
    name: str
    new_node: bool
    pod_count: int
    pods: List[str]
    resources: Dict[str, ResourceUsage]
    storage: Optional[Dict] = None


@dataclass
class UnscheduledReport:
    pod: str
    app: str
    reason: str


@dataclass
class PlanReport:
    state: str
    node_count: Optional[int]
    reason: str
    nodes: List[NodeReport] = field(default_factory=list)
    pods: List[PodReport] = field(default_factory=list)
    unscheduled: List[UnscheduledReport] = field(default_factory=list)
    occupancy: Dict[str, ResourceUsage] = field(default_factory=dict)
    admission: Optional[Dict] = None
    blocker: Optional[Dict] = None
    attempts: List[Dict] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return asdict(self)


def _kinds(extended_resources: Iterable[str]) -> List[str]:
    extended = [r for r in extended_resources if r != EXTENDED_LOCAL_STORAGE]
    return [RESOURCE_CPU, RESOURCE_MEMORY] + extended


def _node_report(status: NodeStatus, kinds: List[str], with_storage: bool) -> NodeReport:
    node = status.node
    name = node.metadata.name
    alloc = node_allocatable(node)
    own = [p for p in status.pods if p.spec.node_name == name]
    used: Dict[str, int] = {}
    for pod in own:
        for k, v in pod_requests(pod).items():
            used[k] = used.get(k, 0) + v

    storage = None
    if with_storage:
        ns = node_storage(node)
        if ns is not None:
            storage = asdict(ns)
            storage["usage"] = asdict(ResourceUsage.of(ns.capacity, ns.requested))

    return NodeReport(
        name=name,
        new_node=is_new_node(node),
        pod_count=len(status.pods),
        pods=[full_name(p) for p in status.pods],
        resources={k: ResourceUsage.of(alloc.get(k, 0), used.get(k, 0)) for k in kinds},
        storage=storage)


def _pod_reports(status: NodeStatus, kinds: List[str], with_storage: bool) -> List[PodReport]:
    node = status.node
    name = node.metadata.name
    alloc = node_allocatable(node)
    out: List[PodReport] = []
    for pod in status.pods:
        if pod.spec.node_name != name:
            continue
        reqs = pod_requests(pod)
        requests = {k: reqs.get(k, 0) for k in kinds}
        percent = {k: ResourceOccupancy(alloc.get(k, 0), requests[k]).percent
                   for k in kinds}
        volumes = [asdict(v) for v in pod_volumes(pod)] if with_storage else []
        out.append(PodReport(name=full_name(pod), node=name, app=app_name(pod),
                             requests=requests, percent=percent, volumes=volumes))
    return out


def build_report(plan: PlanResult, extended_resources: Iterable[str] = ()) -> PlanReport:
    extended_resources = list(extended_resources)
    kinds = _kinds(extended_resources)
    with_storage = EXTENDED_LOCAL_STORAGE in extended_resources

    report = PlanReport(state=plan.state.value,
                        node_count=plan.node_count,
                        reason=plan.reason,
                        attempts=[asdict(a) for a in plan.attempts])
    if plan.verdict is not None:
        report.admission = asdict(plan.verdict)
    if plan.blocker is not None:
        report.blocker = {"pod": full_name(plan.blocker.pod),
                          "kind": plan.blocker.kind.value,
                          "reason": plan.blocker.reason,
                          "scheduler_reason": plan.blocker.scheduler_reason}

    result = plan.result
    if result is None:
        return report

    for status in result.node_statuses:
        report.nodes.append(_node_report(status, kinds, with_storage))
        report.pods.extend(_pod_reports(status, kinds, with_storage))
    report.unscheduled = [UnscheduledReport(full_name(u.pod), app_name(u.pod), u.reason)
                          for u in result.unscheduled_pods]

    occ = resource_occupancy(result.node_statuses, extended_resources)
    for kind, o in occ.items():
        if kind == RESOURCE_STORAGE and not with_storage:
            continue
        report.occupancy[kind] = ResourceUsage.of(o.allocatable, o.requested)
    return report
