"""
classifier.py
~~~~~~~~~~~~~
对每个放不下的 Pod 判断：再加同规格节点有没有用？

  UNFIXABLE         模板节点的标签 / 污点永远不接受这个 Pod（先判）
  OVERHEAD_BLOCKED  约束没问题，但一个模板节点上所有 DaemonSet 的 requests
                    加上 Pod 自己的 requests 已经超过节点 allocatable
  CAPACITY_LIMITED  只是当前节点数不够，继续加节点

判定只看 Pod 自己 + 模板节点，与顺序无关。
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict, List

from kubernetes.client import V1DaemonSet, V1Node, V1Pod

from .model import UnscheduledPod
from .predicates import node_should_run_pod
from .resource_types import full_name, is_new_node, node_allocatable, pod_requests
from .workload import daemon_pod_template


class PodClass(str, enum.Enum):
    UNFIXABLE = "Unfixable"
    OVERHEAD_BLOCKED = "OverheadBlocked"
    CAPACITY_LIMITED = "CapacityLimited"


@dataclass
class Classification:
    pod: V1Pod
    kind: PodClass
    reason: str
    scheduler_reason: str = ""

    @property
    def structural(self) -> bool:
        return self.kind is not PodClass.CAPACITY_LIMITED


def daemonset_overhead(node: V1Node, daemonsets: List[V1DaemonSet]) -> Dict[str, int]:
    """一个节点上会跑的全部 DaemonSet Pod 的 requests 之和"""
    total: Dict[str, int] = {}
    for ds in daemonsets:
        tpl = daemon_pod_template(ds)
        if not node_should_run_pod(node, tpl):
            continue
        for name, qty in pod_requests(tpl).items():
            total[name] = total.get(name, 0) + qty
    return total


def meet_resource_requests(node: V1Node, pod: V1Pod | None,
                           daemonsets: List[V1DaemonSet]) -> bool:
    """DaemonSet 开销 + Pod requests 能否塞进单个空节点；每种资源都比，节点没有的按 0 算"""
    alloc = node_allocatable(node)
    total = daemonset_overhead(node, daemonsets)
    for name, qty in (pod_requests(pod) if pod is not None else {}).items():
        total[name] = total.get(name, 0) + qty
    for name, qty in total.items():
        if qty > 0 and qty > alloc.get(name, 0):
            return False
    return True


def classify(unscheduled: UnscheduledPod,
             template: V1Node,
             daemonsets: List[V1DaemonSet]) -> Classification:
    pod = unscheduled.pod
    # 已绑定节点的只有 DaemonSet Pod，自身开销已计入 daemonsets
    if pod.spec.node_name:
        on_new_node = unscheduled.node is not None and is_new_node(unscheduled.node)
        if on_new_node or not meet_resource_requests(template, None, daemonsets):
            return Classification(
                pod, PodClass.OVERHEAD_BLOCKED,
                f"failed to schedule pod {full_name(pod)}: {unscheduled.reason}: the total "
                f"requested resource of daemonset pods in new node is too large",
                unscheduled.reason)
        return Classification(
            pod, PodClass.UNFIXABLE,
            f"failed to schedule pod {full_name(pod)}: {unscheduled.reason}: "
            f"daemon pod cannot run on node {pod.spec.node_name}, adding node does not help",
            unscheduled.reason)
    if not node_should_run_pod(template, pod):
        return Classification(
            pod, PodClass.UNFIXABLE,
            f"failed to schedule pod {full_name(pod)}: {unscheduled.reason} "
            f"the pod cannot be scheduled successfully by adding node: "
            f"pod does not fit new node affinity or taints",
            unscheduled.reason)
    if not meet_resource_requests(template, pod, daemonsets):
        return Classification(
            pod, PodClass.OVERHEAD_BLOCKED,
            f"failed to schedule pod {full_name(pod)}: new node cannot meet "
            f"resource requests of pod: the total requested resource of "
            f"daemonset pods in new node is too large",
            unscheduled.reason)
    return Classification(pod, PodClass.CAPACITY_LIMITED,
                          unscheduled.reason, unscheduled.reason)


def classify_all(unscheduled: List[UnscheduledPod],
                 template: V1Node,
                 daemonsets: List[V1DaemonSet]) -> List[Classification]:
    return [classify(u, template, daemonsets) for u in unscheduled]
