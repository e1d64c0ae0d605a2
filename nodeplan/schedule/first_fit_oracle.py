"""
first_fit_oracle.py
~~~~~~~~~~~~~~~~~~~
默认调度 oracle：纯 First-Fit，无打分、无随机。

  1. DaemonSet（集群 + 应用）按节点展开，能跑的节点各放一个
  2. 已绑定的集群 Pod 原样放回所在节点
  3. 未绑定的集群 Pod → 应用 Pod，按输入顺序逐个放到
     第一个（快照顺序）通过全部检查的节点

节点检查：cordon → nodeSelector/亲和 → 污点 → 资源(cpu/mem/扩展/Pod 数) → 本地存储
相同输入永远得到相同结果；输入对象不会被修改。
"""
from __future__ import annotations

import copy
import logging
from collections import Counter
from typing import Dict, List, Optional, Tuple

from kubernetes.client import V1Node, V1Pod

from nodeplan.errors import OracleError
from .constants import RESOURCE_PODS
from .model import AppResource, NodeStatus, SimulateResult, UnscheduledPod
from .oracle_interface import BaseOracle
from .predicates import find_untolerated_taint, matches_node_selector_and_affinity
from .resource_model import ClusterSnapshot
from .resource_types import (NodeStorage, Volume, full_name, node_allocatable,
                             node_storage, pod_requests, pod_volumes,
                             set_node_storage)
from .workload import daemon_pod, daemon_pod_template

REASON_UNSCHEDULABLE = "node(s) were unschedulable"
REASON_AFFINITY = "node(s) didn't match Pod's node affinity/selector"
REASON_TOO_MANY_PODS = "Too many pods"
REASON_STORAGE = "node(s) didn't have enough free local storage"


class _NodeState:
    """单个节点在本次模拟中的占用（只在 simulate 内部存活）"""

    def __init__(self, node: V1Node):
        self.node = node
        self.name: str = node.metadata.name
        self.allocatable: Dict[str, int] = node_allocatable(node)
        self.used: Dict[str, int] = {}
        self.pods: List[V1Pod] = []
        self.storage: Optional[NodeStorage] = node_storage(node)

    # —— 判定 —— #
    def check(self, pod: V1Pod) -> Optional[str]:
        """返回第一个不满足的原因；None 表示放得下"""
        spec = self.node.spec
        if spec is not None and spec.unschedulable:
            return REASON_UNSCHEDULABLE
        if not matches_node_selector_and_affinity(pod, self.node):
            return REASON_AFFINITY
        taint = find_untolerated_taint(self.node, pod)
        if taint is not None:
            return f"node(s) had untolerated taint {{{taint.key}: {taint.value or ''}}}"
        return self.check_resources(pod)

    def check_resources(self, pod: V1Pod) -> Optional[str]:
        max_pods = self.allocatable.get(RESOURCE_PODS)
        if max_pods is not None and len(self.pods) + 1 > max_pods:
            return REASON_TOO_MANY_PODS
        for name, qty in sorted(pod_requests(pod).items()):
            if qty <= 0:
                continue
            if self.used.get(name, 0) + qty > self.allocatable.get(name, 0):
                return f"Insufficient {name}"
        volumes = pod_volumes(pod)
        if volumes and self._plan_volumes(volumes) is None:
            return REASON_STORAGE
        return None

    def _plan_volumes(self, volumes: List[Volume]) -> Optional[NodeStorage]:
        """在存储副本上试分配；成功返回分配后的副本"""
        if self.storage is None:
            return None
        trial = copy.deepcopy(self.storage)
        for vol in volumes:
            if vol.kind.upper() == "LVM":
                vg = next((g for g in trial.vgs
                           if (not vol.vgName or g.name == vol.vgName)
                           and g.free >= vol.size), None)
                if vg is None:
                    return None
                vg.requested += vol.size
            else:
                dev = next((d for d in trial.devices
                            if not d.isAllocated
                            and d.mediaType.lower() == vol.kind.lower()
                            and d.capacity >= vol.size), None)
                if dev is None:
                    return None
                dev.isAllocated = True
        return trial

    # —— 放置 —— #
    def add_pod(self, pod: V1Pod):
        for name, qty in pod_requests(pod).items():
            self.used[name] = self.used.get(name, 0) + qty
        volumes = pod_volumes(pod)
        if volumes:
            planned = self._plan_volumes(volumes)
            if planned is not None:
                self.storage = planned
                set_node_storage(self.node, planned)
        pod.spec.node_name = self.name
        self.pods.append(pod)


class FirstFitOracle(BaseOracle):
    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def simulate(self,
                 snapshot: ClusterSnapshot,
                 apps: List[AppResource]) -> SimulateResult:
        try:
            return self._simulate(snapshot, apps)
        except OracleError:
            raise
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise OracleError(f"failed to simulate scheduling: {exc}") from exc

    def _simulate(self,
                  snapshot: ClusterSnapshot,
                  apps: List[AppResource]) -> SimulateResult:
        snap = snapshot.clone()
        states = [_NodeState(n) for n in snap.nodes]
        by_name = {st.name: st for st in states}
        unscheduled: List[UnscheduledPod] = []

        # 1⃣ DaemonSet：每个能跑的节点一个 Pod
        daemonsets = list(snap.daemonsets)
        for app in apps:
            daemonsets.extend(copy.deepcopy(app.daemonsets))
        for ds in daemonsets:
            tpl = daemon_pod_template(ds)
            for st in states:
                if not matches_node_selector_and_affinity(tpl, st.node):
                    continue
                if find_untolerated_taint(st.node, tpl) is not None:
                    continue
                pod = daemon_pod(ds, st.node)
                reason = st.check_resources(pod)
                if reason:
                    unscheduled.append(UnscheduledPod(
                        pod, f"node {st.name} cannot run daemon pod: {reason}", st.node))
                    continue
                st.add_pod(pod)

        # 2⃣ 已绑定的集群 Pod 放回原节点
        pending: List[V1Pod] = []
        for pod in snap.pods:
            node_name = pod.spec.node_name
            if node_name and node_name in by_name:
                by_name[node_name].add_pod(pod)
            else:
                pod.spec.node_name = None
                pending.append(pod)

        # 3⃣ 未绑定 Pod + 应用 Pod：First-Fit
        for app in apps:
            pending.extend(copy.deepcopy(app.pods))
        for pod in pending:
            target, reason = self._select_node(states, pod)
            if target is None:
                self.logger.debug("pod %s unschedulable: %s", full_name(pod), reason)
                unscheduled.append(UnscheduledPod(pod, reason))
                continue
            target.add_pod(pod)

        return SimulateResult(
            node_statuses=[NodeStatus(st.node, st.pods) for st in states],
            unscheduled_pods=unscheduled)

    @staticmethod
    def _select_node(states: List[_NodeState],
                     pod: V1Pod) -> Tuple[Optional[_NodeState], str]:
        failures: Counter = Counter()
        for st in states:
            reason = st.check(pod)
            if reason is None:
                return st, ""
            failures[reason] += 1
        return None, format_reason(len(states), failures)


def format_reason(total: int, failures: Counter) -> str:
    """kube-scheduler 风格：0/3 nodes are available: 2 Insufficient cpu, 1 ..."""
    head = f"0/{total} nodes are available"
    if not failures:
        return head + "."
    parts = [f"{cnt} {msg}" for msg, cnt in sorted(failures.items())]
    return f"{head}: {', '.join(parts)}."
