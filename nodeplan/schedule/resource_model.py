"""
resource_model.py
~~~~~~~~~~~~~~~~~
集群快照：节点 + 集群上已有的 Pod / DaemonSet。
搜索循环每一轮都从原始快照派生一份新快照，原始快照从不修改。
"""
from __future__ import annotations

import copy
from typing import List

from kubernetes.client import V1DaemonSet, V1Node, V1Pod


class ClusterSnapshot:
    def __init__(self,
                 nodes: List[V1Node] | None = None,
                 pods: List[V1Pod] | None = None,
                 daemonsets: List[V1DaemonSet] | None = None):
        self.nodes: List[V1Node] = list(nodes or [])
        self.pods: List[V1Pod] = list(pods or [])
        self.daemonsets: List[V1DaemonSet] = list(daemonsets or [])

    # —— 克隆 —— #
    def clone(self) -> "ClusterSnapshot":
        return copy.deepcopy(self)

    def with_new_nodes(self, nodes: List[V1Node]) -> "ClusterSnapshot":
        """返回 原始节点 + 候选节点 的新快照（深拷贝，互不影响）"""
        snap = self.clone()
        snap.nodes.extend(copy.deepcopy(nodes))
        return snap

    def __repr__(self):
        return (f"ClusterSnapshot(nodes={len(self.nodes)}, "
                f"pods={len(self.pods)}, daemonsets={len(self.daemonsets)})")
