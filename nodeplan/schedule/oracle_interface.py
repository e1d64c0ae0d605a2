"""
oracle_interface.py
~~~~~~~~~~~~~~~~~~~
调度 oracle 的抽象基类。搜索循环只依赖这个接口，
默认实现见 first_fit_oracle.FirstFitOracle，测试里可以换成桩。
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from .model import AppResource, SimulateResult
from .resource_model import ClusterSnapshot


class BaseOracle(ABC):
    """
    任何调度 oracle 都必须：
      • 接受 【集群快照】+ 【待部署应用列表】
      • 输出 每个节点上的 Pod + 放不下的 Pod（附原因）
      • 相同输入得到相同输出，且不修改输入
    """

    @abstractmethod
    def simulate(self,
                 snapshot: ClusterSnapshot,
                 apps: List[AppResource]) -> SimulateResult:
        """
        Parameters
        ----------
        snapshot : ClusterSnapshot
            原有节点 + 本轮候选节点，以及集群上已有的 Pod / DaemonSet。
        apps : List[AppResource]
            选中的应用；每个应用的 Pod 已打上应用名标签。

        Returns
        -------
        SimulateResult
            node_statuses 与 snapshot.nodes 同序。

        Raises
        ------
        OracleError
            模拟本身失败。
        """
        raise NotImplementedError
