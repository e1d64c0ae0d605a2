"""
通用数据结构：模拟结果、应用资源、占用率、准入结论
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from kubernetes.client import V1DaemonSet, V1Node, V1Pod

from nodeplan.errors import ConfigurationError
from .constants import DEFAULT_MAX_PERCENT


@dataclass
class NodeStatus:
    node: V1Node
    pods: List[V1Pod] = field(default_factory=list)


@dataclass
class UnscheduledPod:
    pod: V1Pod
    reason: str
    node: V1Node | None = None    # DaemonSet Pod 失败时所绑定的节点


@dataclass
class SimulateResult:
    """一次 oracle 调用的结果：每个节点上的 Pod + 放不下的 Pod。"""
    node_statuses: List[NodeStatus] = field(default_factory=list)
    unscheduled_pods: List[UnscheduledPod] = field(default_factory=list)

    @property
    def all_scheduled(self) -> bool:
        return not self.unscheduled_pods


@dataclass
class AppResource:
    """一个应用展开后的工作负载：普通 Pod + 伴随 DaemonSet"""
    name: str
    pods: List[V1Pod] = field(default_factory=list)
    daemonsets: List[V1DaemonSet] = field(default_factory=list)


@dataclass
class ResourceOccupancy:
    allocatable: int = 0
    requested: int = 0

    @property
    def percent(self) -> int | None:
        """requested / allocatable * 100 向下取整；allocatable 为 0 时无意义"""
        if self.allocatable <= 0:
            return None
        return self.requested * 100 // self.allocatable


def clamp_percent(value: int) -> int:
    """超出 [0,100] 一律重置为 100（不限制）"""
    if value < 0 or value > 100:
        return DEFAULT_MAX_PERCENT
    return value


@dataclass
class Thresholds:
    """cpu / memory / storage 占用率上限（百分比）；构造时校验并钳位"""
    cpu: int = DEFAULT_MAX_PERCENT
    memory: int = DEFAULT_MAX_PERCENT
    storage: int = DEFAULT_MAX_PERCENT

    def __post_init__(self):
        for name in ("cpu", "memory", "storage"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"{name} ceiling must be an integer percentage: {value!r}")
            setattr(self, name, clamp_percent(value))

    def as_dict(self) -> Dict[str, int]:
        return {"cpu": self.cpu, "memory": self.memory, "storage": self.storage}


@dataclass
class AdmissionVerdict:
    ok: bool
    reason: str = ""
    resource: str = ""
    occupancy: int | None = None
    ceiling: int | None = None
