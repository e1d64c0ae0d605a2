"""
resource_types.py
~~~~~~~~~~~~~~~~~
Pod / Node 资源口径：requests 汇总、allocatable 读取、本地存储注解。
所有数量统一成整数：CPU 用 millicore，内存用 byte，其它扩展资源用 value。
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field, asdict
from decimal import Decimal, ROUND_CEILING
from typing import Dict, List, Optional

from kubernetes.client import V1Node, V1Pod
from kubernetes.utils import parse_quantity

from .constants import (ANNO_NODE_LOCAL_STORAGE, ANNO_POD_LOCAL_STORAGE,
                        LABEL_APP_NAME, LABEL_NEW_NODE, RESOURCE_CPU)


# —— 基础解析 —— #
def _ceil(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_CEILING))


def _parse_cpu(cpu) -> int:
    """'500m' / '2' / 1.5 → millicore"""
    return _ceil(parse_quantity(str(cpu)) * 1000)


def _parse_mem(mem) -> int:
    """'1Gi' / '512Mi' / 1024 → byte"""
    return _ceil(parse_quantity(str(mem)))


def parse_resource(name: str, value) -> int:
    if name == RESOURCE_CPU:
        return _parse_cpu(value)
    return _parse_mem(value)


def _parse_resource_map(raw: Optional[Dict]) -> Dict[str, int]:
    out: Dict[str, int] = {}
    for name, value in (raw or {}).items():
        if value is None:
            continue
        out[name] = parse_resource(name, value)
    return out


# —— Pod 口径 —— #
def full_name(pod: V1Pod) -> str:
    meta = pod.metadata
    return f"{meta.namespace or 'default'}/{meta.name}"


def app_name(pod: V1Pod) -> str:
    labels = (pod.metadata.labels if pod.metadata else None) or {}
    return labels.get(LABEL_APP_NAME, "")


def pod_requests(pod: V1Pod) -> Dict[str, int]:
    """
    与 kube-scheduler 相同的有效 requests：
        max(sum(containers), max(initContainers)) + overhead
    requests 缺失而 limits 存在时，以 limits 作为 requests。
    """
    spec = pod.spec
    total: Dict[str, int] = {}
    for c in spec.containers or []:
        for name, qty in _container_requests(c).items():
            total[name] = total.get(name, 0) + qty

    for c in spec.init_containers or []:
        for name, qty in _container_requests(c).items():
            if qty > total.get(name, 0):
                total[name] = qty

    for name, qty in _parse_resource_map(spec.overhead).items():
        total[name] = total.get(name, 0) + qty
    return total


def _container_requests(container) -> Dict[str, int]:
    res = container.resources
    if res is None:
        return {}
    reqs = _parse_resource_map(res.requests)
    for name, qty in _parse_resource_map(res.limits).items():
        reqs.setdefault(name, qty)
    return reqs


def pods_total_requests(pods: List[V1Pod]) -> Dict[str, int]:
    total: Dict[str, int] = {}
    for pod in pods:
        for name, qty in pod_requests(pod).items():
            total[name] = total.get(name, 0) + qty
    return total


# —— Node 口径 —— #
def node_allocatable(node: V1Node) -> Dict[str, int]:
    status = node.status
    if status is None:
        return {}
    return _parse_resource_map(status.allocatable or status.capacity)


def is_new_node(node: V1Node) -> bool:
    labels = node.metadata.labels or {}
    return LABEL_NEW_NODE in labels


# ───────────────────────────────────────────────
# 本地存储（VG / 裸盘）
# ───────────────────────────────────────────────
@dataclass
class VolumeGroup:
    name: str
    capacity: int
    requested: int = 0

    @property
    def free(self) -> int:
        return self.capacity - self.requested


@dataclass
class Device:
    device: str
    capacity: int
    mediaType: str = "hdd"
    isAllocated: bool = False


@dataclass
class NodeStorage:
    vgs: List[VolumeGroup] = field(default_factory=list)
    devices: List[Device] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: dict) -> "NodeStorage":
        vgs = [VolumeGroup(name=vg["name"],
                           capacity=_parse_mem(vg.get("capacity", 0)),
                           requested=_parse_mem(vg.get("requested", 0)))
               for vg in raw.get("vgs") or []]
        devices = [Device(device=d["device"],
                          capacity=_parse_mem(d.get("capacity", 0)),
                          mediaType=d.get("mediaType", "hdd"),
                          isAllocated=bool(d.get("isAllocated", False)))
                   for d in raw.get("devices") or []]
        return cls(vgs=vgs, devices=devices)

    def to_json(self) -> str:
        return json.dumps(asdict(self), sort_keys=True)

    @property
    def capacity(self) -> int:
        return sum(vg.capacity for vg in self.vgs)

    @property
    def requested(self) -> int:
        return sum(vg.requested for vg in self.vgs)


@dataclass
class Volume:
    size: int
    kind: str = "LVM"      # LVM 走 VG；HDD / SSD 独占整盘
    vgName: str = ""


def node_storage(node: V1Node) -> Optional[NodeStorage]:
    """读取节点本地存储注解；没有注解返回 None，注解不是合法 JSON 抛 ValueError。"""
    annotations = node.metadata.annotations or {}
    raw = annotations.get(ANNO_NODE_LOCAL_STORAGE)
    if not raw:
        return None
    try:
        return NodeStorage.from_dict(json.loads(raw))
    except (ValueError, KeyError, TypeError) as exc:
        raise ValueError(f"bad local storage annotation on node "
                         f"{node.metadata.name}: {exc}") from exc


def set_node_storage(node: V1Node, storage: NodeStorage):
    if node.metadata.annotations is None:
        node.metadata.annotations = {}
    node.metadata.annotations[ANNO_NODE_LOCAL_STORAGE] = storage.to_json()


def pod_volumes(pod: V1Pod) -> List[Volume]:
    annotations = pod.metadata.annotations or {}
    raw = annotations.get(ANNO_POD_LOCAL_STORAGE)
    if not raw:
        return []
    try:
        data = json.loads(raw)
        return [Volume(size=_parse_mem(v["size"]),
                       kind=v.get("kind", "LVM"),
                       vgName=v.get("vgName", ""))
                for v in data.get("volumes") or []]
    except (ValueError, KeyError, TypeError) as exc:
        raise ValueError(f"bad local storage annotation on pod "
                         f"{full_name(pod)}: {exc}") from exc
