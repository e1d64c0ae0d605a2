"""
admission.py
~~~~~~~~~~~~
全部 Pod 都放下之后的准入检查：整个集群（原有 + 新增节点）的平均占用率
不能超过设定上限。

    占用率 = floor(requested / allocatable * 100)

检查顺序固定 cpu → memory → storage，遇到第一个超限的就拒绝。
某种资源集群里根本没有（allocatable 为 0）时跳过，不算错误。
"""
from __future__ import annotations

import logging
import os
from typing import Dict, Iterable, List, Mapping

from nodeplan.errors import ConfigurationError
from .constants import (DEFAULT_MAX_PERCENT, ENV_MAX_CPU, ENV_MAX_MEMORY,
                        ENV_MAX_VG, EXTENDED_LOCAL_STORAGE, RESOURCE_CPU,
                        RESOURCE_MEMORY, RESOURCE_STORAGE)
from .model import AdmissionVerdict, NodeStatus, ResourceOccupancy, Thresholds
from .resource_types import node_allocatable, node_storage, pods_total_requests

logger = logging.getLogger(__name__)

# 准入检查顺序 + 报错时的资源名（与原工具的提示保持一致）
CHECK_ORDER = ((RESOURCE_CPU, "cpu"),
               (RESOURCE_MEMORY, "memory"),
               (RESOURCE_STORAGE, "vg"))


# ──────────────────────────────────────────────
# 上限配置
# ──────────────────────────────────────────────
def _read_percent(env: Mapping[str, str], key: str) -> int:
    raw = env.get(key, "")
    if raw == "":
        return DEFAULT_MAX_PERCENT
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"failed to convert env {key} to int: {raw!r}") from exc
    return value


def load_thresholds(env: Mapping[str, str] | None = None) -> Thresholds:
    env = os.environ if env is None else env
    return Thresholds(cpu=_read_percent(env, ENV_MAX_CPU),
                      memory=_read_percent(env, ENV_MAX_MEMORY),
                      storage=_read_percent(env, ENV_MAX_VG))


# ──────────────────────────────────────────────
# 汇总
# ──────────────────────────────────────────────
def resource_occupancy(node_statuses: List[NodeStatus],
                       extended_resources: Iterable[str] = ()) -> Dict[str, ResourceOccupancy]:
    """
    对当前快照的全部节点汇总 (allocatable, requested)。
    每次调用都从头算，不做缓存：节点集合每一轮都不同。
    """
    extended = [r for r in extended_resources if r != EXTENDED_LOCAL_STORAGE]
    kinds = [RESOURCE_CPU, RESOURCE_MEMORY] + extended
    occ: Dict[str, ResourceOccupancy] = {k: ResourceOccupancy() for k in kinds}
    occ[RESOURCE_STORAGE] = ResourceOccupancy()

    all_pods = [p for st in node_statuses for p in st.pods]
    for st in node_statuses:
        node = st.node
        name = node.metadata.name
        alloc = node_allocatable(node)
        reqs = pods_total_requests([p for p in all_pods if p.spec.node_name == name])
        for kind in kinds:
            occ[kind].allocatable += alloc.get(kind, 0)
            occ[kind].requested += reqs.get(kind, 0)

        storage = node_storage(node)
        if storage is not None:
            occ[RESOURCE_STORAGE].allocatable += storage.capacity
            occ[RESOURCE_STORAGE].requested += storage.requested
    return occ


# ──────────────────────────────────────────────
# 准入
# ──────────────────────────────────────────────
def check(node_statuses: List[NodeStatus], thresholds: Thresholds) -> AdmissionVerdict:
    occ = resource_occupancy(node_statuses)
    ceilings = thresholds.as_dict()
    for kind, label in CHECK_ORDER:
        percent = occ[kind].percent
        if percent is None:
            continue
        ceiling = ceilings[kind]
        logger.debug("%s occupancy %d%% (ceiling %d%%)", kind, percent, ceiling)
        if percent > ceiling:
            return AdmissionVerdict(
                ok=False,
                reason=(f"the average occupancy rate({percent}%) of {label} "
                        f"goes beyond the env setting({ceiling}%)"),
                resource=kind, occupancy=percent, ceiling=ceiling)
    return AdmissionVerdict(ok=True)
