"""
planner.py
~~~~~~~~~~
节点数搜索主循环：

  for i in 0, 1, 2, ... < max_new_nodes
    • 模板克隆 i 个候选节点 → 原始快照 + 候选节点
    • 调用 oracle 模拟调度
    • 全部放下 → 准入检查；通过即 SUCCESS，否则 i+1
    • 有 Pod 放不下 → 分类；任何一个 UNFIXABLE / OVERHEAD_BLOCKED
      直接 STRUCTURALLY_FAILED，全部 CAPACITY_LIMITED 才 i+1
  循环跑完仍未成功 → EXHAUSTED

严格串行：下一轮是否继续完全取决于上一轮的分类结果。
取消只在两轮之间检查（threading.Event），命中即 CANCELLED。
"""
from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass, field
from typing import List, Optional

from kubernetes.client import V1DaemonSet, V1Node

from nodeplan.errors import ConfigurationError, InvalidTemplateError
from .admission import check, load_thresholds
from .classifier import Classification, classify_all
from .constants import MAX_NUM_NEW_NODE
from .first_fit_oracle import FirstFitOracle
from .model import AdmissionVerdict, AppResource, SimulateResult, Thresholds
from .node_template import new_fake_nodes
from .oracle_interface import BaseOracle
from .resource_model import ClusterSnapshot
from .resource_types import full_name


class SearchState(str, enum.Enum):
    SUCCESS = "Success"
    STRUCTURALLY_FAILED = "StructurallyFailed"
    EXHAUSTED = "Exhausted"
    CANCELLED = "Cancelled"


@dataclass
class Attempt:
    node_count: int
    unscheduled: int
    admission: Optional[AdmissionVerdict] = None


@dataclass
class PlanResult:
    state: SearchState
    node_count: Optional[int] = None          # SUCCESS 时新增的节点数
    result: Optional[SimulateResult] = None   # 终态对应的（最后一次）模拟结果
    reason: str = ""
    blocker: Optional[Classification] = None
    verdict: Optional[AdmissionVerdict] = None
    attempts: List[Attempt] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state is SearchState.SUCCESS


class NodePlanner:
    """
    Parameters
    ----------
    oracle : BaseOracle
        调度 oracle（默认 FirstFitOracle）。
    thresholds : Thresholds
        占用率上限；默认从环境变量 MaxCPU / MaxMemory / MaxVG 读取。
    max_new_nodes : int
        搜索上限，尝试 0 .. max_new_nodes-1 个新节点。
    cancel_event : threading.Event
        外部取消信号，只在两轮之间检查。
    """

    def __init__(self,
                 oracle: BaseOracle | None = None,
                 thresholds: Thresholds | None = None,
                 max_new_nodes: int = MAX_NUM_NEW_NODE,
                 cancel_event: threading.Event | None = None):
        if not isinstance(max_new_nodes, int) or max_new_nodes <= 0:
            raise ConfigurationError(f"max new nodes must be a positive integer: {max_new_nodes!r}")
        self.oracle = oracle or FirstFitOracle()
        self.thresholds = thresholds or load_thresholds()
        self.max_new_nodes = max_new_nodes
        self.cancel_event = cancel_event or threading.Event()
        self.logger = logging.getLogger("NodePlanner")

    # ──────────────────────────────────────────────
    # 主循环
    # ──────────────────────────────────────────────
    def plan(self,
             snapshot: ClusterSnapshot,
             template: V1Node | None,
             apps: List[AppResource]) -> PlanResult:
        if template is None:
            raise InvalidTemplateError("no new node template given")

        # 每个新节点上都会跑的伴随负载：集群 DaemonSet + 应用 DaemonSet
        companions: List[V1DaemonSet] = list(snapshot.daemonsets)
        for app in apps:
            companions.extend(app.daemonsets)

        attempts: List[Attempt] = []
        last_result: Optional[SimulateResult] = None
        last_verdict: Optional[AdmissionVerdict] = None

        for i in range(self.max_new_nodes):
            if self.cancel_event.is_set():
                self.logger.warning("cancelled before trying %d node(s)", i)
                return PlanResult(SearchState.CANCELLED, result=last_result,
                                  reason=f"cancelled before trying {i} new node(s)",
                                  verdict=last_verdict, attempts=attempts)

            self.logger.info("add %d node(s)", i)
            result = self._run_once(snapshot, template, apps, i)
            last_result = result

            # 1. 全部放下 → 准入
            if result.all_scheduled:
                verdict = check(result.node_statuses, self.thresholds)
                attempts.append(Attempt(i, 0, verdict))
                if verdict.ok:
                    self.logger.info("success with %d new node(s)", i)
                    return PlanResult(SearchState.SUCCESS, node_count=i,
                                      result=result, verdict=verdict,
                                      attempts=attempts)
                self.logger.warning("%s", verdict.reason)
                last_verdict = verdict
                continue

            # 2. 有 Pod 放不下 → 分类
            attempts.append(Attempt(i, len(result.unscheduled_pods)))
            self.logger.warning("there are %d unscheduled pods",
                                len(result.unscheduled_pods))
            for c in classify_all(result.unscheduled_pods, template, companions):
                self.logger.debug("failed to schedule pod %s: %s [%s]",
                                  full_name(c.pod), c.scheduler_reason, c.kind.value)
                if c.structural:
                    self.logger.error("%s", c.reason)
                    return PlanResult(SearchState.STRUCTURALLY_FAILED,
                                      result=result, reason=c.reason,
                                      blocker=c, verdict=last_verdict,
                                      attempts=attempts)

        reason = (f"we have tried adding up to {self.max_new_nodes - 1} node(s) "
                  f"but it still failed")
        self.logger.error("%s", reason)
        return PlanResult(SearchState.EXHAUSTED, result=last_result,
                          reason=reason, verdict=last_verdict, attempts=attempts)

    # ──────────────────────────────────────────────
    # 单轮
    # ──────────────────────────────────────────────
    def _run_once(self,
                  snapshot: ClusterSnapshot,
                  template: V1Node,
                  apps: List[AppResource],
                  count: int) -> SimulateResult:
        nodes = new_fake_nodes(template, count)
        trial = snapshot.with_new_nodes(nodes)
        return self.oracle.simulate(trial, apps)
