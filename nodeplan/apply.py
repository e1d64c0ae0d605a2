"""
apply.py
~~~~~~~~
一次完整的规划：读配置 → 集群快照 + 新节点模板 + 应用 → 节点数搜索 → 报告
"""
from __future__ import annotations

import logging
import threading
from typing import List, Tuple

from nodeplan.cluster.ClusterMonitor import ClusterMonitor
from nodeplan.cluster.manifest_loader import (load_app, load_custom_cluster,
                                              load_node_template)
from nodeplan.config import PlanConfig
from nodeplan.schedule.constants import MAX_NUM_NEW_NODE
from nodeplan.schedule.model import AppResource
from nodeplan.schedule.planner import NodePlanner, PlanResult
from nodeplan.schedule.report import PlanReport, build_report
from nodeplan.schedule.resource_model import ClusterSnapshot


class Applier:
    def __init__(self,
                 cfg: PlanConfig,
                 extended_resources: List[str] | None = None,
                 app_names: List[str] | None = None,
                 max_new_nodes: int = MAX_NUM_NEW_NODE,
                 cancel_event: threading.Event | None = None):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.cfg = cfg
        self.extended_resources = list(extended_resources or [])
        self.app_names = app_names
        self.max_new_nodes = max_new_nodes
        self.cancel_event = cancel_event or threading.Event()

    def load_cluster(self) -> ClusterSnapshot:
        if self.cfg.custom_config:
            return load_custom_cluster(self.cfg.custom_config)
        return ClusterMonitor(self.cfg.kube_config).snapshot()

    def load_apps(self) -> List[AppResource]:
        return [load_app(a.name, a.path) for a in self.cfg.select_apps(self.app_names)]

    def run(self) -> Tuple[PlanResult, PlanReport]:
        # 1⃣ 输入
        snapshot = self.load_cluster()
        template = load_node_template(self.cfg.new_node)
        apps = self.load_apps()
        self.logger.info(f"cluster {snapshot}, template {template.metadata.name}, "
                         f"apps {[a.name for a in apps]}")

        # 2⃣ 搜索
        planner = NodePlanner(max_new_nodes=self.max_new_nodes,
                              cancel_event=self.cancel_event)
        result = planner.plan(snapshot, template, apps)

        # 3⃣ 报告
        report = build_report(result, self.extended_resources)
        self.logger.info(f"plan finished: {result.state.value}, new nodes={result.node_count}")
        return result, report
