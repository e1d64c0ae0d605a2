"""
node_template.py
~~~~~~~~~~~~~~~~
把用户给出的新节点模板克隆成 N 个候选节点。

    simulated-node-00, simulated-node-01, ...

每个候选节点都带 LABEL_NEW_NODE 标记，报告里据此区分原有节点与新增节点。
每一轮搜索都重新生成，不复用上一轮的克隆。
"""
from __future__ import annotations

import copy
import uuid
from typing import List

from kubernetes.client import V1Node, V1NodeCondition, V1NodeStatus, V1ObjectMeta

from nodeplan.errors import InvalidTemplateError
from .constants import LABEL_HOSTNAME, LABEL_NEW_NODE, NEW_NODE_NAME_PREFIX


def make_valid_node(template: V1Node, hostname: str) -> V1Node:
    """
    深拷贝模板并改成一个“可调度”的节点：
      • name / hostname 标签改成新名字
      • 新 uid，清掉 resourceVersion 等服务端字段
      • 取消 cordon；allocatable 缺失时用 capacity 补齐
      • Ready condition
    """
    node = copy.deepcopy(template)
    if node.metadata is None:
        node.metadata = V1ObjectMeta()
    meta = node.metadata
    meta.name = hostname
    meta.uid = str(uuid.uuid4())
    meta.resource_version = None
    meta.creation_timestamp = None
    meta.labels = dict(meta.labels or {})
    meta.labels[LABEL_HOSTNAME] = hostname

    if node.spec is not None:
        node.spec.unschedulable = None
        node.spec.provider_id = None

    if node.status is None:
        node.status = V1NodeStatus()
    status = node.status
    if not status.allocatable and status.capacity:
        status.allocatable = dict(status.capacity)
    status.conditions = [V1NodeCondition(type="Ready", status="True")]
    return node


def new_fake_nodes(template: V1Node | None, count: int) -> List[V1Node]:
    if template is None:
        raise InvalidTemplateError("node template is nil")
    if count < 0:
        raise ValueError(f"negative node count: {count}")

    nodes: List[V1Node] = []
    for i in range(count):
        hostname = f"{NEW_NODE_NAME_PREFIX}-{i:02d}"
        node = make_valid_node(template, hostname)
        node.metadata.labels[LABEL_NEW_NODE] = ""
        nodes.append(node)
    return nodes
