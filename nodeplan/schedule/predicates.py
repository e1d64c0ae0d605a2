"""
predicates.py
~~~~~~~~~~~~~
与容量无关的调度约束判定：
  • nodeSelector / requiredDuringScheduling 节点亲和
  • 污点 / 容忍（只看 NoSchedule、NoExecute）
Oracle 过滤节点、分类器判断“加节点也没用”都走这里。
"""
from __future__ import annotations

from typing import Dict, List, Optional

from kubernetes.client import V1Node, V1Pod, V1Taint, V1Toleration

BLOCKING_EFFECTS = ("NoSchedule", "NoExecute")


# ──────────────────────────────────────────────
# 污点 / 容忍
# ──────────────────────────────────────────────
def toleration_tolerates(tol: V1Toleration, taint: V1Taint) -> bool:
    if tol.effect and tol.effect != taint.effect:
        return False
    operator = tol.operator or "Equal"
    # key 为空 + Exists：容忍一切
    if not tol.key:
        return operator == "Exists"
    if tol.key != taint.key:
        return False
    if operator == "Exists":
        return True
    return (tol.value or "") == (taint.value or "")


def find_untolerated_taint(node: V1Node, pod: V1Pod) -> Optional[V1Taint]:
    taints = (node.spec.taints if node.spec else None) or []
    tolerations = pod.spec.tolerations or []
    for taint in taints:
        if taint.effect not in BLOCKING_EFFECTS:
            continue
        if not any(toleration_tolerates(t, taint) for t in tolerations):
            return taint
    return None


# ──────────────────────────────────────────────
# nodeSelector / nodeAffinity
# ──────────────────────────────────────────────
def _match_expression(expr, values_by_key: Dict[str, str]) -> bool:
    key, op = expr.key, expr.operator
    values = expr.values or []
    present = key in values_by_key
    val = values_by_key.get(key)

    if op == "In":
        return present and val in values
    if op == "NotIn":
        return not present or val not in values
    if op == "Exists":
        return present
    if op == "DoesNotExist":
        return not present
    if op in ("Gt", "Lt"):
        if not present or len(values) != 1:
            return False
        try:
            left, right = int(val), int(values[0])
        except ValueError:
            return False
        return left > right if op == "Gt" else left < right
    return False


def _match_term(term, node: V1Node) -> bool:
    exprs = term.match_expressions or []
    fields = term.match_fields or []
    # 空 term 不匹配任何节点
    if not exprs and not fields:
        return False
    labels = node.metadata.labels or {}
    if not all(_match_expression(e, labels) for e in exprs):
        return False
    node_fields = {"metadata.name": node.metadata.name}
    return all(_match_expression(f, node_fields) for f in fields)


def match_node_selector_terms(terms: List, node: V1Node) -> bool:
    """terms 之间是 OR，term 内部是 AND"""
    return any(_match_term(t, node) for t in terms or [])


def matches_node_selector_and_affinity(pod: V1Pod, node: V1Node) -> bool:
    labels = node.metadata.labels or {}
    for k, v in (pod.spec.node_selector or {}).items():
        if labels.get(k) != v:
            return False

    affinity = pod.spec.affinity
    node_affinity = affinity.node_affinity if affinity else None
    required = (node_affinity.required_during_scheduling_ignored_during_execution
                if node_affinity else None)
    if required is None:
        return True
    return match_node_selector_terms(required.node_selector_terms, node)


def node_should_run_pod(node: V1Node, pod: V1Pod) -> bool:
    """节点本身的标签 / 污点是否允许这个 Pod，完全不看资源。"""
    return (matches_node_selector_and_affinity(pod, node)
            and find_untolerated_taint(node, pod) is None)
