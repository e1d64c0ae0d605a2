"""
workload.py
~~~~~~~~~~~
从 Pod 模板生成 Pod：控制器副本、DaemonSet 的每节点 Pod。
"""
from __future__ import annotations

import copy

from kubernetes.client import (V1DaemonSet, V1Node, V1ObjectMeta, V1Pod,
                               V1PodSpec, V1PodTemplateSpec)

from .constants import LABEL_APP_NAME


def pod_from_template(template: V1PodTemplateSpec,
                      name: str,
                      namespace: str | None,
                      app: str = "") -> V1Pod:
    tpl = copy.deepcopy(template) if template else V1PodTemplateSpec()
    meta = tpl.metadata or V1ObjectMeta()
    labels = dict(meta.labels or {})
    if app:
        labels[LABEL_APP_NAME] = app
    pod_meta = V1ObjectMeta(name=name,
                            namespace=namespace or "default",
                            labels=labels,
                            annotations=dict(meta.annotations or {}))
    spec = tpl.spec or V1PodSpec(containers=[])
    return V1Pod(api_version="v1", kind="Pod", metadata=pod_meta, spec=spec)


def daemon_pod(ds: V1DaemonSet, node: V1Node) -> V1Pod:
    """DaemonSet 在某个节点上的 Pod（已绑定到该节点）"""
    app = (ds.metadata.labels or {}).get(LABEL_APP_NAME, "")
    pod = pod_from_template(ds.spec.template,
                            name=f"{ds.metadata.name}-{node.metadata.name}",
                            namespace=ds.metadata.namespace,
                            app=app)
    pod.spec.node_name = node.metadata.name
    return pod


def daemon_pod_template(ds: V1DaemonSet) -> V1Pod:
    """未绑定的 DaemonSet Pod，只用于约束 / 资源判定"""
    return pod_from_template(ds.spec.template,
                             name=ds.metadata.name,
                             namespace=ds.metadata.namespace)
