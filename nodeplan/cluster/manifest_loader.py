"""
manifest_loader.py
~~~~~~~~~~~~~~~~~~
YAML 清单 → Kubernetes 对象（kubernetes.client 模型）：
  • 自定义集群目录  → ClusterSnapshot
  • 应用目录        → AppResource（控制器按副本数展开成 Pod，打应用名标签）
  • 新节点模板目录  → V1Node（可带 storage.json 本地存储描述）
"""
from __future__ import annotations

import datetime
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

import yaml
from kubernetes import client

from nodeplan.errors import ConfigurationError, InvalidTemplateError
from nodeplan.schedule.constants import LABEL_APP_NAME, NODE_STORAGE_FILE
from nodeplan.schedule.model import AppResource
from nodeplan.schedule.resource_model import ClusterSnapshot
from nodeplan.schedule.resource_types import NodeStorage, set_node_storage
from nodeplan.schedule.workload import pod_from_template

logger = logging.getLogger(__name__)

MANIFEST_SUFFIXES = (".yaml", ".yml", ".json")

# kind → kubernetes.client 模型名
KIND_TO_MODEL: Dict[str, str] = {
    "Node": "V1Node",
    "Pod": "V1Pod",
    "Deployment": "V1Deployment",
    "ReplicaSet": "V1ReplicaSet",
    "StatefulSet": "V1StatefulSet",
    "DaemonSet": "V1DaemonSet",
    "Job": "V1Job",
}

_api_client = client.ApiClient()

# 这些字段在模型里是 Dict[str, str]；YAML 里的 `cpu: 4`、`version: 1` 要先转成字符串
STRING_MAP_FIELDS = frozenset({
    "labels", "annotations", "nodeSelector", "matchLabels",
    "requests", "limits", "allocatable", "capacity", "overhead",
})


def _scalar_to_str(value):
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return value


def _normalize(obj):
    if isinstance(obj, dict):
        out = {}
        for k, v in obj.items():
            if k in STRING_MAP_FIELDS and isinstance(v, dict):
                out[k] = {mk: _scalar_to_str(mv) for mk, mv in v.items()}
            else:
                out[k] = _normalize(v)
        return out
    if isinstance(obj, list):
        return [_normalize(v) for v in obj]
    return obj


def _json_default(value):
    # YAML 时间戳 → RFC3339
    if isinstance(value, (datetime.datetime, datetime.date)):
        return value.isoformat()
    return str(value)


@dataclass
class ResourceTypes:
    nodes: List[client.V1Node] = field(default_factory=list)
    pods: List[client.V1Pod] = field(default_factory=list)
    deployments: List[client.V1Deployment] = field(default_factory=list)
    replicasets: List[client.V1ReplicaSet] = field(default_factory=list)
    statefulsets: List[client.V1StatefulSet] = field(default_factory=list)
    daemonsets: List[client.V1DaemonSet] = field(default_factory=list)
    jobs: List[client.V1Job] = field(default_factory=list)


# ──────────────────────────────────────────────
# 读文件
# ──────────────────────────────────────────────
def _manifest_files(path: Path) -> List[Path]:
    if path.is_file():
        return [path]
    if not path.is_dir():
        raise ConfigurationError(f"invalid manifest path: {path}")
    return sorted(p for p in path.rglob("*")
                  if p.is_file() and p.suffix in MANIFEST_SUFFIXES
                  and p.name != NODE_STORAGE_FILE)


def load_yaml_documents(path: str | Path) -> List[dict]:
    docs: List[dict] = []
    for f in _manifest_files(Path(path)):
        try:
            for doc in yaml.safe_load_all(f.read_text(encoding="utf-8")):
                if not doc:
                    continue
                if doc.get("kind") == "List":
                    docs.extend(item for item in doc.get("items") or [] if item)
                else:
                    docs.append(doc)
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigurationError(f"failed to read manifest {f}: {exc}") from exc
    return docs


def to_object(doc: dict):
    """dict → kubernetes.client 模型；不支持的 kind 返回 None"""
    model = KIND_TO_MODEL.get(doc.get("kind", ""))
    if model is None:
        return None
    try:
        text = json.dumps(_normalize(doc), default=_json_default)
        return _api_client.deserialize(text, model, "application/json")
    except (ValueError, TypeError) as exc:
        name = (doc.get("metadata") or {}).get("name", "<unknown>")
        raise ConfigurationError(f"invalid {doc.get('kind')} {name}: {exc}") from exc


def get_objects(path: str | Path) -> ResourceTypes:
    res = ResourceTypes()
    buckets = {
        "Node": res.nodes, "Pod": res.pods, "Deployment": res.deployments,
        "ReplicaSet": res.replicasets, "StatefulSet": res.statefulsets,
        "DaemonSet": res.daemonsets, "Job": res.jobs,
    }
    for doc in load_yaml_documents(path):
        obj = to_object(doc)
        if obj is None:
            logger.debug("skip unsupported kind %s", doc.get("kind"))
            continue
        buckets[doc["kind"]].append(obj)
    return res


# ──────────────────────────────────────────────
# 控制器 → Pod
# ──────────────────────────────────────────────
def _replicas(kind: str, obj) -> int:
    spec = obj.spec
    if kind == "Job":
        n = spec.parallelism
    else:
        n = spec.replicas
    return 1 if n is None else n


def expand_pods(res: ResourceTypes, app: str = "") -> List[client.V1Pod]:
    pods: List[client.V1Pod] = []
    for pod in res.pods:
        if app:
            pod.metadata.labels = dict(pod.metadata.labels or {})
            pod.metadata.labels[LABEL_APP_NAME] = app
        if not pod.metadata.namespace:
            pod.metadata.namespace = "default"
        pods.append(pod)

    controllers = [("Deployment", o) for o in res.deployments] \
        + [("ReplicaSet", o) for o in res.replicasets] \
        + [("StatefulSet", o) for o in res.statefulsets] \
        + [("Job", o) for o in res.jobs]
    for kind, obj in controllers:
        for i in range(_replicas(kind, obj)):
            pods.append(pod_from_template(obj.spec.template,
                                          name=f"{obj.metadata.name}-{i}",
                                          namespace=obj.metadata.namespace,
                                          app=app))
    return pods


# ──────────────────────────────────────────────
# 公开入口
# ──────────────────────────────────────────────
def load_app(name: str, path: str | Path) -> AppResource:
    res = get_objects(path)
    for ds in res.daemonsets:
        ds.metadata.labels = dict(ds.metadata.labels or {})
        ds.metadata.labels[LABEL_APP_NAME] = name
    app = AppResource(name=name, pods=expand_pods(res, app=name),
                      daemonsets=res.daemonsets)
    logger.info("app %s: %d pod(s), %d daemonset(s)",
                name, len(app.pods), len(app.daemonsets))
    return app


def load_custom_cluster(path: str | Path) -> ClusterSnapshot:
    res = get_objects(path)
    if not res.nodes:
        raise ConfigurationError(f"the cluster config ({path}) has no nodes")
    snap = ClusterSnapshot(nodes=res.nodes, pods=expand_pods(res),
                           daemonsets=res.daemonsets)
    logger.info("custom cluster loaded: %s", snap)
    return snap


def load_node_template(path: str | Path) -> client.V1Node:
    """只支持一种新节点；目录里有多个 Node 时取第一个"""
    nodes = get_objects(path).nodes
    if not nodes:
        raise InvalidTemplateError(f"the new node directory({path}) has no nodes")
    if len(nodes) > 1:
        logger.warning("%d nodes found in %s, only %s is used",
                       len(nodes), path, nodes[0].metadata.name)
    node = nodes[0]

    storage_file = Path(path) / NODE_STORAGE_FILE
    if Path(path).is_dir() and storage_file.exists():
        try:
            storage = NodeStorage.from_dict(json.loads(storage_file.read_text(encoding="utf-8")))
        except (OSError, ValueError, KeyError, TypeError) as exc:
            raise ConfigurationError(f"invalid {storage_file}: {exc}") from exc
        set_node_storage(node, storage)
    return node
