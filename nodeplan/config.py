"""
config.py
~~~~~~~~~
规划配置文件（YAML）：

    apiVersion: nodeplan/v1alpha1
    kind: Plan
    spec:
      cluster:
        customConfig: ./cluster        # 或 kubeConfig: ~/.kube/config
      appList:
        - name: web
          path: ./apps/web
      newNode: ./newnode

相对路径一律相对配置文件所在目录解析。
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import yaml

from nodeplan.errors import ConfigurationError

logger = logging.getLogger(__name__)

API_VERSION = "nodeplan/v1alpha1"
KIND = "Plan"


@dataclass
class AppInfo:
    name: str
    path: str
    chart: bool = False


@dataclass
class PlanConfig:
    new_node: str
    kube_config: Optional[str] = None
    custom_config: Optional[str] = None
    apps: List[AppInfo] = field(default_factory=list)

    def select_apps(self, names: List[str] | None) -> List[AppInfo]:
        """按名字挑选要部署的应用；None 表示全部"""
        if names is None:
            return list(self.apps)
        known = {a.name: a for a in self.apps}
        missing = [n for n in names if n not in known]
        if missing:
            raise ConfigurationError(f"unknown app(s): {', '.join(missing)}")
        return [known[n] for n in names]

    # —— 校验 —— #
    def validate(self):
        if bool(self.kube_config) == bool(self.custom_config):
            raise ConfigurationError("only one of values of both kubeConfig and customConfig must exist")
        cluster_path = self.kube_config or self.custom_config
        if not Path(cluster_path).exists():
            raise ConfigurationError(f"invalid path of cluster config: {cluster_path}")

        if not self.new_node:
            raise ConfigurationError("newNode must be set")
        if not Path(self.new_node).exists():
            raise ConfigurationError(f"invalid path of newNode: {self.new_node}")

        seen = set()
        for app in self.apps:
            if not app.name:
                raise ConfigurationError("app name must not be empty")
            if app.name in seen:
                raise ConfigurationError(f"duplicate app name: {app.name}")
            seen.add(app.name)
            if app.chart:
                raise ConfigurationError(f"app {app.name}: helm charts are not supported")
            if not Path(app.path).exists():
                raise ConfigurationError(f"invalid path of {app.name} app: {app.path}")


def _resolve(base: Path, value: Optional[str]) -> Optional[str]:
    if not value:
        return value
    p = Path(value).expanduser()
    if not p.is_absolute():
        p = base / p
    return str(p)


def load_plan_config(path: str | Path) -> PlanConfig:
    path = Path(path)
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"failed to read plan config {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigurationError(f"plan config {path} is not a mapping")

    if raw.get("kind", KIND) != KIND:
        raise ConfigurationError(f"unexpected kind {raw.get('kind')!r}, want {KIND}")
    if raw.get("apiVersion", API_VERSION) != API_VERSION:
        logger.warning("unknown apiVersion %s, parsing as %s", raw.get("apiVersion"), API_VERSION)

    spec = raw.get("spec") or {}
    cluster = spec.get("cluster") or {}
    base = path.parent

    apps = []
    for item in spec.get("appList") or []:
        if not isinstance(item, dict):
            raise ConfigurationError(f"invalid appList entry: {item!r}")
        apps.append(AppInfo(name=str(item.get("name") or ""),
                            path=_resolve(base, item.get("path")) or "",
                            chart=bool(item.get("chart", False))))

    cfg = PlanConfig(new_node=_resolve(base, spec.get("newNode")) or "",
                     kube_config=_resolve(base, cluster.get("kubeConfig")),
                     custom_config=_resolve(base, cluster.get("customConfig")),
                     apps=apps)
    cfg.validate()
    return cfg
