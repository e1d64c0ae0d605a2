import logging

import urllib3
from kubernetes import client, config
from kubernetes.client.rest import ApiException

from nodeplan.errors import ConfigurationError
from nodeplan.schedule.resource_model import ClusterSnapshot

urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

# 已结束的 Pod 不占资源
FINISHED_PHASES = ("Succeeded", "Failed")


class ClusterMonitor:
    """通过Kubernetes API读取真实集群，生成一次性快照"""

    def __init__(self, kube_config: str | None = None, api_client=None):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        if api_client is None:
            try:
                config.load_kube_config(kube_config)
            except (config.ConfigException, OSError) as exc:
                raise ConfigurationError(f"failed to load kubeconfig {kube_config}: {exc}") from exc
            self.logger.info(f"在本地连接到远程集群: {kube_config}")

        self.core_v1 = client.CoreV1Api(api_client)
        self.apps_v1 = client.AppsV1Api(api_client)

    def list_nodes(self):
        return self.core_v1.list_node().items

    def list_pods(self):
        """
        全部命名空间的存活 Pod。
        DaemonSet 管理的 Pod 跳过：模拟时由 DaemonSet 重新展开到每个节点，避免重复计数。
        """
        out = []
        for p in self.core_v1.list_pod_for_all_namespaces().items:
            if p.status is not None and p.status.phase in FINISHED_PHASES:
                continue
            owners = p.metadata.owner_references or []
            if any(o.kind == "DaemonSet" for o in owners):
                continue
            out.append(p)
        return out

    def list_daemonsets(self):
        return self.apps_v1.list_daemon_set_for_all_namespaces().items

    def snapshot(self) -> ClusterSnapshot:
        try:
            snap = ClusterSnapshot(nodes=self.list_nodes(),
                                   pods=self.list_pods(),
                                   daemonsets=self.list_daemonsets())
        except ApiException as e:
            self.logger.error(f"读取集群状态失败: {e.status} {e.reason}")
            raise ConfigurationError(f"failed to read cluster state: {e.reason}") from e
        self.logger.info(f"集群快照: {snap}")
        return snap
