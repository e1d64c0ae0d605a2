"""
规划器常量与全局参数
"""
# 新节点搜索上限（一次 run 最多尝试的节点数）
MAX_NUM_NEW_NODE: int = 100

# 新节点命名 / 标记
NEW_NODE_NAME_PREFIX: str = "simulated-node"
LABEL_NEW_NODE: str = "nodeplan/new-node"
LABEL_APP_NAME: str = "nodeplan/app-name"
LABEL_HOSTNAME: str = "kubernetes.io/hostname"

# 本地存储（open-local 风格）注解
ANNO_NODE_LOCAL_STORAGE: str = "nodeplan/node-local-storage"
ANNO_POD_LOCAL_STORAGE: str = "nodeplan/pod-local-storage"
NODE_STORAGE_FILE: str = "storage.json"

# 扩展资源开关：--extended-resources 里出现即启用存储统计
EXTENDED_LOCAL_STORAGE: str = "open-local"

# 占用率上限（百分比），从环境变量读取
ENV_MAX_CPU: str = "MaxCPU"
ENV_MAX_MEMORY: str = "MaxMemory"
ENV_MAX_VG: str = "MaxVG"
DEFAULT_MAX_PERCENT: int = 100

# 资源种类（准入检查顺序固定）
RESOURCE_CPU: str = "cpu"
RESOURCE_MEMORY: str = "memory"
RESOURCE_STORAGE: str = "storage"
RESOURCE_PODS: str = "pods"
