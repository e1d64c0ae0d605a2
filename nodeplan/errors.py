"""
errors.py
~~~~~~~~~
规划过程中会直接抛出的异常。结构性不可行 / 准入拒绝 / 搜索耗尽
都不是异常，而是 PlanResult 的终态。
"""


class ConfigurationError(Exception):
    """配置错误：plan 文件、节点模板、占用率上限等非法。"""


class InvalidTemplateError(ConfigurationError):
    """新节点模板缺失，或者解析不到任何 Node 对象。"""


class OracleError(Exception):
    """调度模拟本身失败；确定性错误，不重试。"""
