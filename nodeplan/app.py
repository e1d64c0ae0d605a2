import argparse
import json
import logging
import os
import signal
import sys
import threading
import time

from nodeplan.apply import Applier
from nodeplan.config import load_plan_config
from nodeplan.errors import ConfigurationError, OracleError
from nodeplan.schedule.constants import MAX_NUM_NEW_NODE
from nodeplan.schedule.planner import SearchState

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"

EXIT_CODES = {
    SearchState.SUCCESS: 0,
    SearchState.STRUCTURALLY_FAILED: 2,
    SearchState.EXHAUSTED: 2,
    SearchState.CANCELLED: 130,
}
EXIT_ERROR = 1


def _split(value):
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nodeplan",
                                     description="计算部署一组应用需要新增多少个同规格节点")
    parser.add_argument("-f", "--plan-config", required=True, help="规划配置文件路径（YAML）")
    parser.add_argument("--extended-resources", type=str, default="",
                        help="逗号分隔；open-local 开启本地存储统计，其余视为扩展资源名")
    parser.add_argument("--apps", type=str, default=None, help="逗号分隔，只部署这些应用（默认全部）")
    parser.add_argument("--max-new-nodes", type=int, default=MAX_NUM_NEW_NODE, help="最多尝试的新节点数")
    parser.add_argument("--output", type=str, default=None, help="报告写到文件（默认 stdout）")
    parser.add_argument("--log", action="store_true", help="启用日志记录到文件")
    parser.add_argument("-v", "--verbose", action="store_true", help="DEBUG 级别日志")
    return parser


def setup_logging(to_file: bool, verbose: bool):
    level = logging.DEBUG if verbose else logging.INFO
    if to_file:
        os.makedirs("logs", exist_ok=True)
        log_file = time.strftime("logs/%Y%m%d-%H%M%S.log")
        logging.basicConfig(filename=log_file, level=level, encoding="utf-8", format=LOG_FORMAT)
    else:
        logging.basicConfig(level=level, format=LOG_FORMAT)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log, args.verbose)

    # Ctrl-C 只置位，循环在两轮之间退出
    cancel = threading.Event()
    previous = signal.signal(signal.SIGINT, lambda signum, frame: cancel.set())

    try:
        cfg = load_plan_config(args.plan_config)
        applier = Applier(cfg,
                          extended_resources=_split(args.extended_resources),
                          app_names=_split(args.apps) if args.apps is not None else None,
                          max_new_nodes=args.max_new_nodes,
                          cancel_event=cancel)
        result, report = applier.run()
    except (ConfigurationError, OracleError) as e:
        logging.error(f"{e.__class__.__name__}: {e}")
        return EXIT_ERROR
    finally:
        signal.signal(signal.SIGINT, previous)

    text = json.dumps(report.to_dict(), indent=2, ensure_ascii=False)
    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(text + "\n")
        logging.info(f"report written to {args.output}")
    else:
        print(text)
    return EXIT_CODES[result.state]


if __name__ == "__main__":
    sys.exit(main())
