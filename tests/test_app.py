import json
import textwrap

import pytest

from nodeplan.app import build_parser, main

NODE = """
apiVersion: v1
kind: Node
metadata:
  name: {name}
status:
  allocatable: {{cpu: "2", memory: 4Gi, pods: "110"}}
"""

POD = """
apiVersion: v1
kind: Pod
metadata:
  name: {name}
spec:
  containers:
    - name: main
      image: nginx
      resources:
        requests: {{cpu: {cpu}, memory: 1Gi}}
"""


@pytest.fixture
def workspace(tmp_path):
    (tmp_path / "cluster").mkdir()
    (tmp_path / "cluster" / "node.yaml").write_text(NODE.format(name="n1"))
    (tmp_path / "newnode").mkdir()
    (tmp_path / "newnode" / "node.yaml").write_text(NODE.format(name="tpl"))
    for app, cpu in (("small", "500m"), ("large", "1500m")):
        (tmp_path / app).mkdir()
        (tmp_path / app / "pod.yaml").write_text(
            "---".join(POD.format(name=f"{app}-{i}", cpu=cpu) for i in range(2)))
    plan = tmp_path / "plan.yaml"
    plan.write_text(textwrap.dedent("""
        kind: Plan
        spec:
          cluster: {customConfig: cluster}
          appList:
            - {name: small, path: small}
            - {name: large, path: large}
          newNode: newnode
    """))
    return tmp_path


def test_parser_defaults():
    args = build_parser().parse_args(["-f", "plan.yaml"])
    assert args.max_new_nodes == 100
    assert args.apps is None
    assert not args.log


def test_success_writes_report(workspace):
    out = workspace / "report.json"
    code = main(["-f", str(workspace / "plan.yaml"), "--apps", "small", "--output", str(out)])
    assert code == 0
    report = json.loads(out.read_text(encoding="utf-8"))
    assert report["node_count"] == 0
    assert report["occupancy"]["cpu"]["percent"] == 50


def test_all_apps_need_new_nodes(workspace, capsys):
    code = main(["-f", str(workspace / "plan.yaml")])
    assert code == 0
    report = json.loads(capsys.readouterr().out)
    assert report["state"] == "Success"
    # 500m*2 + 1500m*2 = 4000m：n1 放 small-0/small-1 → 再要 2 个 2 核节点
    assert report["node_count"] == 2


def test_exhausted_exit_code(workspace, capsys):
    code = main(["-f", str(workspace / "plan.yaml"), "--apps", "large", "--max-new-nodes", "1"])
    assert code == 2
    assert json.loads(capsys.readouterr().out)["state"] == "Exhausted"


def test_configuration_error_exit_code(tmp_path):
    assert main(["-f", str(tmp_path / "missing.yaml")]) == 1
