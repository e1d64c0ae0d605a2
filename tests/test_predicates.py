from kubernetes.client import (V1Affinity, V1NodeAffinity, V1NodeSelector,
                               V1NodeSelectorRequirement, V1NodeSelectorTerm,
                               V1Taint, V1Toleration)

from factories import make_node, make_pod
from nodeplan.schedule.predicates import (find_untolerated_taint,
                                          matches_node_selector_and_affinity,
                                          node_should_run_pod,
                                          toleration_tolerates)


def _with_affinity(pod, *exprs):
    pod.spec.affinity = V1Affinity(node_affinity=V1NodeAffinity(
        required_during_scheduling_ignored_during_execution=V1NodeSelector(
            node_selector_terms=[V1NodeSelectorTerm(match_expressions=list(exprs))])))
    return pod


def test_untolerated_taint_blocks():
    node = make_node(taints=[("dedicated", "gpu", "NoSchedule")])
    pod = make_pod()
    assert find_untolerated_taint(node, pod).key == "dedicated"
    assert not node_should_run_pod(node, pod)


def test_matching_toleration_allows():
    node = make_node(taints=[("dedicated", "gpu", "NoSchedule")])
    pod = make_pod(tolerations=[("dedicated", "gpu", "NoSchedule")])
    assert find_untolerated_taint(node, pod) is None


def test_prefer_no_schedule_is_ignored():
    node = make_node(taints=[("soft", "x", "PreferNoSchedule")])
    assert node_should_run_pod(node, make_pod())


def test_empty_key_exists_tolerates_everything():
    tol = V1Toleration(operator="Exists")
    assert toleration_tolerates(tol, V1Taint(key="a", value="b", effect="NoExecute"))


def test_node_selector():
    node = make_node(labels={"zone": "a"})
    assert matches_node_selector_and_affinity(make_pod(node_selector={"zone": "a"}), node)
    assert not matches_node_selector_and_affinity(make_pod(node_selector={"zone": "b"}), node)


def test_required_affinity_operators():
    node = make_node(labels={"zone": "a", "cores": "8"})
    ok = _with_affinity(make_pod(),
                        V1NodeSelectorRequirement(key="zone", operator="In", values=["a", "b"]),
                        V1NodeSelectorRequirement(key="cores", operator="Gt", values=["4"]),
                        V1NodeSelectorRequirement(key="gpu", operator="DoesNotExist"))
    assert matches_node_selector_and_affinity(ok, node)

    bad = _with_affinity(make_pod(),
                         V1NodeSelectorRequirement(key="zone", operator="NotIn", values=["a"]))
    assert not matches_node_selector_and_affinity(bad, node)
