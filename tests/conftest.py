import pytest

from factories import make_node
from nodeplan.schedule.model import Thresholds


@pytest.fixture
def template():
    return make_node(name="template", cpu="2", memory="4Gi")


@pytest.fixture
def no_ceiling():
    return Thresholds()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ("MaxCPU", "MaxMemory", "MaxVG"):
        monkeypatch.delenv(key, raising=False)
