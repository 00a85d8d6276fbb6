"""
Pytest configuration and shared fixtures for StackForge tests.
"""

import pytest

from stackforge.config import StackConfig
from stackforge.graph import StackGraph
from stackforge.kinds import ResourceKind, default_registry
from stackforge.local_engine import LocalEngine
from stackforge.mlflow_stack import build_mlflow_stack


@pytest.fixture
def registry():
    """Built-in kinds plus a generic test kind exposing x and y."""
    registry = default_registry()
    registry.register(ResourceKind(name="Thing", type_name="Test::Thing", outputs=("x", "y")))
    return registry


@pytest.fixture
def graph(registry):
    return StackGraph("test-stack", registry=registry)


@pytest.fixture
def config():
    return StackConfig(account="123456789012", region="eu-west-1")


@pytest.fixture
def mlflow_graph(config):
    return build_mlflow_stack(config)


@pytest.fixture
def engine(config):
    return LocalEngine(account=config.account, region=config.region)


class RecordingEngine:
    """Engine returning fixed outputs per node and recording the params it saw."""

    def __init__(self, outputs=None, fail_on=()):
        self.outputs = outputs or {}
        self.fail_on = set(fail_on)
        self.calls = []

    def materialize(self, node_id, kind, params):
        self.calls.append((node_id, kind, params))
        if node_id in self.fail_on:
            raise RuntimeError(f"boom: {node_id}")
        return self.outputs.get(node_id, {"x": f"{node_id}-x", "y": f"{node_id}-y"})


@pytest.fixture
def recording_engine():
    return RecordingEngine
