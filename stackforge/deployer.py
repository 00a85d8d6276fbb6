"""
Deployment Driver Module

Responsibility:
- Drive an external provisioning engine through a resolved graph
- Bind every node's params before handing it to the engine
- Track per-node state: PENDING -> MATERIALIZED | FAILED | SKIPPED
- Report materialization failures with node id, kind and attempted params

State transitions per node:
PENDING → MATERIALIZED (engine returned outputs)
PENDING → FAILED (engine raised)
PENDING → SKIPPED (a dependency failed or was skipped, or the run stopped)

The driver performs NO retries and NO rollback; that policy belongs to the
caller.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

from stackforge.binding import AttributeBinder
from stackforge.errors import MaterializationFailure

logger = logging.getLogger(__name__)


class ProvisioningEngine(Protocol):
    """External engine that turns a bound node into a real resource."""

    def materialize(self, node_id: str, kind: str, params: dict) -> Dict[str, Any]:
        ...


class NodeState(str, Enum):
    PENDING = "PENDING"
    MATERIALIZED = "MATERIALIZED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


@dataclass
class DeploymentReport:
    """Outcome of a deployment run."""
    stack_name: str
    order: List[str] = field(default_factory=list)
    states: Dict[str, NodeState] = field(default_factory=dict)
    outputs: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    failures: List[MaterializationFailure] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return all(state == NodeState.MATERIALIZED for state in self.states.values())

    def state_of(self, node_id: str) -> NodeState:
        return self.states.get(node_id, NodeState.PENDING)

    def failure_for(self, node_id: str) -> Optional[MaterializationFailure]:
        for failure in self.failures:
            if failure.node_id == node_id:
                return failure
        return None

    def raise_for_failure(self):
        """Raise the first recorded MaterializationFailure, if any."""
        if self.failures:
            raise self.failures[0]

    def to_dict(self) -> dict:
        return {
            "stack": self.stack_name,
            "order": list(self.order),
            "states": {node_id: state.value for node_id, state in self.states.items()},
            # Bound params can carry secret values
            "failures": [
                {key: value for key, value in failure.details.items() if key != "params"}
                for failure in self.failures
            ],
        }


def _consumed_attributes(graph) -> Dict[str, List[str]]:
    """Attributes of each node that other nodes or stack outputs read."""
    consumed: Dict[str, List[str]] = {node.id: [] for node in graph.nodes}
    pairs = [(ref.node_id, ref.attribute) for node in graph.nodes for ref in node.references()]
    pairs += [(output.node_id, output.attribute) for output in graph.outputs]
    for node_id, attribute in pairs:
        if attribute not in consumed[node_id]:
            consumed[node_id].append(attribute)
    return consumed


def deploy(graph, engine: ProvisioningEngine, stop_on_failure: bool = False) -> DeploymentReport:
    """
    Materialize every node of `graph` through `engine`, in resolved order.

    A node is only handed to the engine once all of its dependencies are
    MATERIALIZED; dependents of a failed node are SKIPPED. With
    `stop_on_failure`, every node after the first failure is SKIPPED.
    """
    order = graph.resolve()
    report = DeploymentReport(
        stack_name=graph.name,
        order=order,
        states={node_id: NodeState.PENDING for node_id in order},
    )
    binder = AttributeBinder()
    consumed = _consumed_attributes(graph)
    halted = False

    logger.info("Deploying stack %s (%d nodes)", graph.name, len(order))

    for node_id in order:
        node = graph.node(node_id)

        if halted:
            report.states[node_id] = NodeState.SKIPPED
            continue

        blocked = [dep_id for dep_id in node.dependencies()
                   if report.states[dep_id] != NodeState.MATERIALIZED]
        if blocked:
            report.states[node_id] = NodeState.SKIPPED
            logger.warning("Skipping %s: dependencies not materialized: %s", node_id, ", ".join(blocked))
            continue

        params = binder.bind(node)

        try:
            outputs = engine.materialize(node_id, node.kind, params)
            missing = [attribute for attribute in consumed[node_id] if attribute not in (outputs or {})]
            if missing:
                raise ValueError(f"engine returned no value for {', '.join(missing)}")
        except Exception as exc:
            failure = MaterializationFailure(node_id, node.kind, params, exc)
            report.failures.append(failure)
            report.states[node_id] = NodeState.FAILED
            logger.error("Materialization of %s (%s) failed: %s", node_id, node.kind, exc)
            if stop_on_failure:
                halted = True
            continue

        binder.record(node_id, outputs)
        report.outputs[node_id] = binder.outputs_of(node_id)
        report.states[node_id] = NodeState.MATERIALIZED
        logger.info("Materialized %s (%s)", node_id, node.kind)

    if report.failures:
        logger.warning("Stack %s deployed with %d failure(s)", graph.name, len(report.failures))
    else:
        logger.info("Stack %s deployed", graph.name)

    return report
