"""
Output Exporter Module

Responsibility:
- Collect declared stack outputs after a deployment run
- Expose them as a flat name -> value mapping
- Flag the result incomplete when an output's node did not materialize

An output tied to a failed or skipped node is never surfaced, not even
with a default value.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict

from stackforge.deployer import DeploymentReport, NodeState

logger = logging.getLogger(__name__)


@dataclass
class ExportResult:
    """Exported outputs plus the names that could not be surfaced."""
    values: Dict[str, Any] = field(default_factory=dict)
    missing: Dict[str, str] = field(default_factory=dict)  # output name -> reason
    export_names: Dict[str, str] = field(default_factory=dict)  # output name -> export name

    @property
    def complete(self) -> bool:
        return not self.missing

    def exports(self) -> Dict[str, Any]:
        """Values keyed by export name, for outputs declared with one."""
        return {
            export_name: self.values[name]
            for name, export_name in self.export_names.items()
            if name in self.values
        }

    def to_dict(self) -> dict:
        return {"complete": self.complete, "values": dict(self.values), "missing": dict(self.missing)}


def export_outputs(graph, report: DeploymentReport) -> ExportResult:
    """Surface every declared output whose node materialized with that attribute."""
    result = ExportResult()

    for output in graph.outputs:
        if output.export_name:
            result.export_names[output.name] = output.export_name

        state = report.state_of(output.node_id)
        if state != NodeState.MATERIALIZED:
            result.missing[output.name] = f"node '{output.node_id}' is {state.value}"
            continue

        node_outputs = report.outputs.get(output.node_id, {})
        if output.attribute not in node_outputs:
            result.missing[output.name] = (
                f"node '{output.node_id}' produced no attribute '{output.attribute}'"
            )
            continue

        result.values[output.name] = node_outputs[output.attribute]

    if result.missing:
        logger.warning("Stack %s exported partially; missing: %s", graph.name, ", ".join(result.missing))

    return result
