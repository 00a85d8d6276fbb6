"""
Attribute Binding Module

Responsibility:
- Hold the concrete outputs of materialized nodes
- Substitute those outputs into the params of downstream nodes
- Refuse to bind a node while any of its references is still unresolved

Bound params never contain DeferredAttribute or Join placeholders.
"""

import logging
from typing import Any, Dict, List

from stackforge.errors import UnresolvedAttributeError
from stackforge.models import DeferredAttribute, Join, ResourceNode

logger = logging.getLogger(__name__)


class AttributeBinder:
    """Outputs recorded per node id, and binding of params against them."""

    def __init__(self):
        self._outputs: Dict[str, Dict[str, Any]] = {}

    def record(self, node_id: str, outputs: Dict[str, Any]):
        """Store the concrete output attributes of a materialized node."""
        self._outputs[node_id] = dict(outputs or {})
        logger.debug("Recorded outputs for %s: %s", node_id, sorted(self._outputs[node_id]))

    def outputs_of(self, node_id: str) -> Dict[str, Any]:
        return dict(self._outputs.get(node_id, {}))

    def is_recorded(self, node_id: str) -> bool:
        return node_id in self._outputs

    def unresolved(self, node: ResourceNode) -> List[str]:
        """References of `node` that cannot be substituted yet, as "node.attribute"."""
        missing = []
        for ref in node.references():
            if ref.attribute not in self._outputs.get(ref.node_id, {}):
                label = f"{ref.node_id}.{ref.attribute}"
                if label not in missing:
                    missing.append(label)
        return missing

    def is_ready(self, node: ResourceNode) -> bool:
        return not self.unresolved(node)

    def bind(self, node: ResourceNode) -> dict:
        """
        Return a copy of node.params with every reference substituted.

        Raises UnresolvedAttributeError if any referenced output is not
        recorded yet.
        """
        missing = self.unresolved(node)
        if missing:
            raise UnresolvedAttributeError(node.id, missing)
        return self._substitute(node.params)

    def _substitute(self, value: Any) -> Any:
        if isinstance(value, DeferredAttribute):
            return self._outputs[value.node_id][value.attribute]
        if isinstance(value, Join):
            return value.delimiter.join(str(self._substitute(part)) for part in value.parts)
        if isinstance(value, dict):
            return {key: self._substitute(item) for key, item in value.items()}
        if isinstance(value, list):
            return [self._substitute(item) for item in value]
        if isinstance(value, tuple):
            return tuple(self._substitute(item) for item in value)
        return value
