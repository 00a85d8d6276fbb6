"""
Resource Graph Builder Module

Responsibility:
- Accept node declarations whose params may embed deferred references
- Own the stack namespace (node ids, output names) and reject duplicates
- Reject cycles and unknown output attributes at declaration time
- Record explicit ordering-only dependencies and stack outputs

This is PURE in-memory bookkeeping.
NO network calls, NO provisioning.
"""

import copy
import logging
from typing import Dict, Iterable, Iterator, List, Optional, Union

from stackforge.errors import (
    CyclicDependencyError,
    DuplicateIdentifierError,
    UnknownAttributeError,
    UnknownKindError,
    UnknownNodeError,
)
from stackforge.kinds import KindRegistry, ResourceKind, default_registry
from stackforge.models import DeferredAttribute, ResourceNode, StackOutput
from stackforge.resolver import resolve, resolve_stages

logger = logging.getLogger(__name__)


class NodeHandle:
    """
    Handle returned by declare_node().

    handle["vpcId"] and handle.attr("vpcId") both produce a DeferredAttribute
    checked against the node's kind.
    """

    def __init__(self, graph: "StackGraph", node: ResourceNode):
        self._graph = graph
        self._node = node

    @property
    def id(self) -> str:
        return self._node.id

    @property
    def kind(self) -> str:
        return self._node.kind

    @property
    def node(self) -> ResourceNode:
        return self._node

    def attr(self, attribute: str) -> DeferredAttribute:
        return self._graph.reference(self, attribute)

    __getitem__ = attr

    def __repr__(self) -> str:
        return f"NodeHandle({self.id!r}, kind={self.kind!r})"


NodeRef = Union[NodeHandle, ResourceNode, str]


def _node_id(node: NodeRef) -> str:
    if isinstance(node, (NodeHandle, ResourceNode)):
        return node.id
    return node


class StackGraph:
    """
    Named collection of resource nodes and outputs defined together.

    Nodes are kept in declaration order; that order is the tie-break used by
    the resolver.
    """

    def __init__(self, name: str, registry: Optional[KindRegistry] = None):
        self.name = name
        self.registry = registry or default_registry()
        self._nodes: Dict[str, ResourceNode] = {}
        self._outputs: Dict[str, StackOutput] = {}

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def declare_node(self, kind: str, node_id: str, params: Optional[dict] = None,
                     depends_on: Iterable[NodeRef] = ()) -> NodeHandle:
        """
        Declare a node of `kind` under `node_id`.

        Raises DuplicateIdentifierError, UnknownKindError,
        UnknownAttributeError or CyclicDependencyError. A failed declaration
        leaves the graph unchanged.
        """
        if node_id in self._nodes:
            raise DuplicateIdentifierError(node_id)

        contract = self.registry.get(kind)
        if contract is None:
            raise UnknownKindError(kind, self.registry.names())

        node = ResourceNode(
            id=node_id,
            kind=kind,
            params=copy.deepcopy(params or {}),
            depends_on=[],
            index=len(self._nodes),
        )
        for dep in depends_on:
            dep_id = _node_id(dep)
            if dep_id not in node.depends_on:
                node.depends_on.append(dep_id)

        self._check_own_references(node)
        self._check_forward_references(node_id, contract)

        for dep_id in node.dependencies():
            path = self._find_path(dep_id, node_id)
            if path is not None:
                cycle = [node_id] + path
                raise CyclicDependencyError(
                    f"Declaring '{node_id}' closes the cycle {' -> '.join(cycle)}", cycle
                )

        self._nodes[node_id] = node
        logger.debug("Declared node %s (%s) depending on %s", node_id, kind, node.dependencies())
        return NodeHandle(self, node)

    def _check_own_references(self, node: ResourceNode):
        """Reject self references and unknown attributes on already-declared targets."""
        if node.id in node.depends_on:
            raise CyclicDependencyError(f"Node '{node.id}' depends on itself", [node.id, node.id])

        for ref in node.references():
            if ref.node_id == node.id:
                raise CyclicDependencyError(
                    f"Node '{node.id}' references its own output '{ref.attribute}'",
                    [node.id, node.id],
                )
            target = self._nodes.get(ref.node_id)
            if target is not None:
                self._check_attribute(target, ref.attribute)

    def _check_forward_references(self, node_id: str, contract: ResourceKind):
        """Validate attributes that earlier nodes already reference on `node_id`."""
        for existing in self._nodes.values():
            for ref in existing.references():
                if ref.node_id == node_id and not contract.has_output(ref.attribute):
                    raise UnknownAttributeError(node_id, contract.name, ref.attribute, list(contract.outputs))

    def _check_attribute(self, node: ResourceNode, attribute: str):
        contract = self.registry.get(node.kind)
        if contract is None or not contract.has_output(attribute):
            available = list(contract.outputs) if contract else []
            raise UnknownAttributeError(node.id, node.kind, attribute, available)

    def _find_path(self, start: str, target: str) -> Optional[List[str]]:
        """Depth-first search along dependency edges; returns start..target or None."""
        stack = [(start, [start])]
        visited = set()

        while stack:
            current, path = stack.pop()
            if current == target:
                return path
            if current in visited:
                continue
            visited.add(current)

            node = self._nodes.get(current)
            if node is None:
                continue
            for dep_id in node.dependencies():
                if dep_id not in visited:
                    stack.append((dep_id, path + [dep_id]))

        return None

    def reference(self, node: NodeRef, attribute: str) -> DeferredAttribute:
        """
        Build a DeferredAttribute for an output attribute of a declared node.

        Raises UnknownNodeError if the node is not declared and
        UnknownAttributeError if its kind has no such output.
        """
        target = self.node(_node_id(node))
        self._check_attribute(target, attribute)
        return DeferredAttribute(target.id, attribute)

    def add_explicit_dependency(self, source: NodeRef, target: NodeRef):
        """
        Make `source` depend on `target` without a parameter reference.

        Used for ordering constraints the params do not express, e.g. a
        database cluster that only names its subnet group.
        """
        source_node = self.node(_node_id(source))
        target_node = self.node(_node_id(target))

        if source_node.id == target_node.id:
            raise CyclicDependencyError(
                f"Node '{source_node.id}' cannot depend on itself", [source_node.id, source_node.id]
            )

        path = self._find_path(target_node.id, source_node.id)
        if path is not None:
            cycle = [source_node.id] + path
            raise CyclicDependencyError(
                f"Dependency {source_node.id} -> {target_node.id} closes the cycle {' -> '.join(cycle)}",
                cycle,
            )

        if target_node.id not in source_node.depends_on:
            source_node.depends_on.append(target_node.id)
            logger.debug("Added explicit dependency %s -> %s", source_node.id, target_node.id)

    def add_output(self, name: str, node: NodeRef, attribute: str,
                   description: Optional[str] = None, export_name: Optional[str] = None) -> StackOutput:
        """Declare a stack output surfaced after provisioning."""
        if name in self._outputs:
            raise DuplicateIdentifierError(name, namespace="output")

        ref = self.reference(node, attribute)
        output = StackOutput(
            name=name,
            node_id=ref.node_id,
            attribute=ref.attribute,
            description=description,
            export_name=export_name,
        )
        self._outputs[name] = output
        return output

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def nodes(self) -> List[ResourceNode]:
        """Nodes in declaration order."""
        return list(self._nodes.values())

    @property
    def outputs(self) -> List[StackOutput]:
        return list(self._outputs.values())

    def node(self, node_id: str) -> ResourceNode:
        """Retrieve a declared node or raise UnknownNodeError."""
        node = self._nodes.get(node_id)
        if node is None:
            raise UnknownNodeError(node_id)
        return node

    def get(self, node_id: str) -> Optional[ResourceNode]:
        return self._nodes.get(node_id)

    def kind_of(self, node_id: str) -> Optional[ResourceKind]:
        node = self._nodes.get(node_id)
        return self.registry.get(node.kind) if node else None

    def dependencies_of(self, node_id: str) -> List[str]:
        """Direct dependencies: explicit edges plus attribute-implied ones."""
        return self.node(node_id).dependencies()

    def dependents_of(self, node_id: str) -> List[str]:
        """Nodes that directly depend on `node_id`, in declaration order."""
        self.node(node_id)
        return [node.id for node in self._nodes.values() if node_id in node.dependencies()]

    def resolve(self) -> List[str]:
        """Deployment order; see stackforge.resolver.resolve."""
        return resolve(self)

    def resolve_stages(self) -> List[List[str]]:
        return resolve_stages(self)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[ResourceNode]:
        return iter(self.nodes)
