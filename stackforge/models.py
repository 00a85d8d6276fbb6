"""
Core Domain Models Module

Responsibility:
- Define core domain classes for the resource graph
- ResourceNode: a single declared unit of eventual provisioning
- DeferredAttribute: a reference to another node's not-yet-known output
- Join: a string assembled from literals and deferred attributes
- StackOutput: a named (node, attribute) pair surfaced after provisioning
- ValidationIssue: a validation failure found in a stack definition
"""

from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional, Tuple


@dataclass(frozen=True)
class DeferredAttribute:
    """
    Placeholder for "attribute X of node Y", known only after Y is provisioned.

    Any node holding one in its params depends on `node_id`.
    """
    node_id: str
    attribute: str

    def __str__(self) -> str:
        return f"${{{self.node_id}.{self.attribute}}}"


@dataclass(frozen=True)
class Join:
    """
    A string built from literal parts and deferred attributes.

    Join(["s3://", bucket["bucketName"]]) renders to "s3://<bucket name>"
    once the bucket is materialized.
    """
    parts: Tuple[Any, ...]
    delimiter: str = ""

    def __init__(self, parts, delimiter: str = ""):
        object.__setattr__(self, "parts", tuple(parts))
        object.__setattr__(self, "delimiter", delimiter)


@dataclass
class ResourceNode:
    """
    Represents a single node in the resource graph.

    `params` may contain literals, nested lists/dicts, DeferredAttribute and
    Join values. `depends_on` holds explicit ordering-only edges.
    """
    id: str
    kind: str

    # Declared input parameters (literal or deferred)
    params: dict = field(default_factory=dict)

    # Explicit dependency edges (node ids), in insertion order
    depends_on: List[str] = field(default_factory=list)

    # Position in the stack's declaration order (tie-break for resolution)
    index: int = 0

    def references(self) -> List[DeferredAttribute]:
        """All deferred attributes held anywhere in params, in encounter order."""
        return list(iter_references(self.params))

    def dependencies(self) -> List[str]:
        """Explicit and attribute-implied dependency ids, deduplicated."""
        seen = []
        for dep_id in list(self.depends_on) + [ref.node_id for ref in self.references()]:
            if dep_id not in seen:
                seen.append(dep_id)
        return seen


@dataclass(frozen=True)
class StackOutput:
    """A named, exported (node, attribute) pair."""
    name: str
    node_id: str
    attribute: str
    description: Optional[str] = None
    export_name: Optional[str] = None


@dataclass
class ValidationIssue:
    """
    Represents a validation failure in the stack definition.

    Returned by the validator; require_valid() wraps a non-empty list in a
    StackValidationError.
    """
    node_id: str
    path: str  # Dot-path like "params.subnetIds" or "depends_on"
    reason: str  # Human-readable explanation
    options: Optional[list] = None  # Available choices if applicable

    def to_dict(self) -> dict:
        issue = {"node_id": self.node_id, "path": self.path, "reason": self.reason}
        if self.options:
            issue["options"] = list(self.options)
        return issue


def iter_references(value: Any) -> Iterator[DeferredAttribute]:
    """Walk a parameter value and yield every DeferredAttribute inside it."""
    if isinstance(value, DeferredAttribute):
        yield value
    elif isinstance(value, Join):
        for part in value.parts:
            yield from iter_references(part)
    elif isinstance(value, dict):
        for item in value.values():
            yield from iter_references(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_references(item)
