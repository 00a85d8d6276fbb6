"""
Stack Error Classes

Responsibility:
- Typed exceptions for every structural failure of a stack definition
- Wrap external materialization failures with the context a caller needs

Structural errors (cycles, duplicate ids, unknown attributes) are raised at
declaration or resolution time. Nothing is silently dropped.
"""

from typing import Any, Dict, List, Optional


class StackError(Exception):
    """
    Base class for all stack errors.

    Carries a stable error code and a details mapping so callers (CLI, HTTP
    layer) can report errors without parsing messages.
    """

    def __init__(self, code: str, message: str, details: Dict[str, Any] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}


class CyclicDependencyError(StackError):
    """Raised when a declaration or an explicit edge would close a cycle."""

    def __init__(self, message: str, cycle: List[str]):
        super().__init__("CYCLIC_DEPENDENCY", message, {"cycle": list(cycle)})
        self.cycle = list(cycle)


class DuplicateIdentifierError(StackError):
    """Raised when a node id or output name collides within the stack."""

    def __init__(self, identifier: str, namespace: str = "node"):
        super().__init__(
            "DUPLICATE_IDENTIFIER",
            f"Duplicate {namespace} identifier '{identifier}'",
            {"identifier": identifier, "namespace": namespace},
        )
        self.identifier = identifier


class UnknownAttributeError(StackError):
    """Raised when an attribute is not an output of the node's kind."""

    def __init__(self, node_id: str, kind: str, attribute: str, available: List[str]):
        super().__init__(
            "UNKNOWN_ATTRIBUTE",
            f"Kind '{kind}' of node '{node_id}' has no output attribute '{attribute}'",
            {"node_id": node_id, "kind": kind, "attribute": attribute, "available": list(available)},
        )
        self.node_id = node_id
        self.attribute = attribute


class UnknownNodeError(StackError):
    """Raised when a reference or dependency names a node that was never declared."""

    def __init__(self, node_id: str, referenced_by: Optional[str] = None):
        message = f"Node '{node_id}' is not declared in the stack"
        if referenced_by:
            message += f" (referenced by '{referenced_by}')"
        super().__init__("UNKNOWN_NODE", message, {"node_id": node_id, "referenced_by": referenced_by})
        self.node_id = node_id


class UnknownKindError(StackError):
    """Raised when a node is declared with a kind the registry does not know."""

    def __init__(self, kind: str, available: List[str]):
        super().__init__(
            "UNKNOWN_KIND",
            f"Unknown resource kind '{kind}'",
            {"kind": kind, "available": list(available)},
        )
        self.kind = kind


class UnresolvedAttributeError(StackError):
    """
    Raised when a node is bound before all of its references are concrete.

    Signals an ordering bug in the caller, not a user error.
    """

    def __init__(self, node_id: str, unresolved: List[str]):
        super().__init__(
            "UNRESOLVED_ATTRIBUTE",
            f"Node '{node_id}' has unresolved references: {', '.join(unresolved)}",
            {"node_id": node_id, "unresolved": list(unresolved)},
        )
        self.node_id = node_id
        self.unresolved = list(unresolved)


class StackValidationError(StackError):
    """Raised by require_valid() when validation reports issues."""

    def __init__(self, issues: list):
        super().__init__(
            "VALIDATION_ERROR",
            f"Stack has {len(issues)} validation issue(s)",
            {"issues": [issue.to_dict() for issue in issues]},
        )
        self.issues = list(issues)


class MaterializationFailure(StackError):
    """
    Raised (or recorded) when the provisioning engine fails to materialize a node.

    The engine's failure is kept opaque in `cause`; the core does not retry.
    """

    def __init__(self, node_id: str, kind: str, params: Dict[str, Any], cause: BaseException):
        super().__init__(
            "MATERIALIZATION_FAILURE",
            f"Failed to materialize node '{node_id}' ({kind}): {cause}",
            {"node_id": node_id, "kind": kind, "params": params, "cause": repr(cause)},
        )
        self.node_id = node_id
        self.kind = kind
        self.params = params
        self.cause = cause
