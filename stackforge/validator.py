"""
Validation Engine Module

Responsibility:
- Enforce kind contracts (known kind, required params present)
- Check every deferred reference points at a declared node and a declared
  output attribute
- Check explicit dependencies and stack outputs name declared nodes
- Return a list of ValidationIssue objects for any validation failures

This is PURE deterministic validation logic.
The builder already rejects most of these at declaration time; validation
reports whatever is left (forward references never declared, params a kind
requires but the declaration omitted).
"""

from typing import List

from stackforge.errors import StackValidationError
from stackforge.models import ValidationIssue


def validate_graph(graph) -> List[ValidationIssue]:
    """
    Validate the entire stack graph against kind contracts and references.

    Returns a list of ValidationIssue objects, empty when the graph is valid.
    """
    issues = []

    for node in graph.nodes:
        # Step 1: Kind Contract Validation
        issues.extend(_validate_kind_contract(graph, node))

        # Step 2: Reference Validation
        issues.extend(_validate_references(graph, node))

        # Step 3: Explicit Dependency Validation
        issues.extend(_validate_explicit_dependencies(graph, node))

    issues.extend(_validate_outputs(graph))

    return issues


def require_valid(graph):
    """Raise StackValidationError if validate_graph() reports anything."""
    issues = validate_graph(graph)
    if issues:
        raise StackValidationError(issues)


def _validate_kind_contract(graph, node) -> List[ValidationIssue]:
    """Validate that the node satisfies its kind contract."""
    contract = graph.registry.get(node.kind)

    if not contract:
        return [ValidationIssue(
            node_id=node.id,
            path="kind",
            reason=f"Unknown resource kind: {node.kind}",
            options=graph.registry.names(),
        )]

    missing = []
    for param in contract.required_params:
        if node.params.get(param) is None:
            missing.append(ValidationIssue(
                node_id=node.id,
                path=f"params.{param}",
                reason=f"Required parameter '{param}' is missing for kind '{node.kind}'",
            ))

    return missing


def _validate_references(graph, node) -> List[ValidationIssue]:
    """Validate all deferred references held in node params."""
    issues = []

    for ref in node.references():
        label = f"{ref.node_id}.{ref.attribute}"
        target = graph.get(ref.node_id)

        if target is None:
            issues.append(ValidationIssue(
                node_id=node.id,
                path=label,
                reason=f"Referenced node '{ref.node_id}' is not declared in the stack",
            ))
            continue

        contract = graph.registry.get(target.kind)
        if contract and not contract.has_output(ref.attribute):
            issues.append(ValidationIssue(
                node_id=node.id,
                path=label,
                reason=f"Output attribute '{ref.attribute}' does not exist on kind '{target.kind}'",
                options=list(contract.outputs),
            ))

    return issues


def _validate_explicit_dependencies(graph, node) -> List[ValidationIssue]:
    issues = []

    for dep_id in node.depends_on:
        if dep_id not in graph:
            issues.append(ValidationIssue(
                node_id=node.id,
                path="depends_on",
                reason=f"Dependency '{dep_id}' is not declared in the stack",
            ))

    return issues


def _validate_outputs(graph) -> List[ValidationIssue]:
    """Validate that every stack output names a declared node."""
    issues = []

    for output in graph.outputs:
        if output.node_id not in graph:
            issues.append(ValidationIssue(
                node_id=output.node_id,
                path=f"outputs.{output.name}",
                reason=f"Output '{output.name}' references undeclared node '{output.node_id}'",
            ))

    return issues
