"""
YAML Renderer Module

Responsibility:
- Deterministically render a stack graph as a CloudFormation-style template
- Preserve deferred references as Fn::GetAtt / Fn::Join (do not resolve them)
- Render the deployment plan (order and parallel stages)
- No inference, no mutations

This is PURE rendering logic.
"""

import re
from typing import Any

import yaml

from stackforge.errors import DuplicateIdentifierError
from stackforge.models import DeferredAttribute, Join

TEMPLATE_FORMAT_VERSION = "2010-09-09"


def render_template(graph) -> str:
    """
    Render a stack graph into a CloudFormation-style YAML template.

    Args:
        graph: StackGraph to render

    Returns:
        YAML string with Resources and Outputs sections
    """
    template = {
        "AWSTemplateFormatVersion": TEMPLATE_FORMAT_VERSION,
        "Description": f"Stack {graph.name}",
        "Resources": _render_resources(graph),
    }

    outputs = _render_outputs(graph)
    if outputs:
        template["Outputs"] = outputs

    return yaml.dump(template, sort_keys=False, default_flow_style=False, allow_unicode=True)


def render_plan(graph) -> str:
    """Render the resolved order and the parallel stages as YAML."""
    plan = {
        "stack": graph.name,
        "order": graph.resolve(),
        "stages": graph.resolve_stages(),
    }
    return yaml.dump(plan, sort_keys=False, default_flow_style=False)


def logical_id(node_id: str) -> str:
    """Template-safe logical id: alphanumerics only."""
    return re.sub(r"[^A-Za-z0-9]", "", node_id) or "Resource"


def _render_resources(graph) -> dict:
    """Render Resources from graph nodes, in declaration order."""
    resources = {}

    for node in graph.nodes:
        contract = graph.registry.get(node.kind)
        resource = {"Type": contract.type_name if contract else node.kind}

        if node.params:
            resource["Properties"] = _render_value(node.params)

        # Only explicit edges; reference edges are implied by Fn::GetAtt
        if node.depends_on:
            resource["DependsOn"] = [logical_id(dep_id) for dep_id in node.depends_on]

        key = logical_id(node.id)
        if key in resources:
            raise DuplicateIdentifierError(key, namespace="logical resource")
        resources[key] = resource

    return resources


def _render_outputs(graph) -> dict:
    """Render Outputs section from stack outputs."""
    outputs = {}

    for output in graph.outputs:
        output_def = {"Value": _render_value(DeferredAttribute(output.node_id, output.attribute))}

        if output.description:
            output_def["Description"] = output.description

        if output.export_name:
            output_def["Export"] = {"Name": output.export_name}

        key = logical_id(output.name)
        if key in outputs:
            raise DuplicateIdentifierError(key, namespace="logical output")
        outputs[key] = output_def

    return outputs


def _render_value(value: Any) -> Any:
    """Render a param value, turning references into intrinsic functions."""
    if isinstance(value, DeferredAttribute):
        return {"Fn::GetAtt": [logical_id(value.node_id), value.attribute]}
    elif isinstance(value, Join):
        return {"Fn::Join": [value.delimiter, [_render_value(part) for part in value.parts]]}
    elif isinstance(value, dict):
        return {key: _render_value(item) for key, item in value.items()}
    elif isinstance(value, (list, tuple)):
        return [_render_value(item) for item in value]
    else:
        return value
