"""Declarative resource graph builder and the MLflow stack defined with it."""

from stackforge.binding import AttributeBinder
from stackforge.deployer import DeploymentReport, NodeState, ProvisioningEngine, deploy
from stackforge.errors import (
    CyclicDependencyError,
    DuplicateIdentifierError,
    MaterializationFailure,
    StackError,
    StackValidationError,
    UnknownAttributeError,
    UnknownKindError,
    UnknownNodeError,
    UnresolvedAttributeError,
)
from stackforge.exporter import ExportResult, export_outputs
from stackforge.graph import NodeHandle, StackGraph
from stackforge.kinds import KindRegistry, ResourceKind, default_registry
from stackforge.models import DeferredAttribute, Join, ResourceNode, StackOutput, ValidationIssue

__version__ = "0.1.0"
