"""
Resource Kind Contracts Module

Responsibility:
- Define the contract of each resource kind: provider type name, output
  attributes, and required parameters
- Provide the built-in catalogue of kinds used by the MLflow stack
- Look up kinds for the graph builder and the validator

Kind contracts define WHAT a node must declare and WHAT it will expose once
materialized, not what the values are.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class ResourceKind:
    """Contract of a resource kind."""
    name: str
    type_name: str  # Provider resource type, e.g. "AWS::EC2::VPC"
    outputs: Tuple[str, ...] = ()
    required_params: Tuple[str, ...] = ()

    def has_output(self, attribute: str) -> bool:
        return attribute in self.outputs


# Built-in kinds, one per resource declared by the MLflow stack.
BUILTIN_KINDS = {
    "Network": {
        "type_name": "AWS::EC2::VPC",
        "outputs": ["vpcId", "cidrBlock", "publicSubnetIds", "privateSubnetIds", "isolatedSubnetIds"],
        "required_params": ["cidr", "maxAzs", "subnetConfiguration"],
    },
    "Bucket": {
        "type_name": "AWS::S3::Bucket",
        "outputs": ["bucketName", "bucketArn"],
        "required_params": ["bucketName"],
    },
    "DatabaseSubnetGroup": {
        "type_name": "AWS::RDS::DBSubnetGroup",
        "outputs": ["dbSubnetGroupName"],
        "required_params": ["dbSubnetGroupDescription", "subnetIds"],
    },
    "Secret": {
        "type_name": "AWS::SecretsManager::Secret",
        "outputs": ["secretArn", "secretName", "username", "password"],
        "required_params": ["secretName", "generateSecretString"],
    },
    "SecurityGroup": {
        "type_name": "AWS::EC2::SecurityGroup",
        "outputs": ["securityGroupId"],
        "required_params": ["vpcId"],
    },
    "DatabaseCluster": {
        "type_name": "AWS::RDS::DBCluster",
        "outputs": ["endpointAddress", "endpointPort", "clusterArn"],
        "required_params": ["engine", "masterUsername", "masterUserPassword", "dbSubnetGroupName"],
    },
    "ContainerCluster": {
        "type_name": "AWS::ECS::Cluster",
        "outputs": ["clusterName", "clusterArn"],
        "required_params": ["clusterName", "vpcId"],
    },
    "DnsNamespace": {
        "type_name": "AWS::ServiceDiscovery::PrivateDnsNamespace",
        "outputs": ["namespaceId", "namespaceArn", "namespaceName"],
        "required_params": ["name", "vpcId"],
    },
    "Role": {
        "type_name": "AWS::IAM::Role",
        "outputs": ["roleArn", "roleName"],
        "required_params": ["assumedBy"],
    },
    "LogGroup": {
        "type_name": "AWS::Logs::LogGroup",
        "outputs": ["logGroupName", "logGroupArn"],
        "required_params": ["logGroupName"],
    },
    "TaskDefinition": {
        "type_name": "AWS::ECS::TaskDefinition",
        "outputs": ["taskDefinitionArn", "family"],
        "required_params": ["family", "taskRoleArn", "containers"],
    },
    "ContainerService": {
        "type_name": "AWS::ECS::Service",
        "outputs": ["serviceName", "serviceArn"],
        "required_params": ["clusterArn", "taskDefinitionArn", "desiredCount"],
    },
    "LoadBalancer": {
        "type_name": "AWS::ElasticLoadBalancingV2::LoadBalancer",
        "outputs": ["loadBalancerArn", "loadBalancerDnsName"],
        "required_params": ["scheme", "subnets"],
    },
    "Listener": {
        "type_name": "AWS::ElasticLoadBalancingV2::Listener",
        "outputs": ["listenerArn"],
        "required_params": ["loadBalancerArn", "port", "protocol"],
    },
    "TargetGroup": {
        "type_name": "AWS::ElasticLoadBalancingV2::TargetGroup",
        "outputs": ["targetGroupArn"],
        "required_params": ["port", "protocol", "vpcId"],
    },
    "ScalingPolicy": {
        "type_name": "AWS::ApplicationAutoScaling::ScalingPolicy",
        "outputs": ["policyArn"],
        "required_params": ["resourceId", "maxCapacity", "targetUtilizationPercent"],
    },
}


class KindRegistry:
    """Lookup table of resource kinds available to a stack."""

    def __init__(self, kinds: Optional[List[ResourceKind]] = None):
        self._kinds: Dict[str, ResourceKind] = {}
        for kind in kinds or []:
            self.register(kind)

    def register(self, kind: ResourceKind) -> ResourceKind:
        """Add or replace a kind."""
        self._kinds[kind.name] = kind
        return kind

    def get(self, name: str) -> Optional[ResourceKind]:
        """Retrieve a kind contract by name."""
        return self._kinds.get(name)

    def names(self) -> List[str]:
        return sorted(self._kinds)

    def __contains__(self, name: str) -> bool:
        return name in self._kinds


def default_registry() -> KindRegistry:
    """Build a fresh registry holding the built-in kinds."""
    return KindRegistry([
        ResourceKind(
            name=name,
            type_name=contract["type_name"],
            outputs=tuple(contract["outputs"]),
            required_params=tuple(contract["required_params"]),
        )
        for name, contract in BUILTIN_KINDS.items()
    ])
