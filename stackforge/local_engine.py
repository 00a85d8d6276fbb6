"""
Local Provisioning Engine Module

Responsibility:
- Materialize nodes in memory, without any cloud calls
- Produce deterministic, realistically shaped outputs for every output
  attribute a kind declares
- Fail on demand for chosen nodes, to exercise partial deployments

Used by the CLI (deploy --local), the HTTP API and the tests.
"""

import hashlib
import logging
from typing import Any, Dict, List, Optional, Tuple

from stackforge.kinds import KindRegistry, default_registry

logger = logging.getLogger(__name__)


class LocalEngineError(RuntimeError):
    """Failure raised by LocalEngine for nodes configured to fail."""


class LocalEngine:
    """
    In-memory provisioning engine.

    Args:
        account: Account id used in generated ARNs
        region: Region used in generated ARNs and DNS names
        fail_on: node id -> failure reason for nodes that must fail
        registry: Kind registry used to know which outputs to produce
    """

    def __init__(self, account: str = "000000000000", region: str = "us-west-2",
                 fail_on: Optional[Dict[str, str]] = None, registry: Optional[KindRegistry] = None):
        self.account = account
        self.region = region
        self.fail_on = dict(fail_on or {})
        self.registry = registry or default_registry()
        self.materialized: List[Tuple[str, str, dict]] = []

    def materialize(self, node_id: str, kind: str, params: dict) -> Dict[str, Any]:
        """Pretend to create the resource and return its output attributes."""
        if node_id in self.fail_on:
            raise LocalEngineError(self.fail_on[node_id])

        contract = self.registry.get(kind)
        if contract is None:
            raise LocalEngineError(f"unsupported kind '{kind}'")

        self.materialized.append((node_id, kind, params))
        outputs = {attribute: self._output_value(node_id, contract, attribute, params)
                   for attribute in contract.outputs}
        logger.debug("Local engine materialized %s: %s", node_id, outputs)
        return outputs

    def _output_value(self, node_id: str, contract, attribute: str, params: dict) -> Any:
        digest = hashlib.sha256(f"{node_id}:{attribute}".encode()).hexdigest()
        service = contract.type_name.split("::")[1].lower()

        if attribute in params and isinstance(params[attribute], (str, int)):
            return params[attribute]

        if attribute == "username":
            template = params.get("generateSecretString", {}).get("secretStringTemplate", {})
            return template.get("username", "admin")
        if attribute == "password":
            return digest[:32]
        if attribute == "cidrBlock":
            return params.get("cidr", "10.0.0.0/16")
        if attribute == "endpointAddress":
            return f"{node_id.lower()}.cluster-{digest[:12]}.{self.region}.rds.amazonaws.com"
        if attribute == "endpointPort":
            return str(params.get("port", 3306))
        if attribute == "loadBalancerDnsName":
            return f"internal-{node_id.lower()}-{digest[:10]}.{self.region}.elb.amazonaws.com"
        if attribute == "namespaceName":
            return params.get("name", node_id)
        if attribute.endswith("Arn"):
            return f"arn:aws:{service}:{self.region}:{self.account}:{contract.name.lower()}/{node_id}"
        if attribute.endswith("SubnetIds"):
            count = params.get("maxAzs", 2)
            return [
                "subnet-" + hashlib.sha256(f"{node_id}:{attribute}:{i}".encode()).hexdigest()[:17]
                for i in range(count)
            ]
        if attribute.endswith("Id"):
            return f"{attribute[:-2].lower()}-{digest[:17]}"
        if attribute.endswith("Name"):
            return node_id

        return f"{node_id}-{attribute}"
