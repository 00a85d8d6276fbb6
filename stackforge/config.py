"""
Stack Configuration Module

Responsibility:
- Hold the parameters of the MLflow stack (names, network, database, service)
- Load them from environment variables or from a YAML file
- Validate values (ports, capacities, CIDR) before any graph is built
"""

import ipaddress
import os
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

# Environment variable -> config field
ENV_VARS = {
    "STACKFORGE_STACK_NAME": "stack_name",
    "STACKFORGE_ACCOUNT": "account",
    "STACKFORGE_REGION": "region",
    "STACKFORGE_MLFLOW_SECRET_NAME": "mlflow_secret_name",
    "STACKFORGE_CIDR": "cidr",
    "STACKFORGE_DB_NAME": "db_name",
    "STACKFORGE_DB_PORT": "db_port",
    "STACKFORGE_DB_USERNAME": "db_username",
    "STACKFORGE_CONTAINER_PORT": "container_port",
    "STACKFORGE_DESIRED_COUNT": "desired_count",
    "STACKFORGE_MAX_CAPACITY": "max_capacity",
    "STACKFORGE_LOG_LEVEL": "log_level",
}


class StackConfig(BaseModel):
    """Parameters of the MLflow tracking server stack."""

    stack_name: str = "MLflowVpcStack"
    account: str = "000000000000"
    region: str = "us-west-2"
    mlflow_secret_name: str = "mlflow-server-credentials"
    mlflow_username: str = "admin"

    # Network
    cidr: str = "10.0.0.0/16"
    max_azs: int = Field(default=2, ge=1)
    nat_gateways: int = Field(default=1, ge=0)

    # Database
    db_name: str = "mlflowdb"
    db_port: int = Field(default=3306, gt=0, lt=65536)
    db_username: str = "master"
    db_min_capacity: int = Field(default=2, ge=1)
    db_max_capacity: int = Field(default=2, ge=1)
    db_seconds_until_auto_pause: int = Field(default=3600, ge=0)

    # Service
    cluster_name: str = "mlflowCluster"
    service_name: str = "mlflowService"
    container_port: int = Field(default=5000, gt=0, lt=65536)
    proxy_port: int = Field(default=80, gt=0, lt=65536)
    desired_count: int = Field(default=2, ge=1)
    max_capacity: int = Field(default=6, ge=1)
    target_cpu_utilization: int = Field(default=70, gt=0, le=100)
    scale_cooldown_seconds: int = Field(default=60, ge=0)
    dns_namespace: str = "http-api.local"

    log_level: str = "INFO"

    @field_validator("cidr")
    @classmethod
    def _valid_cidr(cls, value: str) -> str:
        ipaddress.ip_network(value)
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.upper()

    @model_validator(mode="after")
    def _capacity_range(self) -> "StackConfig":
        if self.db_min_capacity > self.db_max_capacity:
            raise ValueError("db_min_capacity must not exceed db_max_capacity")
        return self

    @property
    def bucket_name(self) -> str:
        return f"mlflow-{self.account}-{self.region}"

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "StackConfig":
        """Build a config from STACKFORGE_* environment variables; unset ones keep defaults."""
        environ = os.environ if environ is None else environ
        values = {field: environ.get(var) for var, field in ENV_VARS.items() if environ.get(var)}
        return cls(**values)

    @classmethod
    def from_yaml(cls, path: str) -> "StackConfig":
        """Build a config from a YAML mapping of field names to values."""
        with open(path) as handle:
            data = yaml.safe_load(handle) or {}
        return cls(**data)
