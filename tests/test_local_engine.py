"""
Unit tests for the in-memory provisioning engine.
"""

import pytest

from stackforge.local_engine import LocalEngine, LocalEngineError


def test_produces_every_declared_output():
    engine = LocalEngine(account="111122223333", region="us-east-1")

    outputs = engine.materialize("Vpc", "Network", {"cidr": "10.1.0.0/16", "maxAzs": 3})

    assert set(outputs) == {"vpcId", "cidrBlock", "publicSubnetIds", "privateSubnetIds", "isolatedSubnetIds"}
    assert outputs["cidrBlock"] == "10.1.0.0/16"
    assert outputs["vpcId"].startswith("vpc-")
    assert len(outputs["isolatedSubnetIds"]) == 3


def test_outputs_are_deterministic():
    params = {"secretName": "db", "generateSecretString": {"secretStringTemplate": {"username": "master"}}}

    first = LocalEngine().materialize("Secret", "Secret", params)
    second = LocalEngine().materialize("Secret", "Secret", params)

    assert first == second
    assert first["username"] == "master"
    assert first["secretName"] == "db"
    assert first["secretArn"] == "arn:aws:secretsmanager:us-west-2:000000000000:secret/Secret"


def test_fail_on_raises():
    engine = LocalEngine(fail_on={"Db": "no capacity"})

    with pytest.raises(LocalEngineError, match="no capacity"):
        engine.materialize("Db", "DatabaseCluster", {})

    assert engine.materialized == []


def test_unknown_kind_raises():
    with pytest.raises(LocalEngineError):
        LocalEngine().materialize("x", "Teapot", {})


def test_subnet_ids_are_distinct_for_many_azs():
    outputs = LocalEngine().materialize("Vpc", "Network", {"maxAzs": 12})

    subnet_ids = outputs["privateSubnetIds"]
    assert len(subnet_ids) == 12
    assert len(set(subnet_ids)) == 12
    assert all(len(subnet_id) == len("subnet-") + 17 for subnet_id in subnet_ids)
