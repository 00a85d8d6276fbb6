"""
Tests for the MLflow stack definition, deployed through the local engine.
"""

from stackforge.deployer import NodeState, deploy
from stackforge.exporter import export_outputs
from stackforge.models import iter_references


class TestMlflowStackDefinition:
    """Test the declared graph."""

    def test_declares_every_resource(self, mlflow_graph):
        kinds = [node.kind for node in mlflow_graph.nodes]

        assert len(mlflow_graph) == 18
        assert kinds.count("Secret") == 2
        assert kinds.count("SecurityGroup") == 2
        for kind in ["Network", "Bucket", "DatabaseSubnetGroup", "DatabaseCluster", "ContainerCluster",
                     "DnsNamespace", "Role", "LogGroup", "TaskDefinition", "ContainerService",
                     "LoadBalancer", "Listener", "TargetGroup", "ScalingPolicy"]:
            assert kind in kinds

    def test_database_depends_on_network_secret_and_subnet_group(self, mlflow_graph):
        deps = mlflow_graph.dependencies_of("DatabaseCluster")

        assert "AuroraSubnetGroup" in deps
        assert "DatabaseCredentials" in deps
        assert "DatabaseSecurityGroup" in deps
        assert mlflow_graph.node("DatabaseCluster").depends_on == ["AuroraSubnetGroup"]

    def test_order_respects_every_dependency(self, mlflow_graph):
        order = mlflow_graph.resolve()
        position = {node_id: i for i, node_id in enumerate(order)}

        for node in mlflow_graph.nodes:
            for dep_id in node.dependencies():
                assert position[dep_id] < position[node.id]

    def test_service_waits_for_listener(self, mlflow_graph):
        order = mlflow_graph.resolve()

        assert order.index("HttpListener") < order.index("MlflowService")
        assert order[-1] == "CpuScaling"

    def test_config_flows_into_params(self, config, mlflow_graph):
        bucket = mlflow_graph.node("ArtifactBucket")
        service = mlflow_graph.node("MlflowService")

        assert bucket.params["bucketName"] == "mlflow-123456789012-eu-west-1"
        assert service.params["desiredCount"] == config.desired_count

    def test_outputs(self, mlflow_graph):
        names = {output.name: output for output in mlflow_graph.outputs}

        assert set(names) == {"LoadBalancerDnsName", "ListenerArn", "MlflowSecretArn", "VpcId"}
        assert names["VpcId"].export_name == "MLflowVpcStack-VpcId"


class TestMlflowStackDeployment:
    """Test a local deployment of the stack."""

    def test_local_deployment_succeeds(self, mlflow_graph, engine):
        report = deploy(mlflow_graph, engine)

        assert report.succeeded
        assert len(engine.materialized) == len(mlflow_graph)

    def test_database_receives_concrete_values(self, mlflow_graph, engine):
        deploy(mlflow_graph, engine)
        params = {node_id: params for node_id, _, params in engine.materialized}

        database = params["DatabaseCluster"]
        assert database["masterUsername"] == "master"
        assert isinstance(database["masterUserPassword"], str)
        assert database["vpcSecurityGroupIds"][0].startswith("securitygroup-")
        assert params["AuroraSubnetGroup"]["subnetIds"][0].startswith("subnet-")
        for bound in params.values():
            assert list(iter_references(bound)) == []

    def test_container_environment_is_bound(self, mlflow_graph, engine):
        deploy(mlflow_graph, engine)
        params = {node_id: params for node_id, _, params in engine.materialized}

        mlflow_container = params["MlflowTaskDefinition"]["containers"][1]
        assert mlflow_container["environment"]["BUCKET"] == "s3://mlflow-123456789012-eu-west-1"
        assert mlflow_container["environment"]["HOST"].endswith(".eu-west-1.rds.amazonaws.com")
        assert params["CpuScaling"]["resourceId"] == "service/mlflowCluster/mlflowService"

    def test_exported_outputs(self, mlflow_graph, engine):
        result = export_outputs(mlflow_graph, deploy(mlflow_graph, engine))

        assert result.complete
        assert result.values["MlflowSecretArn"].startswith("arn:aws:secretsmanager:eu-west-1:123456789012:")
        assert result.values["LoadBalancerDnsName"].startswith("internal-")
        assert set(result.exports()) == {
            "MLflowVpcStack-ListenerArn", "MLflowVpcStack-MlflowSecretArn", "MLflowVpcStack-VpcId",
        }

    def test_database_failure_is_partial(self, config, mlflow_graph):
        from stackforge.local_engine import LocalEngine

        engine = LocalEngine(account=config.account, region=config.region,
                             fail_on={"DatabaseCluster": "capacity unavailable"})

        report = deploy(mlflow_graph, engine)
        result = export_outputs(mlflow_graph, report)

        assert report.state_of("DatabaseCluster") == NodeState.FAILED
        assert report.state_of("MlflowTaskDefinition") == NodeState.SKIPPED
        assert report.state_of("MlflowService") == NodeState.SKIPPED
        assert report.state_of("HttpListener") == NodeState.MATERIALIZED
        assert not report.succeeded
        # No output is read from the database branch
        assert result.complete

    def test_load_balancer_failure_hides_its_outputs(self, config, mlflow_graph):
        from stackforge.local_engine import LocalEngine

        engine = LocalEngine(account=config.account, region=config.region,
                             fail_on={"InternalLoadBalancer": "quota exceeded"})

        result = export_outputs(mlflow_graph, deploy(mlflow_graph, engine))

        assert not result.complete
        assert set(result.values) == {"MlflowSecretArn", "VpcId"}
        assert set(result.missing) == {"LoadBalancerDnsName", "ListenerArn"}
