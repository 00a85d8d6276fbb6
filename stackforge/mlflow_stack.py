"""
MLflow Stack Definition

Responsibility:
- Declare the MLflow tracking server stack as a resource graph: VPC,
  artifact bucket, Aurora Serverless MySQL backend store, credentials,
  Fargate service (nginx basic-auth sidecar + MLflow), internal load
  balancer, Cloud Map discovery and CPU autoscaling
- Export the load balancer DNS name, listener ARN, VPC id and the MLflow
  credentials secret ARN

IAM policy documents are opaque params of the role node.
"""

from typing import Optional

from stackforge.config import StackConfig
from stackforge.graph import StackGraph
from stackforge.models import Join

DB_SUBNET_GROUP_NAME = "aurora-serverless-subnet-group"
DB_CREDENTIALS_SECRET_NAME = "mlflow-database-credentials"
PROXY_CONTAINER = "nginxContainer"
MLFLOW_CONTAINER = "mlflowContainer"


def _generated_secret(username: str) -> dict:
    return {
        "secretStringTemplate": {"username": username},
        "generateStringKey": "password",
        "excludePunctuation": True,
        "includeSpace": False,
    }


def _secret_ref(secret, field: str) -> dict:
    return {"secretArn": secret["secretArn"], "field": field}


def build_mlflow_stack(config: Optional[StackConfig] = None) -> StackGraph:
    """Declare every node of the MLflow stack and return the graph."""
    config = config or StackConfig()
    graph = StackGraph(config.stack_name)

    # Network
    vpc = graph.declare_node("Network", "MlflowVpc", {
        "cidr": config.cidr,
        "maxAzs": config.max_azs,
        "natGateways": config.nat_gateways,
        "subnetConfiguration": [
            {"name": "public", "subnetType": "PUBLIC", "cidrMask": 24},
            {"name": "private", "subnetType": "PRIVATE_WITH_NAT", "cidrMask": 26},
            {"name": "isolated", "subnetType": "PRIVATE_ISOLATED", "cidrMask": 28},
        ],
    })

    bucket = graph.declare_node("Bucket", "ArtifactBucket", {
        "bucketName": config.bucket_name,
        "versioned": False,
        "publicAccessBlock": {
            "blockPublicAcls": True,
            "blockPublicPolicy": True,
            "ignorePublicAcls": True,
            "restrictPublicBuckets": True,
        },
        "encryption": "KMS_MANAGED",
        "removalPolicy": "DESTROY",
        "autoDeleteObjects": True,
    })

    # Database
    subnet_group = graph.declare_node("DatabaseSubnetGroup", "AuroraSubnetGroup", {
        "dbSubnetGroupDescription": "Subnet group to access aurora",
        "dbSubnetGroupName": DB_SUBNET_GROUP_NAME,
        "subnetIds": vpc["isolatedSubnetIds"],
    })

    db_secret = graph.declare_node("Secret", "DatabaseCredentials", {
        "secretName": DB_CREDENTIALS_SECRET_NAME,
        "generateSecretString": _generated_secret(config.db_username),
    })

    mlflow_secret = graph.declare_node("Secret", "MlflowCredentials", {
        "secretName": config.mlflow_secret_name,
        "generateSecretString": _generated_secret(config.mlflow_username),
    })

    db_security_group = graph.declare_node("SecurityGroup", "DatabaseSecurityGroup", {
        "vpcId": vpc["vpcId"],
        "ingress": [{"cidr": config.cidr, "protocol": "tcp", "port": config.db_port}],
    })

    database = graph.declare_node("DatabaseCluster", "DatabaseCluster", {
        "dbClusterIdentifier": f"{config.service_name}-cluster",
        "engineMode": "serverless",
        "engine": "aurora-mysql",
        "engineVersion": "5.7.12",
        "databaseName": config.db_name,
        "port": config.db_port,
        "masterUsername": db_secret["username"],
        "masterUserPassword": db_secret["password"],
        # Serverless clusters are only reachable from inside the VPC
        "dbSubnetGroupName": DB_SUBNET_GROUP_NAME,
        "scalingConfiguration": {
            "autoPause": True,
            "minCapacity": config.db_min_capacity,
            "maxCapacity": config.db_max_capacity,
            "secondsUntilAutoPause": config.db_seconds_until_auto_pause,
        },
        "vpcSecurityGroupIds": [db_security_group["securityGroupId"]],
    })
    # The cluster names the subnet group instead of referencing it
    graph.add_explicit_dependency(database, subnet_group)

    # Compute
    cluster = graph.declare_node("ContainerCluster", "FargateCluster", {
        "clusterName": config.cluster_name,
        "vpcId": vpc["vpcId"],
    })

    namespace = graph.declare_node("DnsNamespace", "DnsNamespace", {
        "name": config.dns_namespace,
        "vpcId": vpc["vpcId"],
        "description": "Private DnsNamespace for Microservices",
    })

    task_role = graph.declare_node("Role", "TaskRole", {
        "assumedBy": "ecs-tasks.amazonaws.com",
        "managedPolicies": ["service-role/AmazonECSTaskExecutionRolePolicy"],
        "inlinePolicies": {
            "s3Bucket": [{
                "effect": "Allow",
                "actions": ["s3:*"],
                "resources": [
                    Join(["arn:aws:s3:::", bucket["bucketName"]]),
                    Join(["arn:aws:s3:::", bucket["bucketName"], "/*"]),
                ],
            }],
            "secretsManagerRestricted": [
                {
                    "effect": "Allow",
                    "actions": [
                        "secretsmanager:GetResourcePolicy",
                        "secretsmanager:GetSecretValue",
                        "secretsmanager:DescribeSecret",
                        "secretsmanager:ListSecretVersionIds",
                    ],
                    "resources": [mlflow_secret["secretArn"], db_secret["secretArn"]],
                },
                {"effect": "Allow", "actions": ["secretsmanager:ListSecrets"], "resources": ["*"]},
            ],
        },
    })

    log_group = graph.declare_node("LogGroup", "ServiceLogGroup", {
        "logGroupName": f"/ecs/{config.service_name}",
        "removalPolicy": "DESTROY",
    })

    log_configuration = {
        "driver": "awslogs",
        "logGroupName": log_group["logGroupName"],
        "streamPrefix": config.service_name,
    }

    task_definition = graph.declare_node("TaskDefinition", "MlflowTaskDefinition", {
        "family": "mlFlowStack",
        "taskRoleArn": task_role["roleArn"],
        "containers": [
            {
                "name": PROXY_CONTAINER,
                "essential": True,
                "image": "asset:src/nginx/basic_auth",
                "portMappings": [{"containerPort": config.proxy_port, "protocol": "tcp"}],
                "secrets": {
                    "MLFLOW_USERNAME": _secret_ref(mlflow_secret, "username"),
                    "MLFLOW_PASSWORD": _secret_ref(mlflow_secret, "password"),
                },
                "logging": log_configuration,
            },
            {
                "name": MLFLOW_CONTAINER,
                "essential": True,
                "image": "asset:src/mlflow",
                "portMappings": [{"containerPort": config.container_port, "protocol": "tcp"}],
                "environment": {
                    "BUCKET": Join(["s3://", bucket["bucketName"]]),
                    "HOST": database["endpointAddress"],
                    "PORT": str(config.db_port),
                    "DATABASE": config.db_name,
                },
                "secrets": {
                    "USERNAME": _secret_ref(db_secret, "username"),
                    "PASSWORD": _secret_ref(db_secret, "password"),
                },
                "logging": log_configuration,
            },
        ],
    })

    # Service and networking
    service_security_group = graph.declare_node("SecurityGroup", "ServiceSecurityGroup", {
        "vpcId": vpc["vpcId"],
        "groupName": "mlflowServiceSecurityGroup",
        "allowAllOutbound": True,
        "ingress": [
            {"cidr": "0.0.0.0/0", "protocol": "tcp", "port": config.container_port},
            {"cidr": "0.0.0.0/0", "protocol": "tcp", "port": config.proxy_port},
        ],
    })

    load_balancer = graph.declare_node("LoadBalancer", "InternalLoadBalancer", {
        "scheme": "internal",
        "subnets": vpc["privateSubnetIds"],
    })

    target_group = graph.declare_node("TargetGroup", "MlflowTargetGroup", {
        "port": config.proxy_port,
        "protocol": "HTTP",
        "targetType": "ip",
        "vpcId": vpc["vpcId"],
        "healthCheck": {"path": "/elb-status"},
    })

    listener = graph.declare_node("Listener", "HttpListener", {
        "loadBalancerArn": load_balancer["loadBalancerArn"],
        "port": config.proxy_port,
        "protocol": "HTTP",
        "defaultActions": [{"type": "forward", "targetGroupArn": target_group["targetGroupArn"]}],
    })

    service = graph.declare_node("ContainerService", "MlflowService", {
        "clusterArn": cluster["clusterArn"],
        "serviceName": config.service_name,
        "taskDefinitionArn": task_definition["taskDefinitionArn"],
        "launchType": "FARGATE",
        "desiredCount": config.desired_count,
        "assignPublicIp": False,
        "subnets": vpc["privateSubnetIds"],
        "securityGroups": [service_security_group["securityGroupId"]],
        "serviceDiscovery": {"name": config.service_name, "namespaceId": namespace["namespaceId"]},
        "loadBalancers": [{
            "containerName": PROXY_CONTAINER,
            "containerPort": config.proxy_port,
            "targetGroupArn": target_group["targetGroupArn"],
        }],
    })
    # Targets can only register once the listener forwards to the group
    graph.add_explicit_dependency(service, listener)

    graph.declare_node("ScalingPolicy", "CpuScaling", {
        "resourceId": Join(["service/", cluster["clusterName"], "/", service["serviceName"]]),
        "minCapacity": 1,
        "maxCapacity": config.max_capacity,
        "predefinedMetric": "ECSServiceAverageCPUUtilization",
        "targetUtilizationPercent": config.target_cpu_utilization,
        "scaleInCooldown": config.scale_cooldown_seconds,
        "scaleOutCooldown": config.scale_cooldown_seconds,
    })

    # Outputs
    graph.add_output("LoadBalancerDnsName", load_balancer, "loadBalancerDnsName",
                     description="Internal ALB DNS name")
    graph.add_output("ListenerArn", listener, "listenerArn",
                     export_name=f"{config.stack_name}-ListenerArn")
    graph.add_output("MlflowSecretArn", mlflow_secret, "secretArn",
                     export_name=f"{config.stack_name}-MlflowSecretArn")
    graph.add_output("VpcId", vpc, "vpcId", export_name=f"{config.stack_name}-VpcId")

    return graph
