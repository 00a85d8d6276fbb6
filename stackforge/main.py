#!/usr/bin/env python3
"""
StackForge Command Line

Responsibility:
- Build the MLflow stack from configuration (environment or YAML file)
- Print the deployment plan, the synthesized template or validation issues
- Run a local (in-memory) deployment and print exported outputs
- Serve the HTTP API

This is the entry point of the `stackforge` console script.
"""

import argparse
import json
import logging
import sys

from stackforge.config import StackConfig
from stackforge.deployer import deploy
from stackforge.errors import StackError
from stackforge.exporter import export_outputs
from stackforge.local_engine import LocalEngine
from stackforge.mlflow_stack import build_mlflow_stack
from stackforge.validator import validate_graph
from stackforge.yaml_renderer import render_plan, render_template

logger = logging.getLogger("stackforge")


def print_header(title: str):
    """Print a section header."""
    print()
    print("=" * 80)
    print(title)
    print("=" * 80)
    print()


def load_config(args) -> StackConfig:
    if args.config:
        return StackConfig.from_yaml(args.config)
    return StackConfig.from_env()


def cmd_plan(args, config: StackConfig) -> int:
    graph = build_mlflow_stack(config)
    print(render_plan(graph))
    return 0


def cmd_synth(args, config: StackConfig) -> int:
    graph = build_mlflow_stack(config)
    template = render_template(graph)

    if args.output:
        with open(args.output, "w") as handle:
            handle.write(template)
        print(f"Template written to {args.output}")
    else:
        print(template)
    return 0


def cmd_validate(args, config: StackConfig) -> int:
    graph = build_mlflow_stack(config)
    issues = validate_graph(graph)

    if not issues:
        print(f"✓ Stack {graph.name} is valid ({len(graph)} nodes)")
        return 0

    print(f"⚠️  Stack {graph.name} has {len(issues)} issue(s):")
    for issue in issues:
        print(f"  - {issue.node_id} [{issue.path}]: {issue.reason}")
    return 1


def cmd_deploy(args, config: StackConfig) -> int:
    if not args.local:
        print("Only local deployments are supported; pass --local.")
        return 2

    graph = build_mlflow_stack(config)
    fail_on = {node_id: "injected failure" for node_id in args.fail or []}
    engine = LocalEngine(account=config.account, region=config.region, fail_on=fail_on)

    print_header(f"DEPLOYING {graph.name} (local engine)")
    report = deploy(graph, engine, stop_on_failure=args.stop_on_failure)

    for node_id in report.order:
        print(f"  {report.state_of(node_id).value:<13} {node_id}")

    exported = export_outputs(graph, report)

    print_header("OUTPUTS" if exported.complete else "OUTPUTS (INCOMPLETE)")
    print(json.dumps(exported.to_dict(), indent=2))

    return 0 if report.succeeded else 1


def cmd_serve(args, config: StackConfig) -> int:
    import uvicorn

    uvicorn.run("stackforge.api:app", host=args.host, port=args.port, log_level=config.log_level.lower())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stackforge", description="MLflow stack resource graph tooling")
    parser.add_argument("--config", help="YAML file with stack configuration (default: environment)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("plan", help="Print the deployment order and stages")

    synth = subparsers.add_parser("synth", help="Render the stack as a YAML template")
    synth.add_argument("-o", "--output", help="Write the template to this file")

    subparsers.add_parser("validate", help="Validate the stack definition")

    deploy_parser = subparsers.add_parser("deploy", help="Materialize the stack")
    deploy_parser.add_argument("--local", action="store_true", help="Use the in-memory engine")
    deploy_parser.add_argument("--fail", action="append", metavar="NODE_ID",
                               help="Make the local engine fail this node (repeatable)")
    deploy_parser.add_argument("--stop-on-failure", action="store_true",
                               help="Skip every node after the first failure")

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    return parser


COMMANDS = {
    "plan": cmd_plan,
    "synth": cmd_synth,
    "validate": cmd_validate,
    "deploy": cmd_deploy,
    "serve": cmd_serve,
}


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args)
    except (OSError, ValueError) as e:
        print(f"Error loading configuration: {e}")
        return 2

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return COMMANDS[args.command](args, config)
    except StackError as e:
        logger.error("%s: %s", e.code, e.message)
        return 1


if __name__ == "__main__":
    sys.exit(main())
