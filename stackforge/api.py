from typing import List

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from stackforge.config import StackConfig
from stackforge.deployer import deploy
from stackforge.errors import StackError, UnknownNodeError
from stackforge.exporter import export_outputs
from stackforge.local_engine import LocalEngine
from stackforge.mlflow_stack import build_mlflow_stack
from stackforge.validator import validate_graph
from stackforge.yaml_renderer import render_template

app = FastAPI(title="StackForge")


def get_config() -> StackConfig:
    return StackConfig.from_env()


class DeployRequest(BaseModel):
    fail: List[str] = []
    stop_on_failure: bool = False


def _build(config: StackConfig):
    try:
        return build_mlflow_stack(config)
    except StackError as e:
        raise HTTPException(status_code=500, detail={"code": e.code, "message": e.message})


@app.get("/")
async def root():
    return {"message": "StackForge API is running"}


@app.get("/health")
async def health():
    return {"status": "healthy"}


@app.get("/stack")
async def get_stack(config: StackConfig = Depends(get_config)):
    graph = _build(config)
    return {
        "name": graph.name,
        "nodes": [
            {"id": node.id, "kind": node.kind, "dependencies": node.dependencies()}
            for node in graph.nodes
        ],
        "outputs": [output.name for output in graph.outputs],
        "issues": [issue.to_dict() for issue in validate_graph(graph)],
    }


@app.get("/stack/nodes/{node_id}")
async def get_node(node_id: str, config: StackConfig = Depends(get_config)):
    graph = _build(config)
    try:
        node = graph.node(node_id)
    except UnknownNodeError as e:
        raise HTTPException(status_code=404, detail=e.message)
    return {
        "id": node.id,
        "kind": node.kind,
        "dependencies": node.dependencies(),
        "dependents": graph.dependents_of(node.id),
    }


@app.get("/stack/plan")
async def get_plan(config: StackConfig = Depends(get_config)):
    graph = _build(config)
    try:
        return {"order": graph.resolve(), "stages": graph.resolve_stages()}
    except StackError as e:
        raise HTTPException(status_code=409, detail={"code": e.code, "message": e.message})


@app.get("/stack/template", response_class=PlainTextResponse)
async def get_template(config: StackConfig = Depends(get_config)):
    return render_template(_build(config))


@app.post("/stack/deploy")
async def deploy_stack(request: DeployRequest, config: StackConfig = Depends(get_config)):
    graph = _build(config)

    unknown = [node_id for node_id in request.fail if node_id not in graph]
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown nodes: {', '.join(unknown)}")

    engine = LocalEngine(
        account=config.account,
        region=config.region,
        fail_on={node_id: "injected failure" for node_id in request.fail},
    )
    try:
        report = deploy(graph, engine, stop_on_failure=request.stop_on_failure)
    except StackError as e:
        raise HTTPException(status_code=409, detail={"code": e.code, "message": e.message})

    return {"report": report.to_dict(), "outputs": export_outputs(graph, report).to_dict()}
