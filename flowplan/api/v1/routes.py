from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request, status

from flowplan.functions.registry import default_registry
from flowplan.schemas.plan import FunctionRead, PlanRead, RunCreate, RunRead
from flowplan.services.resolver import CyclicDependencyError, solve
from flowplan.services.run_processor import RunProcessor

router = APIRouter()


@router.get("/functions", response_model=list[FunctionRead], tags=["functions"])
def list_functions():
    return [
        FunctionRead(name=name, parameters=list(params))
        for name, params in default_registry.describe().items()
    ]


@router.get(
    "/plans/{name}",
    response_model=PlanRead,
    responses={status.HTTP_409_CONFLICT: {"description": "Cyclic dependency"}},
    tags=["plans"],
)
def get_plan(name: str):
    try:
        plan = solve(name, default_registry)
    except CyclicDependencyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return PlanRead.from_plan(plan, name)


def _get_processor(request: Request) -> RunProcessor:
    processor = getattr(request.app.state, "run_processor", None)
    if processor is None:
        raise HTTPException(status_code=500, detail="Run processor unavailable.")
    return processor


@router.post("/runs", status_code=status.HTTP_202_ACCEPTED, tags=["runs"])
async def enqueue_run(payload: RunCreate, request: Request):
    processor = _get_processor(request)
    await processor.enqueue(payload)
    return {"status": "accepted", "run_id": payload.id}


@router.get("/runs", response_model=list[RunRead], tags=["runs"])
async def list_runs(request: Request, limit: int = 50):
    processor = _get_processor(request)
    return await processor.list_runs(limit=limit)


@router.get(
    "/runs/{run_id}",
    response_model=RunRead,
    responses={status.HTTP_404_NOT_FOUND: {"description": "Run not found"}},
    tags=["runs"],
)
async def get_run(run_id: int, request: Request):
    processor = _get_processor(request)
    run = await processor.get_run(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Run not found.")
    return run
