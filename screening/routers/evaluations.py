import asyncio
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse

from screening.models.models import EvaluationResult
from screening.models.response import EvaluationStatus
from screening.models.schemas import RunEvaluationsRequest
from screening.routers.dependencies import get_evaluator, get_state
from screening.services import reports
from screening.services.aggregator import rank_results
from screening.services.evaluator import ProfileEvaluator
from screening.services.runner import EvaluationRunner
from screening.services.state import AppState
from screening.utils.exceptions import ScreeningBaseException, map_to_http_exception
from screening.utils.logging_config import get_logger, log_api_call

router = APIRouter(prefix="/evaluations", tags=["evaluations"])
logger = get_logger(__name__)

_background_runs = set()


def _status(state: AppState) -> EvaluationStatus:
    return EvaluationStatus(
        is_evaluating=state.is_evaluating,
        progress=state.progress,
        evaluated_rubrics=list(state.evaluations),
    )


def _log_run_outcome(task: asyncio.Task) -> None:
    _background_runs.discard(task)
    if task.cancelled():
        logger.warning("Background evaluation run was cancelled")
    elif task.exception() is not None:
        logger.error(f"Background evaluation run failed: {task.exception()}", exc_info=task.exception())


@router.post("/run", response_model=EvaluationStatus, status_code=202)
@log_api_call("run_evaluations")
async def run_evaluations(
    options: Optional[RunEvaluationsRequest] = Body(default=None),
    wait: bool = Query(False, description="Respond only after every rubric has been evaluated"),
    state: AppState = Depends(get_state),
    evaluator: ProfileEvaluator = Depends(get_evaluator),
):
    """Evaluate every saved rubric against all loaded profiles"""
    if not state.rubrics:
        raise HTTPException(status_code=400, detail="At least one rubric is required")
    if not state.profiles:
        raise HTTPException(status_code=400, detail="No profiles loaded")

    try:
        run_id = state.start_evaluation()
    except ScreeningBaseException as e:
        raise map_to_http_exception(e)

    options = options or RunEvaluationsRequest()
    runner = EvaluationRunner(state, evaluator)
    run = runner.run(max_concurrent=options.max_concurrent, batch_size=options.batch_size, run_id=run_id)

    if wait:
        await run
    else:
        task = asyncio.create_task(run)
        _background_runs.add(task)
        task.add_done_callback(_log_run_outcome)

    return _status(state)


@router.post("/stop", response_model=EvaluationStatus)
async def stop_evaluations(state: AppState = Depends(get_state)):
    """Stop after the units already in flight; their results are discarded"""
    if state.is_evaluating:
        logger.info("Stop requested for the current evaluation run")
    state.stop_evaluation()
    return _status(state)


@router.get("/progress", response_model=EvaluationStatus)
async def evaluation_progress(state: AppState = Depends(get_state)):
    return _status(state)


@router.delete("")
async def clear_evaluations(state: AppState = Depends(get_state)):
    state.clear_evaluations()
    return {"cleared": True}


@router.get("/{rubric_id}", response_model=List[EvaluationResult])
async def rubric_results(rubric_id: str, state: AppState = Depends(get_state)):
    """Stored results for one rubric, highest average first"""
    try:
        return rank_results(state.get_evaluation_results(rubric_id))
    except ScreeningBaseException as e:
        raise map_to_http_exception(e)


@router.get("/{rubric_id}/report", response_class=PlainTextResponse)
async def rubric_report(
    rubric_id: str,
    format: str = Query("csv", pattern="^(csv|markdown)$"),
    top: int = Query(10, ge=1, le=1000, description="Rows in the markdown table"),
    state: AppState = Depends(get_state),
):
    """Ranking report rendered in memory"""
    try:
        rubric = state.get_rubric(rubric_id)
        results = state.get_evaluation_results(rubric_id)
    except ScreeningBaseException as e:
        raise map_to_http_exception(e)

    if format == "markdown":
        return PlainTextResponse(reports.to_markdown(rubric, results, top=top), media_type="text/markdown")
    return PlainTextResponse(
        reports.to_csv(rubric, results),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{rubric_id}_report.csv"'},
    )
