# routers/evaluate.py
import json
from typing import Union

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from screening.models.response import EvaluationRunResponse, SingleEvaluationResponse
from screening.models.schemas import (
    BatchEvaluateRequest,
    ConcurrentEvaluateRequest,
    EvaluateRequest,
    Optimization,
)
from screening.routers.dependencies import get_evaluator
from screening.services.evaluator import ProfileEvaluator
from screening.utils.logging_config import get_logger, log_api_call

router = APIRouter(tags=["evaluate"])
logger = get_logger(__name__)

NDJSON_MEDIA_TYPE = "application/x-ndjson"


def _wants_stream(request: Request) -> bool:
    return (request.query_params.get("stream") == "1"
            or NDJSON_MEDIA_TYPE in request.headers.get("accept", ""))


@router.post("/evaluate", response_model=Union[SingleEvaluationResponse, EvaluationRunResponse],
             response_model_exclude_none=True)
@log_api_call("evaluate")
async def evaluate(payload: EvaluateRequest, evaluator: ProfileEvaluator = Depends(get_evaluator)):
    """
    ``{profile, rubric}`` scores one profile with a single all-items prompt.
    ``{profiles, rubric, optimization?, batchSize?, maxConcurrent?}`` scores a
    set with the chosen (or automatically selected) strategy.
    """
    if payload.profile is not None:
        result = await evaluator.evaluate_profile(payload.profile, payload.rubric)
        return SingleEvaluationResponse(**result.model_dump())

    if payload.profiles is None:
        raise HTTPException(status_code=400,
                            detail="Invalid request format. Provide either {profile, rubric} or {profiles, rubric}")
    if not payload.profiles:
        raise HTTPException(status_code=400, detail="At least one profile is required")

    return await evaluator.run(
        payload.profiles,
        payload.rubric,
        optimization=payload.optimization,
        batch_size=payload.batch_size,
        max_concurrent=payload.max_concurrent,
    )


@router.post("/evaluate-batch", response_model=EvaluationRunResponse, response_model_exclude_none=True)
@log_api_call("evaluate_batch")
async def evaluate_batch(payload: BatchEvaluateRequest, evaluator: ProfileEvaluator = Depends(get_evaluator)):
    """All given profiles in one batch prompt"""
    if not payload.profiles:
        raise HTTPException(status_code=400, detail="At least one profile is required")

    return await evaluator.run_batched(payload.profiles, payload.rubric, batch_size=len(payload.profiles))


@router.post("/evaluate-concurrent", response_model=EvaluationRunResponse, response_model_exclude_none=True)
async def evaluate_concurrent(payload: ConcurrentEvaluateRequest, request: Request,
                              evaluator: ProfileEvaluator = Depends(get_evaluator)):
    """
    Batches dispatched through a bounded concurrent window.

    Streams newline-delimited JSON progress events when the client asks for
    ``application/x-ndjson`` (or passes ``?stream=1``).
    """
    if not payload.profiles:
        raise HTTPException(status_code=400, detail="At least one profile is required")

    batch_size = payload.batch_size or evaluator.processing.batch_size
    logger.info(f"Starting concurrent evaluation of {len(payload.profiles)} profiles "
                f"(max concurrent: {payload.max_concurrent or evaluator.processing.max_concurrent}, "
                f"batch size: {batch_size})")

    if _wants_stream(request):
        events = evaluator.stream_concurrent(
            payload.profiles, payload.rubric,
            max_concurrent=payload.max_concurrent, batch_size=batch_size,
        )

        async def ndjson():
            try:
                async for event in events:
                    yield json.dumps(event) + "\n"
            finally:
                await events.aclose()

        return StreamingResponse(
            ndjson(),
            media_type=NDJSON_MEDIA_TYPE,
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    return await evaluator.run_concurrent(
        payload.profiles, payload.rubric,
        max_concurrent=payload.max_concurrent, batch_size=batch_size,
    )
