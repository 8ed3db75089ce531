from typing import List

from fastapi import APIRouter, Depends

from screening.models.models import Rubric
from screening.models.schemas import RubricUpdate
from screening.routers.dependencies import get_state
from screening.services.state import AppState
from screening.utils.exceptions import ScreeningBaseException, map_to_http_exception
from screening.utils.logging_config import log_api_call

router = APIRouter(prefix="/rubrics", tags=["rubrics"])


@router.get("", response_model=List[Rubric])
async def list_rubrics(state: AppState = Depends(get_state)):
    return state.rubrics


@router.post("", response_model=Rubric, status_code=201)
@log_api_call("create_rubric")
async def create_rubric(rubric: Rubric, state: AppState = Depends(get_state)):
    """Save a new rubric for subsequent evaluation runs"""
    try:
        return state.add_rubric(rubric)
    except ScreeningBaseException as e:
        raise map_to_http_exception(e)


@router.get("/{rubric_id}", response_model=Rubric)
async def get_rubric(rubric_id: str, state: AppState = Depends(get_state)):
    try:
        return state.get_rubric(rubric_id)
    except ScreeningBaseException as e:
        raise map_to_http_exception(e)


@router.patch("/{rubric_id}", response_model=Rubric)
@log_api_call("update_rubric")
async def update_rubric(rubric_id: str, update: RubricUpdate, state: AppState = Depends(get_state)):
    """Edit title and/or items; results computed with the old rubric are dropped"""
    try:
        return state.update_rubric(rubric_id, update.updates())
    except ScreeningBaseException as e:
        raise map_to_http_exception(e)


@router.delete("/{rubric_id}")
@log_api_call("delete_rubric")
async def delete_rubric(rubric_id: str, state: AppState = Depends(get_state)):
    try:
        state.delete_rubric(rubric_id)
    except ScreeningBaseException as e:
        raise map_to_http_exception(e)
    return {"rubric_id": rubric_id, "deleted": True}
