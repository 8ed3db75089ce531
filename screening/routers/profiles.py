from typing import List

from fastapi import APIRouter, Depends

from screening.models.models import Profile
from screening.routers.dependencies import get_state
from screening.services.state import AppState
from screening.utils.exceptions import NotFoundError, map_to_http_exception

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get("", response_model=List[Profile])
async def list_profiles(state: AppState = Depends(get_state)):
    """Get all loaded profiles"""
    return state.profiles


@router.get("/{profile_id}", response_model=Profile)
async def get_profile(profile_id: str, state: AppState = Depends(get_state)):
    try:
        return state.get_profile(profile_id)
    except NotFoundError as e:
        raise map_to_http_exception(e)


@router.get("/{profile_id}/evaluations")
async def profile_evaluations(profile_id: str, state: AppState = Depends(get_state)):
    """Scores this profile received under every evaluated rubric"""
    try:
        state.get_profile(profile_id)
    except NotFoundError as e:
        raise map_to_http_exception(e)
    return {
        rubric_id: next((r.model_dump(mode="json", by_alias=True) for r in results if r.profile_id == profile_id), None)
        for rubric_id, results in state.evaluations.items()
    }
