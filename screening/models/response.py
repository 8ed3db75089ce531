# models/response.py
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from screening.models.models import EvaluationProgress, EvaluationResult


class EvaluationRunResponse(BaseModel):
    """Aggregate response of a multi-profile evaluation"""
    model_config = ConfigDict(populate_by_name=True)

    results: List[EvaluationResult]
    total_time: int = Field(alias="totalTime")
    profile_count: int = Field(alias="profileCount")
    optimization: str
    batch_size: Optional[int] = Field(default=None, alias="batchSize")
    max_concurrent: Optional[int] = Field(default=None, alias="maxConcurrent")
    total_api_calls: Optional[int] = Field(default=None, alias="totalAPICalls")
    average_profiles_per_call: Optional[float] = Field(default=None, alias="averageProfilesPerCall")
    actual_speedup: Optional[float] = Field(default=None, alias="actualSpeedup")


class SingleEvaluationResponse(EvaluationResult):
    optimization: str = "prompt-redesign"
    profile_count: int = Field(default=1, alias="profileCount")


class EvaluationStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_evaluating: bool = Field(alias="isEvaluating")
    progress: Optional[EvaluationProgress] = None
    evaluated_rubrics: List[str] = Field(default_factory=list, alias="evaluatedRubrics")
