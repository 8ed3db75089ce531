from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from screening.models.models import Profile, Rubric, RubricItem


class Optimization(str, Enum):
    """Evaluation strategies"""
    AUTO = "auto"
    PROMPT_REDESIGN = "prompt-redesign"
    BATCHING = "batching"
    CONCURRENCY = "concurrency"


# -------- Evaluation requests --------
class EvaluateRequest(BaseModel):
    """Either a single ``profile`` or a list of ``profiles``, scored against one rubric"""
    model_config = ConfigDict(populate_by_name=True)

    profile: Optional[Profile] = None
    profiles: Optional[List[Profile]] = None
    rubric: Rubric
    optimization: Optimization = Optimization.AUTO
    batch_size: Optional[int] = Field(default=None, ge=1, le=100, alias="batchSize")
    max_concurrent: Optional[int] = Field(default=None, ge=1, le=200, alias="maxConcurrent")


class BatchEvaluateRequest(BaseModel):
    profiles: List[Profile]
    rubric: Rubric


class ConcurrentEvaluateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    profiles: List[Profile]
    rubric: Rubric
    max_concurrent: Optional[int] = Field(default=None, ge=1, le=200, alias="maxConcurrent")
    batch_size: Optional[int] = Field(default=None, ge=1, le=100, alias="batchSize")


class RunEvaluationsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    max_concurrent: Optional[int] = Field(default=None, ge=1, le=200, alias="maxConcurrent")
    batch_size: Optional[int] = Field(default=None, ge=1, le=100, alias="batchSize")


# -------- Rubrics --------
class RubricUpdate(BaseModel):
    """Editable rubric fields (id and creation time are read-only)"""
    title: Optional[str] = None
    items: Optional[List[RubricItem]] = Field(default=None, min_length=1)

    def updates(self) -> Dict[str, object]:
        return self.model_dump(exclude_none=True)
