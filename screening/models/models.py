import re
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

SCORE_LEVELS = (1, 2, 3, 4, 5)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def stable_profile_id(name: str, email: str) -> str:
    """Deterministic id so the same submission maps to the same profile across requests."""
    slug = re.sub(r"\s+", "-", (name or "").strip()).lower()
    local_part = (email or "").split("@")[0]
    return f"{slug}-{local_part}"


# -------- Profiles --------
class WorkExperience(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    company: str = ""
    role_name: str = Field(default="", alias="roleName")


class Degree(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    degree: str = ""
    subject: str = ""
    school: str = ""
    gpa: str = ""
    start_date: str = Field(default="", alias="startDate")
    end_date: str = Field(default="", alias="endDate")
    original_school: str = Field(default="", alias="originalSchool")
    is_top50: bool = Field(default=False, alias="isTop50")


class Education(BaseModel):
    model_config = ConfigDict(frozen=True)

    highest_level: str = ""
    degrees: List[Degree] = Field(default_factory=list)


class Profile(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = ""
    name: str
    email: str = ""
    phone: str = ""
    location: str = ""
    submitted_at: str = ""
    work_availability: List[str] = Field(default_factory=list)
    annual_salary_expectation: Dict[str, str] = Field(default_factory=dict)
    work_experiences: List[WorkExperience] = Field(default_factory=list)
    education: Education = Field(default_factory=Education)
    skills: List[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def assign_stable_id(cls, data):
        if isinstance(data, dict) and not data.get("id"):
            data = {**data, "id": stable_profile_id(data.get("name", ""), data.get("email", ""))}
        return data

    @field_validator("annual_salary_expectation", mode="before")
    @classmethod
    def stringify_salaries(cls, v):
        if isinstance(v, dict):
            return {k: str(val) for k, val in v.items() if val is not None}
        return v


# -------- Rubrics --------
class RubricItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(min_length=1)
    description: str
    score_descriptions: Dict[int, str] = Field(alias="scoreDescriptions")

    @field_validator("score_descriptions")
    @classmethod
    def require_all_levels(cls, v: Dict[int, str]) -> Dict[int, str]:
        if sorted(v) != list(SCORE_LEVELS):
            raise ValueError("scoreDescriptions must define exactly the levels 1, 2, 3, 4 and 5")
        return v


class Rubric(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(min_length=1)
    title: str
    items: List[RubricItem] = Field(min_length=1)
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")

    @field_validator("items")
    @classmethod
    def unique_item_ids(cls, v: List[RubricItem]) -> List[RubricItem]:
        ids = [item.id for item in v]
        if len(ids) != len(set(ids)):
            raise ValueError("rubric item ids must be unique")
        return v


# -------- Evaluations --------
class EvaluationScore(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    item_id: str = Field(alias="itemId")
    score: int = Field(ge=1, le=5)
    explanation: str


class EvaluationResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    profile_id: str = Field(alias="profileId")
    rubric_id: str = Field(alias="rubricId")
    scores: List[EvaluationScore]
    total_score: int = Field(alias="totalScore")
    average_score: float = Field(alias="averageScore")
    evaluated_at: datetime = Field(default_factory=utcnow, alias="evaluatedAt")
    profile_name: Optional[str] = Field(default=None, alias="profileName")

    @model_validator(mode="after")
    def totals_match_scores(self):
        if self.total_score != sum(s.score for s in self.scores):
            raise ValueError("totalScore must equal the sum of item scores")
        return self


class EvaluationProgress(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_rubric: str = Field(default="", alias="currentRubric")
    current_rubric_index: int = Field(default=0, alias="currentRubricIndex")
    total_rubrics: int = Field(default=0, alias="totalRubrics")
    current_profile: int = Field(default=0, alias="currentProfile")
    total_profiles: int = Field(default=0, alias="totalProfiles")
    completed_rubrics: List[str] = Field(default_factory=list, alias="completedRubrics")
