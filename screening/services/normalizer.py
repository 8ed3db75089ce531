"""
Turns free-form LLM output into a complete, validated score set.

Whatever the model returns (fenced JSON, partial JSON, prose, nothing), every
rubric item of every profile ends up with exactly one integer score in 1..5.
"""
import math
from typing import Any, Dict, List, Optional

from screening.helpers.parsing import safe_json
from screening.helpers.prompts import profile_slot
from screening.models.models import EvaluationScore, Profile, Rubric
from screening.utils.logging_config import get_logger

logger = get_logger(__name__)

MIN_SCORE = 1
MAX_SCORE = 5
DEFAULT_SCORE = 3
DEFAULT_EXPLANATION = "Unable to evaluate this item. Default score assigned."
MISSING_EXPLANATION = "No explanation provided"


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return None if math.isnan(number) else number


def clamp_score(value: float) -> int:
    """Round half up, then bound to [1, 5]."""
    if math.isinf(value):
        return MAX_SCORE if value > 0 else MIN_SCORE
    return max(MIN_SCORE, min(MAX_SCORE, math.floor(value + 0.5)))


def _lookup(data: Dict[str, Any], key: str) -> Any:
    if key in data:
        return data[key]
    lowered = key.lower()
    for candidate, value in data.items():
        if isinstance(candidate, str) and candidate.lower() == lowered:
            return value
    return None


def normalize_item_scores(data: Any, rubric: Rubric) -> List[EvaluationScore]:
    """One EvaluationScore per rubric item, in rubric order."""
    if not isinstance(data, dict):
        data = {}

    scores = []
    for item in rubric.items:
        entry = _lookup(data, item.id)
        number = _as_number(entry.get("score")) if isinstance(entry, dict) else None
        if number is None:
            scores.append(EvaluationScore(item_id=item.id, score=DEFAULT_SCORE, explanation=DEFAULT_EXPLANATION))
            continue
        explanation = entry.get("explanation")
        if not isinstance(explanation, str) or not explanation.strip():
            explanation = MISSING_EXPLANATION
        scores.append(EvaluationScore(item_id=item.id, score=clamp_score(number), explanation=explanation))
    return scores


def normalize_profile_response(raw: str, rubric: Rubric) -> List[EvaluationScore]:
    """Normalize a single-profile completion keyed by item id."""
    data = safe_json(raw)
    if not data:
        logger.warning(f"Empty or unparseable evaluation for rubric {rubric.id}; default scores assigned")
    return normalize_item_scores(data, rubric)


def normalize_batch_response(raw: str, profiles: List[Profile], rubric: Rubric) -> List[List[EvaluationScore]]:
    """
    Normalize a batch completion keyed ``profile_<n>`` -> item id.

    The result has one score list per profile, in the order the profiles were
    placed in the prompt.
    """
    data = safe_json(raw)
    missing = [profile_slot(i) for i in range(len(profiles)) if not isinstance(data.get(profile_slot(i)), dict)]
    if missing:
        logger.warning(f"Batch response for rubric {rubric.id} missing {len(missing)} of {len(profiles)} profile slot(s)")
    return [normalize_item_scores(data.get(profile_slot(i)), rubric) for i in range(len(profiles))]
