from datetime import datetime
from typing import List, Optional

from screening.models.models import EvaluationResult, EvaluationScore, Profile, Rubric, utcnow


def build_result(
    profile: Profile,
    rubric: Rubric,
    scores: List[EvaluationScore],
    evaluated_at: Optional[datetime] = None,
) -> EvaluationResult:
    """Total and (unrounded) average of one profile's item scores."""
    if len(scores) != len(rubric.items):
        raise ValueError(f"expected {len(rubric.items)} scores for rubric {rubric.id}, got {len(scores)}")
    total = sum(s.score for s in scores)
    return EvaluationResult(
        profile_id=profile.id,
        profile_name=profile.name or "Unknown",
        rubric_id=rubric.id,
        scores=scores,
        total_score=total,
        average_score=total / len(scores),
        evaluated_at=evaluated_at or utcnow(),
    )


def rank_results(results: List[EvaluationResult]) -> List[EvaluationResult]:
    """Highest average first; equal averages keep their input order."""
    return sorted(results, key=lambda r: r.average_score, reverse=True)
