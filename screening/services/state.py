"""
Application state: loaded profiles, user-defined rubrics, evaluation results
and the progress of the current evaluation run.

One instance lives on ``app.state`` and is handed to routers through a
dependency; nothing here is persisted.
"""
from typing import Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from screening.models.models import EvaluationProgress, EvaluationResult, Profile, Rubric
from screening.utils.exceptions import BusinessLogicError, NotFoundError, ValidationError
from screening.utils.logging_config import get_logger

logger = get_logger(__name__)


class AppState:
    """Mutable process-wide state with explicit mutation entry points"""

    def __init__(self, profiles: Optional[List[Profile]] = None):
        self.profiles: List[Profile] = list(profiles or [])
        self.rubrics: List[Rubric] = []
        self.evaluations: Dict[str, List[EvaluationResult]] = {}
        self.is_evaluating = False
        self.run_id = 0
        self.progress: Optional[EvaluationProgress] = None

    # ---------------- profiles ----------------

    def set_profiles(self, profiles: List[Profile]) -> None:
        self.profiles = list(profiles)
        logger.info(f"Loaded {len(self.profiles)} profiles into application state")

    def get_profile(self, profile_id: str) -> Profile:
        for profile in self.profiles:
            if profile.id == profile_id:
                return profile
        raise NotFoundError(f"Profile {profile_id} not found", resource="profile", resource_id=profile_id)

    # ---------------- rubrics ----------------

    def add_rubric(self, rubric: Rubric) -> Rubric:
        if any(r.id == rubric.id for r in self.rubrics):
            raise BusinessLogicError(f"Rubric {rubric.id} already exists", rule="unique_rubric_id")
        self.rubrics.append(rubric)
        logger.info(f"Added rubric {rubric.id} ({len(rubric.items)} items)")
        return rubric

    def get_rubric(self, rubric_id: str) -> Rubric:
        for rubric in self.rubrics:
            if rubric.id == rubric_id:
                return rubric
        raise NotFoundError(f"Rubric {rubric_id} not found", resource="rubric", resource_id=rubric_id)

    def update_rubric(self, rubric_id: str, updates: Dict[str, object]) -> Rubric:
        """Replace the rubric with an edited copy; its previous results no longer apply."""
        current = self.get_rubric(rubric_id)
        fields = {k: v for k, v in updates.items() if k in ("title", "items")}
        try:
            edited = Rubric.model_validate({**current.model_dump(), **fields})
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid rubric update: {e.error_count()} error(s)", field="items",
                                  cause=e) from e

        self.rubrics = [edited if r.id == rubric_id else r for r in self.rubrics]
        if self.evaluations.pop(rubric_id, None) is not None:
            logger.info(f"Dropped stale results for edited rubric {rubric_id}")
        return edited

    def delete_rubric(self, rubric_id: str) -> None:
        self.get_rubric(rubric_id)
        self.rubrics = [r for r in self.rubrics if r.id != rubric_id]
        self.evaluations.pop(rubric_id, None)
        logger.info(f"Deleted rubric {rubric_id}")

    # ---------------- evaluation runs ----------------

    def start_evaluation(self) -> int:
        """Mark a run active and return its token; each start gets a new one."""
        if self.is_evaluating:
            raise BusinessLogicError("An evaluation run is already in progress", rule="single_active_run")
        self.run_id += 1
        self.is_evaluating = True
        self.progress = None
        return self.run_id

    def stop_evaluation(self, run_id: Optional[int] = None) -> None:
        """Stop the active run. With ``run_id``, only if that run is still the active one."""
        if run_id is not None and run_id != self.run_id:
            return
        self.is_evaluating = False
        self.progress = None

    def should_stop(self, run_id: Optional[int] = None) -> bool:
        if not self.is_evaluating:
            return True
        return run_id is not None and run_id != self.run_id

    def update_progress(self, **fields) -> EvaluationProgress:
        current = self.progress.model_dump() if self.progress else {}
        self.progress = EvaluationProgress(**{**current, **fields})
        return self.progress

    def set_evaluation_results(self, rubric_id: str, results: List[EvaluationResult]) -> None:
        self.evaluations[rubric_id] = list(results)

    def get_evaluation_results(self, rubric_id: str) -> List[EvaluationResult]:
        if rubric_id not in self.evaluations:
            raise NotFoundError(f"No evaluation results for rubric {rubric_id}", resource="evaluation",
                                resource_id=rubric_id)
        return self.evaluations[rubric_id]

    def clear_evaluations(self) -> None:
        self.evaluations = {}
