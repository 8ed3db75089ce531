from typing import Dict, List, Optional

from screening.models.models import EvaluationResult
from screening.services.evaluator import ProfileEvaluator
from screening.services.state import AppState
from screening.utils.logging_config import get_logger

logger = get_logger(__name__)

RUNNER_CONCURRENCY_CAP = 5


class EvaluationRunner:
    """Evaluates every saved rubric against all loaded profiles"""

    def __init__(self, state: AppState, evaluator: ProfileEvaluator):
        self.state = state
        self.evaluator = evaluator

    async def run(self, max_concurrent: Optional[int] = None, batch_size: Optional[int] = None,
                  run_id: Optional[int] = None) -> Dict[str, List[EvaluationResult]]:
        """
        Returns results for the rubrics that finished. If the run is stopped,
        the rubric in flight is discarded and nothing further is evaluated.

        ``run_id`` is the token from ``AppState.start_evaluation``; without one
        the runner starts (or joins) the active run itself. A stopped run never
        touches the state of a run started after it.
        """
        state = self.state
        profiles = list(state.profiles)
        rubrics = list(state.rubrics)
        finished: Dict[str, List[EvaluationResult]] = {}

        if run_id is None:
            run_id = state.run_id if state.is_evaluating else state.start_evaluation()

        def stopped() -> bool:
            return state.should_stop(run_id)

        limit = max(1, min(max_concurrent or RUNNER_CONCURRENCY_CAP, len(profiles)))

        try:
            for index, rubric in enumerate(rubrics):
                if stopped():
                    logger.info(f"Evaluation run {run_id} stopped before rubric {rubric.title}")
                    return finished
                state.update_progress(
                    current_rubric=rubric.title,
                    current_rubric_index=index,
                    total_rubrics=len(rubrics),
                    current_profile=0,
                    total_profiles=len(profiles),
                    completed_rubrics=[r.id for r in rubrics[:index]],
                )
                logger.info(f"Evaluating {len(profiles)} profiles for rubric {rubric.title} ({index + 1}/{len(rubrics)})")

                run = await self.evaluator.run_concurrent(
                    profiles, rubric, max_concurrent=limit, batch_size=batch_size,
                    should_stop=stopped,
                )

                if stopped():
                    logger.info(f"Evaluation stopped during rubric {rubric.title}; partial results discarded")
                    return finished

                state.update_progress(current_profile=len(profiles))
                state.set_evaluation_results(rubric.id, run.results)
                finished[rubric.id] = run.results

            state.update_progress(completed_rubrics=[r.id for r in rubrics], current_rubric_index=len(rubrics))
            logger.info(f"Evaluation run finished for {len(rubrics)} rubric(s)")
            return finished
        finally:
            state.stop_evaluation(run_id)
