import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from conftest import FakeCompletionClient, make_rubric, uniform_response
from screening.models.settings import LLMSettings, ProcessingSettings
from screening.services.evaluator import ProfileEvaluator
from screening.services.runner import EvaluationRunner


def runner_for(state, responder):
    evaluator = ProfileEvaluator(FakeCompletionClient(responder), LLMSettings(),
                                 ProcessingSettings(dispatch_delay=0))
    return EvaluationRunner(state, evaluator)


@pytest.mark.asyncio
async def test_evaluates_every_rubric(state):
    backend = make_rubric("backend", item_ids=("experience", "skills"))
    design = make_rubric("design", item_ids=("portfolio",))
    state.add_rubric(backend)
    state.add_rubric(design)

    def responder(prompt):
        if "PORTFOLIO" in prompt:
            return uniform_response(["portfolio"], 2)
        return uniform_response(["experience", "skills"], 4)

    finished = await runner_for(state, responder).run()

    assert set(finished) == {"backend", "design"}
    assert all(r.average_score == 4.0 for r in state.get_evaluation_results("backend"))
    assert all(r.average_score == 2.0 for r in state.get_evaluation_results("design"))
    assert len(state.get_evaluation_results("backend")) == len(state.profiles)
    assert state.is_evaluating is False
    assert state.progress is None


@pytest.mark.asyncio
async def test_progress_tracks_current_rubric(state):
    state.add_rubric(make_rubric("backend", title="Backend"))
    state.add_rubric(make_rubric("data", title="Data"))
    seen = []

    def responder(prompt):
        progress = state.progress
        seen.append((progress.current_rubric, progress.current_rubric_index, progress.total_profiles))
        return "{}"

    await runner_for(state, responder).run(max_concurrent=1)

    assert ("Backend", 0, 3) in seen
    assert ("Data", 1, 3) in seen


@pytest.mark.asyncio
async def test_stop_discards_rubric_in_flight(state):
    state.add_rubric(make_rubric("first"))
    state.add_rubric(make_rubric("second"))

    def responder(prompt):
        state.stop_evaluation()
        return "{}"

    finished = await runner_for(state, responder).run(max_concurrent=1)

    assert finished == {}
    assert state.evaluations == {}
    assert state.is_evaluating is False


class SlowScoringClient:
    """Every completion takes ``delay`` seconds and scores all items ``score``."""

    def __init__(self, score, delay=0.05):
        self.score = score
        self.delay = delay

    async def complete(self, prompt, system, model=None, temperature=None, max_tokens=None):
        await asyncio.sleep(self.delay)
        return uniform_response(["experience", "skills"], self.score)


@pytest.mark.asyncio
async def test_stopped_run_leaves_a_restarted_run_alone(state):
    state.add_rubric(make_rubric("r1"))
    state.add_rubric(make_rubric("r2"))
    settings = ProcessingSettings(dispatch_delay=0)
    first = EvaluationRunner(state, ProfileEvaluator(SlowScoringClient(1), LLMSettings(), settings))
    second = EvaluationRunner(state, ProfileEvaluator(SlowScoringClient(5), LLMSettings(), settings))

    first_run = asyncio.create_task(first.run(max_concurrent=1))
    await asyncio.sleep(0.02)
    state.stop_evaluation()
    second_run = asyncio.create_task(second.run(max_concurrent=1))

    first_finished = await first_run
    assert first_finished == {}
    assert state.is_evaluating is True

    second_finished = await second_run
    assert set(second_finished) == {"r1", "r2"}
    assert all(r.average_score == 5.0 for results in state.evaluations.values() for r in results)
    assert state.is_evaluating is False


@pytest.mark.asyncio
async def test_explicit_concurrency_is_capped_by_profile_count(state):
    state.add_rubric(make_rubric())
    runner = runner_for(state, lambda prompt: "{}")

    with patch.object(runner.evaluator, "run_concurrent",
                      AsyncMock(wraps=runner.evaluator.run_concurrent)) as run_concurrent:
        await runner.run(max_concurrent=50)

    assert run_concurrent.call_args.kwargs["max_concurrent"] == len(state.profiles)
