"""
Profile evaluation strategies.

Three ways of scoring a set of profiles against one rubric:

* ``prompt-redesign`` - one call per profile covering every rubric item, run sequentially
* ``batching``        - several profiles per call, batches run one after another
* ``concurrency``     - calls dispatched through a bounded concurrent window,
                        either one profile or one batch per call

``auto`` picks one of them from the number of profiles.
"""
import asyncio
import time
from typing import Any, AsyncIterator, Callable, Dict, List, NamedTuple, Optional

from screening.helpers.prompts import (
    BATCH_SYSTEM_PROMPT,
    SINGLE_SYSTEM_PROMPT,
    build_batch_prompt,
    build_profile_prompt,
)
from screening.models.models import EvaluationResult, Profile, Rubric, utcnow
from screening.models.response import EvaluationRunResponse
from screening.models.schemas import Optimization
from screening.models.settings import LLMSettings, ProcessingSettings
from screening.services.aggregator import build_result, rank_results
from screening.services.dispatcher import ConcurrencyDispatcher
from screening.services.normalizer import normalize_batch_response, normalize_profile_response
from screening.utils.logging_config import PerformanceMonitor, get_logger, log_function_call

logger = get_logger(__name__)

StopCheck = Optional[Callable[[], bool]]


class UnitOutcome(NamedTuple):
    start: int
    results: List[EvaluationResult]
    elapsed_ms: int

    @property
    def per_profile_ms(self) -> int:
        return max(1, round(self.elapsed_ms / max(1, len(self.results))))


def select_optimization(requested: Optimization, profile_count: int) -> Optimization:
    if requested != Optimization.AUTO:
        return requested
    if profile_count <= 3:
        return Optimization.CONCURRENCY
    if profile_count <= 10:
        return Optimization.BATCHING
    return Optimization.CONCURRENCY


def chunk(profiles: List[Profile], size: int) -> List[List[Profile]]:
    return [profiles[i:i + size] for i in range(0, len(profiles), size)]


def _elapsed_ms(start: float) -> int:
    return int(round((time.perf_counter() - start) * 1000))


def _stopped(should_stop: StopCheck) -> bool:
    return bool(should_stop and should_stop())


class ProfileEvaluator:
    """Scores profiles against a rubric through the completion client"""

    def __init__(
        self,
        client,
        llm_settings: Optional[LLMSettings] = None,
        processing: Optional[ProcessingSettings] = None,
    ):
        self.client = client
        self.llm = llm_settings or LLMSettings()
        self.processing = processing or ProcessingSettings()

    # ---------------- single calls ----------------

    async def evaluate_profile(self, profile: Profile, rubric: Rubric) -> EvaluationResult:
        """All rubric items for one profile in a single completion."""
        raw = await self.client.complete(
            build_profile_prompt(profile, rubric),
            SINGLE_SYSTEM_PROMPT,
            model=self.llm.model_name,
            temperature=self.llm.temperature,
            max_tokens=self.llm.max_tokens,
        )
        return build_result(profile, rubric, normalize_profile_response(raw, rubric))

    @log_function_call
    async def evaluate_batch(self, profiles: List[Profile], rubric: Rubric) -> List[EvaluationResult]:
        """Several profiles in a single completion; results keep the batch order."""
        if not profiles:
            return []
        raw = await self.client.complete(
            build_batch_prompt(profiles, rubric),
            BATCH_SYSTEM_PROMPT,
            model=self.llm.batch_model,
        )
        evaluated_at = utcnow()
        per_profile = normalize_batch_response(raw, profiles, rubric)
        return [build_result(p, rubric, scores, evaluated_at) for p, scores in zip(profiles, per_profile)]

    # ---------------- strategies ----------------

    async def run(
        self,
        profiles: List[Profile],
        rubric: Rubric,
        optimization: Optimization = Optimization.AUTO,
        batch_size: Optional[int] = None,
        max_concurrent: Optional[int] = None,
    ) -> EvaluationRunResponse:
        selected = select_optimization(optimization, len(profiles))
        logger.info(f"Evaluating {len(profiles)} profile(s) against rubric {rubric.id} using {selected.value}")
        if selected == Optimization.BATCHING:
            return await self.run_batched(profiles, rubric, batch_size=batch_size)
        if selected == Optimization.CONCURRENCY:
            return await self.run_concurrent(profiles, rubric, max_concurrent=max_concurrent)
        return await self.run_sequential(profiles, rubric)

    async def run_sequential(self, profiles: List[Profile], rubric: Rubric,
                             should_stop: StopCheck = None) -> EvaluationRunResponse:
        start = time.perf_counter()
        results = []
        with PerformanceMonitor(f"sequential evaluation of {len(profiles)} profiles", logger, threshold_ms=60000):
            for i, profile in enumerate(profiles):
                if _stopped(should_stop):
                    break
                logger.debug(f"Evaluating profile {i + 1}/{len(profiles)}: {profile.name}")
                results.append(await self.evaluate_profile(profile, rubric))

        return EvaluationRunResponse(
            results=rank_results(results),
            total_time=_elapsed_ms(start),
            profile_count=len(profiles),
            total_api_calls=len(results),
            optimization=Optimization.PROMPT_REDESIGN.value,
        )

    async def run_batched(self, profiles: List[Profile], rubric: Rubric, batch_size: Optional[int] = None,
                          should_stop: StopCheck = None) -> EvaluationRunResponse:
        size = batch_size or self.processing.batch_size
        batches = chunk(profiles, size)
        start = time.perf_counter()
        results = []
        calls = 0
        with PerformanceMonitor(f"batched evaluation of {len(profiles)} profiles", logger, threshold_ms=60000):
            for number, batch in enumerate(batches, start=1):
                if _stopped(should_stop):
                    break
                logger.debug(f"Processing batch {number}/{len(batches)} ({len(batch)} profiles)")
                results.extend(await self.evaluate_batch(batch, rubric))
                calls += 1

        return EvaluationRunResponse(
            results=rank_results(results),
            total_time=_elapsed_ms(start),
            profile_count=len(profiles),
            batch_size=size,
            total_api_calls=calls,
            average_profiles_per_call=len(profiles) / calls if calls else 0.0,
            optimization=Optimization.BATCHING.value,
        )

    async def run_concurrent(self, profiles: List[Profile], rubric: Rubric, max_concurrent: Optional[int] = None,
                             batch_size: Optional[int] = None,
                             should_stop: StopCheck = None) -> EvaluationRunResponse:
        """
        Dispatch every unit through a bounded window and wait for all of them.

        Without ``batch_size`` each profile is its own unit; with it, units are
        batches of that size.
        """
        limit = max_concurrent or self.processing.max_concurrent
        dispatcher = ConcurrencyDispatcher(limit, self.processing.dispatch_delay)
        units = self._plan_units(profiles, batch_size)

        start = time.perf_counter()
        with PerformanceMonitor(f"concurrent evaluation of {len(profiles)} profiles", logger, threshold_ms=60000):
            outcomes = await asyncio.gather(*(
                dispatcher.execute(self._unit(index, batch, rubric, batch_size is not None, should_stop))
                for index, batch in units
            ))
        total_time = _elapsed_ms(start)

        results = [r for outcome in outcomes for r in outcome.results]
        sequential_time = sum(outcome.per_profile_ms * len(outcome.results) for outcome in outcomes)
        actual_speedup = sequential_time / max(1, total_time)
        logger.info(f"Concurrent evaluation finished in {total_time}ms "
                    f"(peak {dispatcher.peak_running} in flight, {actual_speedup:.2f}x speedup)")

        return EvaluationRunResponse(
            results=rank_results(results),
            total_time=total_time,
            profile_count=len(profiles),
            batch_size=batch_size,
            max_concurrent=limit,
            actual_speedup=actual_speedup,
            optimization=Optimization.CONCURRENCY.value,
        )

    async def stream_concurrent(self, profiles: List[Profile], rubric: Rubric,
                                max_concurrent: Optional[int] = None, batch_size: Optional[int] = None,
                                should_stop: StopCheck = None) -> AsyncIterator[Dict[str, Any]]:
        """
        Yield NDJSON-ready events: ``start``, one ``result`` per profile in
        completion order, then ``done`` (or ``error`` if something escapes).
        """
        limit = max_concurrent or self.processing.max_concurrent
        size = batch_size or self.processing.batch_size
        total = len(profiles)
        yield {"type": "start", "total": total, "maxConcurrent": limit, "batchSize": size}

        dispatcher = ConcurrencyDispatcher(limit, self.processing.dispatch_delay)
        start = time.perf_counter()
        tasks = [
            asyncio.ensure_future(dispatcher.execute(self._unit(index, batch, rubric, True, should_stop)))
            for index, batch in self._plan_units(profiles, size)
        ]
        completed = 0
        sequential_time = 0
        try:
            for next_done in asyncio.as_completed(tasks):
                outcome = await next_done
                for offset, result in enumerate(outcome.results):
                    completed += 1
                    sequential_time += outcome.per_profile_ms
                    yield {
                        "type": "result",
                        "index": outcome.start + offset,
                        "profileId": result.profile_id,
                        "profileName": result.profile_name,
                        "evaluationTime": outcome.per_profile_ms,
                        "completed": completed,
                        "total": total,
                        "result": result.model_dump(mode="json", by_alias=True),
                    }
        except Exception as exc:
            logger.error(f"Streaming evaluation failed after {completed}/{total} profiles: {exc}", exc_info=True)
            yield {"type": "error", "message": str(exc) or "Unknown error"}
            return
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        total_time = _elapsed_ms(start)
        yield {
            "type": "done",
            "totalTime": total_time,
            "maxConcurrent": limit,
            "actualSpeedup": sequential_time / max(1, total_time),
        }

    # ---------------- helpers ----------------

    @staticmethod
    def _plan_units(profiles: List[Profile], batch_size: Optional[int]):
        """(index of first profile, profiles) for every unit of work."""
        size = batch_size or 1
        return [(i, profiles[i:i + size]) for i in range(0, len(profiles), size)]

    def _unit(self, index: int, batch: List[Profile], rubric: Rubric, batched: bool, should_stop: StopCheck):
        async def run() -> UnitOutcome:
            if _stopped(should_stop):
                return UnitOutcome(index, [], 0)
            started = time.perf_counter()
            if batched:
                logger.debug(f"Starting batch at profile {index + 1} (size {len(batch)})")
                results = await self.evaluate_batch(batch, rubric)
            else:
                results = [await self.evaluate_profile(batch[0], rubric)]
            return UnitOutcome(index, results, _elapsed_ms(started))

        return run
