"""
SessionGuard Detection Session

One session owns all mutable detection state for one interactive session:
the movement window, the input timing processor, the ingestion queue, the
merged probe results and the latest assessment. Nothing is global.

Detection Layers:
    Ingestion queue -> Aggregators -> Analyzers/Evaluators -> Fusion -> Verdict

Scheduling:
- submit() only enqueues (O(1), never blocks the producer)
- pump() drains the queue into the aggregators
- evaluate() runs one full cycle and swaps in a new RiskAssessment
- run() drives pump/evaluate on asyncio, probes run alongside it
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, TypeVar, Union

from pydantic import ValidationError

from sessionguard.config import DEFAULT_CONFIG, DetectionConfig
from sessionguard.models.classifier import VerdictClassifier
from sessionguard.models.environment import EnvironmentSnapshot, build_evaluators
from sessionguard.models.fusion import WeightedScoreAggregator
from sessionguard.models.patterns import EventTimingModel, MovementPatternModel
from sessionguard.processors.capabilities import (
    AsyncProbe,
    CapabilityProvider,
    ProbeRunner,
    StaticCapabilityProvider,
    merge_attributes,
)
from sessionguard.processors.movement import MovementAggregator
from sessionguard.processors.timing import InputTimingProcessor
from sessionguard.schemas.inputs import EnvironmentAttributes, InputEvent, MovementSample
from sessionguard.schemas.outputs import (
    CLASSIFICATION_LABELS,
    AnalyzerResult,
    Classification,
    RiskAssessment,
    SessionPhase,
    SpecialVerdict,
    SuspicionFactor,
)

logger = logging.getLogger(__name__)

R = TypeVar("R")

# Upper bound on how long run() sleeps between queue drains
MAX_POLL_INTERVAL_S = 0.1


# =============================================================================
# Exceptions
# =============================================================================

class AnalyzerFailure(Exception):
    """Raised when one analyzer or evaluator fails during a cycle."""
    pass


class SessionClosedError(Exception):
    """Raised when input is submitted to a closed session."""
    pass


# =============================================================================
# Session
# =============================================================================

class DetectionSession:
    """
    Explicit owner of one session's detection state.

    Create one per interactive session and close() it at session end.
    """

    def __init__(
        self,
        config: Optional[DetectionConfig] = None,
        capabilities: Optional[CapabilityProvider] = None,
        probes: Optional[Iterable[AsyncProbe]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or DEFAULT_CONFIG
        self.aggregator = MovementAggregator(self.config.movement)
        self.timing = InputTimingProcessor(self.config.evaluators.input_latency_window)

        self.pattern_model = MovementPatternModel(self.config)
        self.event_timing_model = EventTimingModel(self.config)
        self.evaluators = build_evaluators(self.config.evaluators)
        self.fusion = WeightedScoreAggregator(self.config.weights)
        self.classifier = VerdictClassifier(self.config)

        self._capabilities: CapabilityProvider = capabilities or StaticCapabilityProvider()
        self._probes: List[AsyncProbe] = list(probes or [])
        self._probe_runner = ProbeRunner(self.config.schedule.probe_timeout_s)
        self._probe_results: Dict[str, Any] = {}

        self._queue: Deque[Union[MovementSample, InputEvent]] = deque()
        self._clock = clock
        self._last_eval_at: Optional[float] = None
        self._samples_at_last_eval = 0
        self._tasks: List[asyncio.Task] = []
        self._failures: List[AnalyzerFailure] = []
        self._closed = False
        self._latest = self._empty_assessment()

        logger.info(f"DetectionSession created (config {self.config.version})")

    # =========================================================================
    # Ingestion
    # =========================================================================

    def submit(self, item: Union[MovementSample, InputEvent]) -> None:
        """Enqueue a movement sample or input event. Never blocks."""
        if self._closed:
            raise SessionClosedError("cannot submit to a closed session")
        self._queue.append(item)

    def submit_input(self, event: InputEvent) -> None:
        """Enqueue a discrete input edge (key, click)."""
        if not isinstance(event, InputEvent):
            raise TypeError(f"expected InputEvent, got {type(event).__name__}")
        self.submit(event)

    def submit_many(self, items: Iterable[Union[MovementSample, InputEvent]]) -> None:
        for item in items:
            self.submit(item)

    def pump(self) -> int:
        """
        Drain the ingestion queue.

        Returns:
            Number of movement samples accepted by the aggregator.
        """
        accepted = 0
        while self._queue:
            item = self._queue.popleft()
            if isinstance(item, MovementSample):
                if self.aggregator.ingest(item):
                    accepted += 1
            else:
                self.timing.process_event(item)
        return accepted

    @property
    def pending(self) -> int:
        return len(self._queue)

    # =========================================================================
    # Scheduling
    # =========================================================================

    def due(self, now: Optional[float] = None) -> bool:
        """True when the interval elapsed or enough new samples arrived."""
        if self._last_eval_at is None:
            return True
        now = self._clock() if now is None else now
        schedule = self.config.schedule
        if now - self._last_eval_at >= schedule.evaluation_interval_s:
            return True
        new_samples = self.aggregator.sample_count - self._samples_at_last_eval
        return schedule.evaluate_every_samples > 0 and new_samples >= schedule.evaluate_every_samples

    async def refresh_probes(self) -> Dict[str, Any]:
        """Run the registered probes once and merge whatever resolved in time."""
        updates = await self._probe_runner.collect(self._probes)
        if updates:
            self._probe_results = {**self._probe_results, **updates}
        return updates

    async def run(self, cycles: Optional[int] = None) -> RiskAssessment:
        """
        Cooperative evaluation loop.

        Probes run as a side task so a slow probe never delays a cycle. A
        probe refresh still pending when the loop stops is cancelled.

        Args:
            cycles: stop after this many evaluations (None runs until close()).
        """
        probe_task = None
        if self._probes:
            probe_task = asyncio.ensure_future(self.refresh_probes())
            self._tasks.append(probe_task)

        poll = min(self.config.schedule.evaluation_interval_s, MAX_POLL_INTERVAL_S)
        completed = 0
        try:
            while not self._closed and (cycles is None or completed < cycles):
                self.pump()
                if self.due():
                    self.evaluate()
                    completed += 1
                    if cycles is not None and completed >= cycles:
                        break
                await asyncio.sleep(poll)
        finally:
            if probe_task is not None:
                await self._stop_probe_task(probe_task)
        return self._latest

    async def _stop_probe_task(self, task: asyncio.Task) -> None:
        """Cancel an unfinished probe refresh and collect its outcome."""
        if not task.done():
            task.cancel()
        outcome = (await asyncio.gather(task, return_exceptions=True))[0]
        if isinstance(outcome, Exception):
            logger.warning(f"Probe refresh failed: {outcome!r}")
        if task in self._tasks:
            self._tasks.remove(task)

    def start(self) -> asyncio.Task:
        """Schedule run() on the running event loop."""
        task = asyncio.ensure_future(self.run())
        self._tasks.append(task)
        return task

    def close(self) -> None:
        """Cancel scheduled work and release the session state."""
        if self._closed:
            return
        self._closed = True
        for task in self._tasks:
            if not task.done():
                task.cancel()
        self._tasks.clear()
        self._queue.clear()
        self.aggregator.reset()
        self.timing.reset()
        logger.info("DetectionSession closed")

    @property
    def closed(self) -> bool:
        return self._closed

    # =========================================================================
    # Evaluation
    # =========================================================================

    @property
    def latest_assessment(self) -> RiskAssessment:
        return self._latest

    def evaluate(self) -> RiskAssessment:
        """Run one evaluation cycle over the current window."""
        sample_count = self.aggregator.sample_count
        phase = self.classifier.phase(sample_count)
        self._failures = []

        env_results = self._evaluate_environment()
        special_verdicts = self.classifier.special_verdicts(env_results)
        detected_software = sorted({m for r in env_results.values() for m in r.matches})

        if phase == SessionPhase.COLLECTING:
            assessment = RiskAssessment(
                phase=phase,
                special_verdicts=special_verdicts,
                detected_software=detected_software,
                sample_count=sample_count,
                config_version=self.config.version,
            )
        else:
            assessment = self._score(phase, sample_count, env_results, special_verdicts, detected_software)

        self._latest = assessment
        self._last_eval_at = self._clock()
        self._samples_at_last_eval = sample_count
        logger.debug(
            f"Cycle: phase={assessment.phase.value} score={assessment.overall_score:.3f} "
            f"factors={assessment.per_factor_scores}"
        )
        return assessment

    def _score(
        self,
        phase: SessionPhase,
        sample_count: int,
        env_results: Dict[str, AnalyzerResult],
        special_verdicts: List[SpecialVerdict],
        detected_software: List[str],
    ) -> RiskAssessment:
        factor_results: Dict[str, AnalyzerResult] = dict(env_results)

        pattern_results = self._run_all(
            (analyzer.name, lambda a=analyzer: a.analyze(self.aggregator))
            for analyzer in self.pattern_model.analyzers
        )
        movement = self.pattern_model.combine(pattern_results)
        if movement is not None:
            factor_results[movement.name] = movement

        timing_results = self._run_all(
            (analyzer.name, lambda a=analyzer: a.score_intervals(self.timing.intervals(a.category)))
            for analyzer in self.event_timing_model.analyzers
        )
        event_timing = self.event_timing_model.combine(timing_results)
        if event_timing is not None:
            factor_results[event_timing.name] = event_timing

        weights = self.fusion.weights
        overall = self.fusion.evaluate({name: r.score for name, r in factor_results.items()})

        factors = [
            SuspicionFactor(name=name, score=r.score, weight=weights[name], reasons=r.reasons)
            for name, r in sorted(factor_results.items())
            if weights.get(name, 0.0) > 0.0
        ]
        classification = self.classifier.classify(overall, phase)

        return RiskAssessment(
            overall_score=overall,
            classification=classification,
            label=CLASSIFICATION_LABELS[classification],
            phase=phase,
            factors=factors,
            analyzer_scores={r.name: r.score for r in pattern_results + timing_results if r.applicable},
            reasons=[reason for factor in factors for reason in factor.reasons],
            special_verdicts=special_verdicts,
            detected_software=detected_software,
            sample_count=sample_count,
            config_version=self.config.version,
        )

    def _evaluate_environment(self) -> Dict[str, AnalyzerResult]:
        try:
            attributes = self._capabilities.query()
        except Exception as e:
            logger.warning(f"Capability query failed, evaluating without attributes: {e!r}")
            attributes = EnvironmentAttributes()

        try:
            attributes = merge_attributes(attributes, self._probe_results)
        except ValidationError as e:
            logger.warning(f"Probe results rejected, evaluating without them: {e.error_count()} errors")

        snapshot = EnvironmentSnapshot(
            attributes=attributes,
            input_latencies=tuple(self.timing.latencies()),
        )
        results = self._run_all(
            (evaluator.name, lambda e=evaluator: e.evaluate(snapshot)) for evaluator in self.evaluators
        )
        return {r.name: r for r in results if r.applicable}

    def _run_all(self, units: Iterable) -> List[AnalyzerResult]:
        """Run (name, callable) units; a failing unit contributes nothing."""
        results = []
        for name, unit in units:
            result = self._contain(name, unit)
            if result is not None:
                results.append(result)
        return results

    def _contain(self, name: str, unit: Callable[[], R]) -> Optional[R]:
        try:
            return unit()
        except Exception as e:
            failure = AnalyzerFailure(f"{name}: {e!r}")
            failure.__cause__ = e
            self._failures.append(failure)
            logger.warning(f"Analyzer failed, excluding from this cycle: {failure}")
            return None

    @property
    def last_failures(self) -> List[AnalyzerFailure]:
        """Failures contained during the most recent cycle."""
        return list(self._failures)

    def _empty_assessment(self) -> RiskAssessment:
        return RiskAssessment(
            classification=Classification.INSUFFICIENT_DATA,
            phase=SessionPhase.COLLECTING,
            config_version=self.config.version,
        )
