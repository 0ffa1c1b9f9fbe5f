"""Validation orchestrator: the single owner of the orchestration state.

Producers (the analysis worker, the extraction executor, UI controls) only
post events onto the channel. The owner thread drains the channel, applies
``transition`` and performs the resulting effects, then fires any expired
deadline timers. Nothing else ever mutates the state.
"""

import logging
import queue
import threading
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

from ..core.constants import EXTRACTION_TIMER, IDENTITY_TIMER
from ..core.entities import Bounds, ExtractionResult
from ..core.logging_config import set_correlation_id
from ..core.timers import DeadlineTimers
from .frame_analyzer import AnalysisOutcome
from .orchestration_state import (
    BeginExtraction, CancelTimers, DetectionReceived, DisableAnalysis, Discarded,
    EmitRetriesExhausted, EmitValidated, EnableAnalysis, ExtractionFinished, ExtractionStarted,
    INITIAL_STATE, InvokeExtraction, OrchestrationPolicy, OrchestrationState, ResetRequested,
    SetAnalysisEnabled, StartTimer, TimerExpired, describe, transition,
)
from .text_extraction import TextExtractor, as_text_extractor, run_extraction

logger = logging.getLogger(__name__)

_STOP = object()


class ValidationOrchestrator:
    """Sequences detection, text extraction, retries and timeouts.

    Args:
        extractor: Text-extraction collaborator (object or callable)
        analyzer: Frame analyzer receiving region-of-interest updates
        policy: Retry limit and timeouts
        on_validated: Called with the ``EmitValidated`` effect on success
        on_retries_exhausted: Called with the ``EmitRetriesExhausted`` effect
        executor: Runs extractions; defaults to a one-thread pool
        clock: Monotonic clock in seconds, shared with the timers
    """

    def __init__(self, extractor, analyzer=None,
                 policy: Optional[OrchestrationPolicy] = None,
                 on_validated: Optional[Callable[[EmitValidated], None]] = None,
                 on_retries_exhausted: Optional[Callable[[EmitRetriesExhausted], None]] = None,
                 executor: Optional[Executor] = None,
                 clock: Callable[[], float] = time.monotonic):
        self._extractor: TextExtractor = as_text_extractor(extractor)
        self._analyzer = analyzer
        self._policy = policy or OrchestrationPolicy()
        self._on_validated = on_validated
        self._on_retries_exhausted = on_retries_exhausted
        self._clock = clock

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="docgate-extraction")

        self._channel: "queue.Queue[Any]" = queue.Queue()
        self._timers = DeadlineTimers(clock)
        self._state: OrchestrationState = INITIAL_STATE
        self._owner: Optional[int] = None
        self._analysis_enabled = threading.Event()
        self._analysis_enabled.set()
        self._extractions_in_flight = 0
        self._in_flight_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._running = False
        self._correlation_id: Optional[str] = None

    @classmethod
    def from_config(cls, config, extractor, analyzer=None, **kwargs) -> "ValidationOrchestrator":
        return cls(extractor, analyzer=analyzer, policy=OrchestrationPolicy.from_config(config), **kwargs)

    # Producer side (any thread)

    def submit_result(self, outcome: AnalysisOutcome) -> None:
        """Post one analysed frame; invalid results are dropped early."""
        if not outcome.result.is_valid:
            return
        self._channel.put(DetectionReceived(outcome.result, outcome.region))

    def enable(self) -> None:
        self._channel.put(EnableAnalysis())

    def disable(self) -> None:
        self._channel.put(DisableAnalysis())

    def reset_to_initial_state(self) -> None:
        self._channel.put(ResetRequested())

    def update_region_of_interest(self, bounds: Optional[Bounds]) -> None:
        if self._analyzer is None:
            logger.warning("No analyzer attached; region of interest ignored")
            return
        self._analyzer.set_region_of_interest(bounds)

    @property
    def analysis_enabled(self) -> bool:
        """Whether the worker should keep analysing frames."""
        return self._analysis_enabled.is_set()

    @property
    def state(self) -> OrchestrationState:
        return self._state

    def get_status(self) -> Dict[str, Any]:
        state = self._state
        return {
            "stage": state.stage.value,
            "retry_count": state.retry_count,
            "attempt": state.attempt,
            "session": state.session,
            "analysis_enabled": state.analysis_enabled,
            "active_timers": len(self._timers),
            "timers": {name: self._timers.is_active(name) for name in (IDENTITY_TIMER, EXTRACTION_TIMER)},
            "pending_events": self._channel.qsize(),
            "extractions_in_flight": self._extractions_in_flight,
            "extraction_pending": state.extraction_pending,
            "running": self._running,
            "correlation_id": self._correlation_id,
        }

    # Owner side

    def process_pending(self) -> int:
        """Drain the channel, then fire expired timers. Returns events handled.

        Raises:
            RuntimeError: If called from a thread other than the owner
        """
        self._claim_ownership()
        handled = self._drain()
        for handle in self._timers.expired():
            self._dispatch(TimerExpired(handle.name, handle.token))
            # timer effects may have queued follow-up events
            handled += 1 + self._drain()
        return handled

    def _drain(self) -> int:
        handled = 0
        while True:
            try:
                event = self._channel.get_nowait()
            except queue.Empty:
                return handled
            if event is _STOP:
                continue
            self._dispatch(event)
            handled += 1

    def _claim_ownership(self) -> None:
        current = threading.get_ident()
        if self._owner is None:
            self._owner = current
            self._correlation_id = set_correlation_id()
            logger.info(f"Orchestrator owned by thread {threading.current_thread().name}")
        elif self._owner != current:
            raise RuntimeError("Orchestration state may only be driven from its owner thread")

    def _dispatch(self, event: Any) -> None:
        previous = self._state
        self._state, effects = transition(previous, event, self._policy)
        if self._state.session != previous.session:
            self._correlation_id = set_correlation_id()
            logger.info(f"New validation session {self._state.session}")
        if self._state != previous:
            logger.debug(f"{type(event).__name__}: {describe(previous)} -> {describe(self._state)}")
        for effect in effects:
            self._apply(effect)

    def _apply(self, effect: Any) -> None:
        if isinstance(effect, StartTimer):
            self._timers.start(effect.name, effect.delay_ms, effect.attempt)
        elif isinstance(effect, CancelTimers):
            self._timers.cancel_all()
        elif isinstance(effect, BeginExtraction):
            self._channel.put(ExtractionStarted(effect.attempt, effect.region))
        elif isinstance(effect, InvokeExtraction):
            self._invoke_extraction(effect.attempt, effect.region)
        elif isinstance(effect, SetAnalysisEnabled):
            if effect.enabled:
                self._analysis_enabled.set()
            else:
                self._analysis_enabled.clear()
        elif isinstance(effect, EmitValidated):
            logger.info(f"Card validated (session {effect.session}, attempt {effect.attempt}, "
                        f"confidence {effect.extraction.confidence:.2f})")
            self._notify(self._on_validated, effect)
        elif isinstance(effect, EmitRetriesExhausted):
            logger.warning(f"Retries exhausted after {effect.retries} attempts: {effect.reason}")
            self._notify(self._on_retries_exhausted, effect)
        elif isinstance(effect, Discarded):
            logger.debug(f"Discarded: {effect.reason}")
        else:
            raise TypeError(f"Unknown orchestration effect: {effect!r}")

    def _notify(self, callback: Optional[Callable[[Any], None]], payload: Any) -> None:
        if callback is None:
            return
        try:
            callback(payload)
        except Exception as e:
            logger.error(f"Error in outcome callback: {e}", exc_info=True)

    def _invoke_extraction(self, attempt: int, region) -> None:
        with self._in_flight_lock:
            self._extractions_in_flight += 1
        logger.info(f"Starting text extraction for attempt {attempt}")

        def _done(future) -> None:
            with self._in_flight_lock:
                self._extractions_in_flight -= 1
            result: ExtractionResult = future.result()
            self._channel.put(ExtractionFinished(attempt, result))

        run_extraction(self._extractor, region, self._executor).add_done_callback(_done)

    # Owner thread

    def start(self) -> None:
        """Drive the state from a dedicated owner thread."""
        if self._running:
            logger.warning("Orchestrator already running")
            return
        if self._owner is not None:
            raise RuntimeError("Orchestrator is already driven by another thread")
        self._running = True
        self._thread = threading.Thread(target=self._run, name="docgate-orchestrator", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        self._claim_ownership()
        while self._running:
            event = self._wait_for_event()
            if event is _STOP:
                break
            if event is not None:
                self._dispatch(event)
            self.process_pending()

    def _wait_for_event(self):
        deadline = self._timers.next_deadline()
        timeout = 0.1 if deadline is None else min(0.1, max(0.0, deadline - self._clock()))
        try:
            return self._channel.get(timeout=timeout)
        except queue.Empty:
            return None

    def stop(self) -> None:
        """Stop the owner thread and the extraction executor."""
        if self._running:
            self._running = False
            self._channel.put(_STOP)
            if self._thread and self._thread.is_alive():
                self._thread.join(timeout=2.0)
            self._thread = None
        if self._owns_executor:
            self._executor.shutdown(wait=False)
        logger.info("Orchestrator stopped")
