"""Pure state machine sequencing detection, text extraction and retries.

``transition(state, event, policy)`` returns the next state and the effects
the owner must carry out. It never touches clocks, threads or collaborators,
so every path is testable with plain values.

At most one extraction is outstanding: a new attempt is not started until
the previous extraction has reported back, even after it timed out.

Stages::

    IDLE --valid result--> CARD_DETECTED --started--> EXTRACTION_IN_PROGRESS
      ^                                                   |          |
      |  retries exhausted                        failure |  success |
      +------------------ AWAITING_RETRY <----------------+          v
                              |  valid result (retry < max)       VALIDATED
                              +--> CARD_DETECTED
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional, Tuple

from ..core.constants import EXTRACTION_TIMER, IDENTITY_TIMER
from ..core.entities import ExtractionResult, ValidationResult


class Stage(Enum):
    IDLE = "idle"
    CARD_DETECTED = "card_detected"
    EXTRACTION_IN_PROGRESS = "extraction_in_progress"
    VALIDATED = "validated"
    AWAITING_RETRY = "awaiting_retry"


@dataclass(frozen=True)
class OrchestrationPolicy:
    max_retries: int = 3
    identity_timeout_ms: int = 10000
    extraction_timeout_ms: int = 5000

    @classmethod
    def from_config(cls, config) -> "OrchestrationPolicy":
        return cls(
            max_retries=config.max_retries,
            identity_timeout_ms=config.identity_timeout_ms,
            extraction_timeout_ms=config.extraction_timeout_ms,
        )


DEFAULT_POLICY = OrchestrationPolicy()


@dataclass(frozen=True)
class OrchestrationState:
    stage: Stage = Stage.IDLE
    retry_count: int = 0
    attempt: int = 0
    session: int = 0
    analysis_enabled: bool = True
    # attempt whose extraction has not reported back yet, across timeouts and resets
    extraction_pending: Optional[int] = None

    @property
    def is_terminal(self) -> bool:
        return self.stage is Stage.VALIDATED


INITIAL_STATE = OrchestrationState()


# Events

@dataclass(frozen=True, eq=False)
class DetectionReceived:
    result: ValidationResult
    region: Any = None


@dataclass(frozen=True, eq=False)
class ExtractionStarted:
    attempt: int
    region: Any = None


@dataclass(frozen=True)
class ExtractionFinished:
    attempt: int
    result: ExtractionResult


@dataclass(frozen=True)
class TimerExpired:
    name: str
    attempt: int


@dataclass(frozen=True)
class EnableAnalysis:
    pass


@dataclass(frozen=True)
class DisableAnalysis:
    pass


@dataclass(frozen=True)
class ResetRequested:
    pass


# Effects

@dataclass(frozen=True)
class StartTimer:
    name: str
    delay_ms: int
    attempt: int


@dataclass(frozen=True)
class CancelTimers:
    pass


@dataclass(frozen=True, eq=False)
class BeginExtraction:
    """Ask the owner to feed back ``ExtractionStarted`` for this attempt."""
    attempt: int
    region: Any = None


@dataclass(frozen=True, eq=False)
class InvokeExtraction:
    attempt: int
    region: Any = None


@dataclass(frozen=True)
class SetAnalysisEnabled:
    enabled: bool


@dataclass(frozen=True)
class EmitValidated:
    session: int
    attempt: int
    extraction: ExtractionResult


@dataclass(frozen=True)
class EmitRetriesExhausted:
    session: int
    retries: int
    reason: str


@dataclass(frozen=True)
class Discarded:
    reason: str


Effects = Tuple[Any, ...]

_ACTIVE_STAGES = (Stage.CARD_DETECTED, Stage.EXTRACTION_IN_PROGRESS)
_ARMED_STAGES = (Stage.IDLE, Stage.AWAITING_RETRY)


def transition(state: OrchestrationState, event: Any,
               policy: OrchestrationPolicy = DEFAULT_POLICY) -> Tuple[OrchestrationState, Effects]:
    """Next state and effects for ``event``; unknown events raise TypeError."""
    if isinstance(event, DetectionReceived):
        return _on_detection(state, event, policy)
    if isinstance(event, ExtractionStarted):
        return _on_extraction_started(state, event, policy)
    if isinstance(event, ExtractionFinished):
        return _on_extraction_finished(state, event, policy)
    if isinstance(event, TimerExpired):
        return _on_timer(state, event, policy)
    if isinstance(event, EnableAnalysis):
        if state.stage is Stage.VALIDATED:
            return state, (Discarded("enable ignored: session already validated"),)
        return replace(state, analysis_enabled=True), (SetAnalysisEnabled(True),)
    if isinstance(event, DisableAnalysis):
        return replace(state, analysis_enabled=False), (SetAnalysisEnabled(False),)
    if isinstance(event, ResetRequested):
        return _reset(state), (CancelTimers(), SetAnalysisEnabled(True))
    raise TypeError(f"Unknown orchestration event: {event!r}")


def _reset(state: OrchestrationState) -> OrchestrationState:
    # attempt moves on so that anything still in flight becomes stale
    return OrchestrationState(
        stage=Stage.IDLE,
        retry_count=0,
        attempt=state.attempt + 1,
        session=state.session + 1,
        analysis_enabled=True,
        extraction_pending=state.extraction_pending,
    )


def _on_detection(state, event: DetectionReceived, policy):
    if not event.result.is_valid:
        return state, ()
    if not state.analysis_enabled:
        return state, (Discarded("result ignored: analysis disabled"),)
    if state.stage not in _ARMED_STAGES:
        return state, (Discarded(f"result ignored in stage {state.stage.value}"),)
    if state.retry_count >= policy.max_retries:
        return state, (Discarded("result ignored: retry limit reached"),)
    if state.extraction_pending is not None:
        reason = f"result ignored: extraction for attempt {state.extraction_pending} still running"
        return state, (Discarded(reason),)

    attempt = state.attempt + 1
    new_state = replace(state, stage=Stage.CARD_DETECTED, attempt=attempt)
    return new_state, (
        StartTimer(IDENTITY_TIMER, policy.identity_timeout_ms, attempt),
        BeginExtraction(attempt, event.region),
    )


def _on_extraction_started(state, event: ExtractionStarted, policy):
    if state.stage is not Stage.CARD_DETECTED or event.attempt != state.attempt:
        return state, (Discarded(f"stale extraction start for attempt {event.attempt}"),)
    new_state = replace(state, stage=Stage.EXTRACTION_IN_PROGRESS, extraction_pending=event.attempt)
    return new_state, (
        StartTimer(EXTRACTION_TIMER, policy.extraction_timeout_ms, event.attempt),
        InvokeExtraction(event.attempt, event.region),
    )


def _on_extraction_finished(state, event: ExtractionFinished, policy):
    if event.attempt == state.extraction_pending:
        state = replace(state, extraction_pending=None)
    if state.stage not in _ACTIVE_STAGES or event.attempt != state.attempt:
        return state, (Discarded(f"stale extraction result for attempt {event.attempt}"),)
    if event.result.success and state.stage is Stage.EXTRACTION_IN_PROGRESS:
        new_state = replace(state, stage=Stage.VALIDATED, retry_count=0, analysis_enabled=False)
        return new_state, (
            CancelTimers(),
            SetAnalysisEnabled(False),
            EmitValidated(state.session, state.attempt, event.result),
        )
    reason = event.result.error_message or "extraction failed"
    return _fail(state, reason, policy)


def _on_timer(state, event: TimerExpired, policy):
    if state.stage not in _ACTIVE_STAGES or event.attempt != state.attempt:
        return state, (Discarded(f"stale timer '{event.name}' for attempt {event.attempt}"),)
    return _fail(state, f"{event.name} timeout", policy)


def _fail(state: OrchestrationState, reason: str, policy: OrchestrationPolicy):
    retries = state.retry_count + 1
    if retries < policy.max_retries:
        return replace(state, stage=Stage.AWAITING_RETRY, retry_count=retries), (CancelTimers(),)

    # hard reset
    new_state = OrchestrationState(
        stage=Stage.IDLE,
        retry_count=0,
        attempt=state.attempt,
        session=state.session + 1,
        analysis_enabled=True,
        extraction_pending=state.extraction_pending,
    )
    return new_state, (
        CancelTimers(),
        SetAnalysisEnabled(True),
        EmitRetriesExhausted(state.session, retries, reason),
    )


def describe(state: OrchestrationState) -> str:
    text = (f"{state.stage.value} (retry {state.retry_count}, attempt {state.attempt}, "
            f"session {state.session}, analysis {'on' if state.analysis_enabled else 'off'})")
    if state.extraction_pending is not None:
        text += f", extraction {state.extraction_pending} pending"
    return text


__all__ = [
    "Stage", "OrchestrationPolicy", "DEFAULT_POLICY", "OrchestrationState", "INITIAL_STATE",
    "DetectionReceived", "ExtractionStarted", "ExtractionFinished", "TimerExpired",
    "EnableAnalysis", "DisableAnalysis", "ResetRequested",
    "StartTimer", "CancelTimers", "BeginExtraction", "InvokeExtraction", "SetAnalysisEnabled",
    "EmitValidated", "EmitRetriesExhausted", "Discarded", "transition", "describe",
]
