"""High-level validation pipeline wiring."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

import numpy as np

from ..core.entities import Frame, ValidationResult
from ..core.performance import PerformanceMonitor
from ..utils.image_utils import frame_from_image
from .analysis_worker import AnalysisWorker
from .frame_analyzer import FrameAnalyzer
from .orchestration_state import EmitRetriesExhausted, EmitValidated
from .orchestrator import ValidationOrchestrator
from .reference_template import ReferenceTemplate
from .webcam_service import WebcamService

logger = logging.getLogger(__name__)


class ValidationPipeline:
    """Frame source -> analysis worker -> orchestrator.

    The template is loaded up front; a missing asset raises ``TemplateError``
    and the pipeline is never built.
    """

    def __init__(self, analyzer: FrameAnalyzer, orchestrator: ValidationOrchestrator,
                 worker: AnalysisWorker, frame_source: Optional[WebcamService] = None):
        self.analyzer = analyzer
        self.orchestrator = orchestrator
        self.worker = worker
        self.frame_source = frame_source
        self.worker.add_listener(self.orchestrator.submit_result)
        self._running = False

    @classmethod
    def from_config(cls, config, extractor,
                    on_validated: Optional[Callable[[EmitValidated], None]] = None,
                    on_retries_exhausted: Optional[Callable[[EmitRetriesExhausted], None]] = None,
                    template: Optional[ReferenceTemplate] = None,
                    frame_source: Optional[WebcamService] = None,
                    **orchestrator_kwargs) -> "ValidationPipeline":
        template = template or ReferenceTemplate.from_config(config)
        analyzer = FrameAnalyzer.from_config(template, config)
        orchestrator = ValidationOrchestrator.from_config(
            config, extractor, analyzer=analyzer,
            on_validated=on_validated, on_retries_exhausted=on_retries_exhausted,
            **orchestrator_kwargs,
        )
        worker = AnalysisWorker(
            analyzer,
            is_enabled=lambda: orchestrator.analysis_enabled,
            analysis_interval_ms=config.analysis_interval_ms,
        )
        return cls(analyzer, orchestrator, worker, frame_source)

    def add_listener(self, cb: Callable[[Any], None]) -> None:
        """Receive every per-frame analysis outcome."""
        self.worker.add_listener(cb)

    def submit_frame(self, frame: Frame) -> None:
        self.worker.submit(frame)

    def check_image(self, image: np.ndarray, rotation_degrees: int = 0) -> ValidationResult:
        """Validate one still image synchronously, bypassing the orchestrator."""
        return self.analyzer.analyze(frame_from_image(image, rotation_degrees)).result

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self.orchestrator.start()
        self.worker.start()
        if self.frame_source is not None:
            self.frame_source.start_stream(self.submit_frame)
        logger.info("Validation pipeline started")

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        if self.frame_source is not None:
            self.frame_source.stop_stream()
        self.worker.stop()
        self.orchestrator.stop()
        logger.info("Validation pipeline stopped")

    def get_status(self) -> Dict[str, Any]:
        monitor = PerformanceMonitor.instance()
        metrics = monitor.collect_process_metrics()
        status = {
            "orchestrator": self.orchestrator.get_status(),
            "analyzer": self.analyzer.get_performance_stats(),
            "worker": {
                "analyzed_frames": self.worker.analyzed_frames,
                "dropped_frames": self.worker.dropped_frames,
                "skipped_frames": self.worker.skipped_frames,
                "failed_frames": self.worker.failed_frames,
            },
            "process": {
                "memory_usage_mb": metrics.memory_usage_mb,
                "active_threads": metrics.active_threads,
            },
            "operations": {name: monitor.get_operation_stats(name) for name in monitor.operations()},
        }
        if self.frame_source is not None:
            status["source"] = {
                "streaming": self.frame_source.is_streaming(),
                "fps": self.frame_source.get_fps(),
                "has_frame": self.frame_source.get_current_frame() is not None,
            }
        return status
