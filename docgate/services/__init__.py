"""Services package for card validation."""

from .reference_template import ReferenceTemplate, TemplateLayout, DEFAULT_LAYOUT
from .frame_normalizer import FrameNormalizer, NormalizedFrame
from .candidate_detector import CandidateDetector
from .perspective_rectifier import PerspectiveRectifier
from .content_verifier import ContentVerifier
from .frame_analyzer import FrameAnalyzer, AnalysisOutcome
from .analysis_worker import AnalysisWorker
from .orchestration_state import OrchestrationState, OrchestrationPolicy, Stage, transition
from .orchestrator import ValidationOrchestrator
from .text_extraction import TextExtractor, CallableTextExtractor, load_extractor
from .pipeline import ValidationPipeline
from .webcam_service import WebcamService

__all__ = [
    "ReferenceTemplate", "TemplateLayout", "DEFAULT_LAYOUT",
    "FrameNormalizer", "NormalizedFrame", "CandidateDetector", "PerspectiveRectifier",
    "ContentVerifier", "FrameAnalyzer", "AnalysisOutcome", "AnalysisWorker",
    "OrchestrationState", "OrchestrationPolicy", "Stage", "transition",
    "ValidationOrchestrator", "TextExtractor", "CallableTextExtractor", "load_extractor",
    "ValidationPipeline", "WebcamService",
]
