"""Contract with the downstream text-extraction (MRZ reading) collaborator.

An extractor receives the rectified card image and reports an
``ExtractionResult``, either directly or through a ``Future``. It may raise;
the orchestrator turns every exception into a failed extraction.
"""

import importlib
import logging
import time
from concurrent.futures import Executor, Future
from typing import Callable, Protocol, Union, runtime_checkable

import numpy as np

from ..core.entities import ExtractionResult
from ..core.exceptions import ExtractionError

logger = logging.getLogger(__name__)

ExtractionOutput = Union[ExtractionResult, "Future[ExtractionResult]"]


@runtime_checkable
class TextExtractor(Protocol):
    def extract(self, region: np.ndarray) -> ExtractionOutput:
        ...


class CallableTextExtractor:
    """Adapts a plain ``function(region) -> ExtractionResult``."""

    def __init__(self, func: Callable[[np.ndarray], ExtractionOutput], name: str = None):
        self._func = func
        self.name = name or getattr(func, "__name__", "extractor")

    def extract(self, region: np.ndarray) -> ExtractionOutput:
        return self._func(region)

    def __repr__(self) -> str:
        return f"CallableTextExtractor({self.name})"


def as_text_extractor(obj) -> TextExtractor:
    """Accept an extractor object or a bare callable."""
    if isinstance(obj, TextExtractor):
        return obj
    if callable(obj):
        return CallableTextExtractor(obj)
    raise TypeError(f"Not a text extractor: {obj!r}")


def load_extractor(import_path: str) -> TextExtractor:
    """Resolve ``"package.module:attribute"`` to an extractor.

    A class attribute is instantiated without arguments.

    Raises:
        ExtractionError: If the module or attribute cannot be loaded
    """
    module_name, sep, attr = import_path.partition(":")
    if not sep or not module_name or not attr:
        raise ExtractionError(f"Extractor must be given as 'module:attribute', got '{import_path}'")
    try:
        module = importlib.import_module(module_name)
        target = getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise ExtractionError(f"Cannot load extractor '{import_path}': {e}") from e

    if isinstance(target, type):
        target = target()
    try:
        return as_text_extractor(target)
    except TypeError as e:
        raise ExtractionError(str(e)) from e


def _coerce(value, started: float) -> ExtractionResult:
    if isinstance(value, ExtractionResult):
        return value
    elapsed_ms = (time.perf_counter() - started) * 1000.0
    return ExtractionResult.failure(
        f"Extractor returned {type(value).__name__}, expected ExtractionResult", elapsed_ms
    )


def run_extraction(extractor: TextExtractor, region: np.ndarray,
                   executor: Executor) -> "Future[ExtractionResult]":
    """Run ``extractor`` on ``executor``; the returned future never fails.

    Exceptions raised by the extractor, or set on a future it returns, are
    converted into ``ExtractionResult.failure``.
    """
    outcome: Future = Future()
    started = time.perf_counter()

    def _fail(exc: BaseException) -> None:
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        logger.warning(f"Text extraction failed: {exc}")
        outcome.set_result(ExtractionResult.failure(str(exc) or type(exc).__name__, elapsed_ms))

    def _settle(inner: Future) -> None:
        if inner.cancelled():
            _fail(ExtractionError("extraction cancelled"))
            return
        exc = inner.exception()
        if exc is not None:
            _fail(exc)
            return
        value = inner.result()
        if isinstance(value, Future):
            value.add_done_callback(_settle)
            return
        outcome.set_result(_coerce(value, started))

    try:
        submitted = executor.submit(extractor.extract, region)
    except RuntimeError as e:
        # executor already shut down
        _fail(e)
        return outcome

    submitted.add_done_callback(_settle)
    return outcome
