"""Performance instrumentation for the frame-analysis pipeline."""

import time
import threading
import logging
from typing import Callable, Dict, List, Optional, Tuple
from functools import wraps
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime

import psutil

logger = logging.getLogger(__name__)


@dataclass
class ProcessMetrics:
    """Snapshot of the process footprint."""
    cpu_percent: float = 0.0
    memory_usage_mb: float = 0.0
    memory_percent: float = 0.0
    active_threads: int = 0
    timestamp: datetime = field(default_factory=datetime.now)


class PerformanceTimer:
    """Context manager for timing operations."""

    def __init__(self, operation_name: str):
        self.operation_name = operation_name
        self.start_time = None
        self.end_time = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.end_time = time.perf_counter()
        PerformanceMonitor.instance().record_operation_time(self.operation_name, self.duration)

    @property
    def duration(self) -> float:
        """Operation duration in seconds."""
        if self.end_time is None or self.start_time is None:
            return 0.0
        return self.end_time - self.start_time

    @property
    def duration_ms(self) -> float:
        return self.duration * 1000.0


def performance_timer(operation_name: str = None):
    """Decorator for timing function execution."""
    def decorator(func: Callable) -> Callable:
        name = operation_name or f"{func.__module__}.{func.__name__}"

        @wraps(func)
        def wrapper(*args, **kwargs):
            with PerformanceTimer(name):
                return func(*args, **kwargs)
        return wrapper
    return decorator


class PerformanceMonitor:
    """Process-wide registry of operation timings."""

    _instance = None
    _instance_lock = threading.Lock()

    def __init__(self, history: int = 500):
        self._operation_times: Dict[str, deque] = defaultdict(lambda: deque(maxlen=history))
        self._lock = threading.Lock()
        self._process = psutil.Process()

    @classmethod
    def instance(cls) -> 'PerformanceMonitor':
        """Get singleton instance."""
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def record_operation_time(self, operation: str, duration: float) -> None:
        with self._lock:
            self._operation_times[operation].append((time.time(), duration))

    def get_operation_stats(self, operation: str) -> Dict[str, float]:
        """Count/min/max/avg/total (seconds) for one operation."""
        with self._lock:
            times: List[Tuple[float, float]] = list(self._operation_times.get(operation, ()))
        if not times:
            return {}

        durations = [duration for _, duration in times]
        return {
            'count': len(durations),
            'min': min(durations),
            'max': max(durations),
            'avg': sum(durations) / len(durations),
            'total': sum(durations)
        }

    def operations(self) -> List[str]:
        with self._lock:
            return sorted(self._operation_times)

    def collect_process_metrics(self) -> ProcessMetrics:
        memory_info = self._process.memory_info()
        return ProcessMetrics(
            cpu_percent=self._process.cpu_percent(),
            memory_usage_mb=memory_info.rss / 1024 / 1024,
            memory_percent=self._process.memory_percent(),
            active_threads=threading.active_count(),
        )

    def reset(self, operation: Optional[str] = None) -> None:
        with self._lock:
            if operation is None:
                self._operation_times.clear()
            else:
                self._operation_times.pop(operation, None)
