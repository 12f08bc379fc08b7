"""列批处理模块"""

from .types import (
    JobState,
    JobResult,
    MISSING_PROMPT_MESSAGE,
    JOB_FAILED_MESSAGE,
)
from .batch_processor import BatchProcessor

__all__ = [
    "JobState",
    "JobResult",
    "MISSING_PROMPT_MESSAGE",
    "JOB_FAILED_MESSAGE",
    "BatchProcessor",
]
