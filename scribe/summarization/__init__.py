"""Meeting summarization: backends, retry policy and orchestration."""

from .base import AbstractSummarizationBackend
from .retry import RetryPolicy
from .orchestrator import SummarizationOrchestrator

__all__ = [
    "AbstractSummarizationBackend",
    "RetryPolicy",
    "SummarizationOrchestrator",
]
