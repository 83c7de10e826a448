"""Delivery of summaries and recordings. Concrete bindings are imported from their modules."""

from .base import AbstractNotifier, AbstractUploader
from .logging_notifier import LoggingNotifier

__all__ = [
    "AbstractNotifier",
    "AbstractUploader",
    "LoggingNotifier",
]
