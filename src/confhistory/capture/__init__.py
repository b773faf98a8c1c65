"""Capture pipeline: job values, live readers, and the archiving worker."""

from .models import CapturedVersion, CaptureJob, JobState, capture_timestamp
from .pipeline import CapturePipeline, CaptureSummary
from .reader import read_target
from .worker import CaptureWorker

__all__ = [
    "CapturedVersion",
    "CaptureJob",
    "CapturePipeline",
    "CaptureSummary",
    "CaptureWorker",
    "JobState",
    "capture_timestamp",
    "read_target",
]
