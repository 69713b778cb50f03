"""Orchestrator package - drives upload-and-process operations."""
from .core import UploadOrchestrator
from .polling import PollDecision, PollLoop, PollOutcome

__all__ = ["UploadOrchestrator", "PollLoop", "PollOutcome", "PollDecision"]
