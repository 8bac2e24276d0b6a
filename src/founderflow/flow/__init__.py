"""
Flow core

Capture parsing, task lifecycle and focus sessions.
"""

from founderflow.flow.capture import (
    CaptureParser,
    ParsedCapture,
    Segment,
    SegmentType,
    parse_capture,
)
from founderflow.flow.dates import DateExtractor, DateMatch
from founderflow.flow.engine import FounderFlow, TickResult
from founderflow.flow.focus import FocusEngine
from founderflow.flow.lifecycle import NEXT_WIP_LIMIT, TaskLifecycle
from founderflow.flow.models import (
    AppState,
    Base,
    FocusPhase,
    FocusPreset,
    FocusSession,
    FocusState,
    Project,
    RitualPrompt,
    SessionOutcome,
    SessionType,
    SnoozeReason,
    SpotlightTarget,
    Task,
    TaskPriority,
    TaskStatus,
)
from founderflow.flow.projects import ProjectManager
from founderflow.flow.scheduler import TickScheduler
from founderflow.flow.store import FlowStore

__all__ = [
    # Coordinator
    "FounderFlow",
    "TickResult",
    # Models
    "AppState",
    "Base",
    "Task",
    "TaskStatus",
    "TaskPriority",
    "SnoozeReason",
    "SpotlightTarget",
    "Project",
    "FocusPhase",
    "FocusPreset",
    "FocusSession",
    "FocusState",
    "RitualPrompt",
    "SessionOutcome",
    "SessionType",
    # Store
    "FlowStore",
    # Capture
    "CaptureParser",
    "ParsedCapture",
    "Segment",
    "SegmentType",
    "parse_capture",
    "DateExtractor",
    "DateMatch",
    # Engines
    "TaskLifecycle",
    "NEXT_WIP_LIMIT",
    "ProjectManager",
    "FocusEngine",
    "TickScheduler",
]
