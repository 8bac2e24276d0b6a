"""
Flow Data Models

SQLAlchemy models for tasks, projects, focus-session history and settings,
plus the live focus state that is persisted as JSON.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field
from sqlalchemy import BigInteger, Boolean, Enum, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def new_id() -> str:
    return str(uuid4())


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class TaskStatus(enum.Enum):
    """Which queue a task sits in."""
    INBOX = "inbox"
    NOW = "now"
    NEXT = "next"
    TODAY = "today"
    WAITING = "waiting"
    SCHEDULED = "scheduled"  # hidden until start_at
    SOMEDAY = "someday"
    DONE = "done"
    ARCHIVED = "archived"


class TaskPriority(enum.Enum):
    """P0 is the highest priority."""
    P0 = "P0"
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"


class SnoozeReason(enum.Enum):
    WAITING = "Waiting"
    BLOCKED = "Blocked"
    LATER = "Later today"
    TOMORROW = "Tomorrow"
    WEEK = "Next Week"
    SOMEDAY = "Someday"


class SpotlightTarget(enum.Enum):
    NOW = "now"
    NEXT = "next"
    TODAY = "today"


class FocusPhase(enum.Enum):
    IDLE = "idle"
    FOCUS = "focus"
    BREAK = "break"


class RitualPrompt(enum.Enum):
    """Confirmation step overlaying the focus phase."""
    NONE = "none"
    START = "start"
    STOP = "stop"


class SessionType(enum.Enum):
    FOCUS = "focus"
    BREAK = "break"


class Project(Base):
    """
    A project label.

    Tasks reference projects by name, not by id.
    """
    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    color: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    pinned: Mapped[bool] = mapped_column(Boolean, default=False)

    def __repr__(self) -> str:
        return f"<Project {self.name!r}>"


class Task(Base):
    """A captured task. Timestamps are epoch milliseconds."""
    __tablename__ = "tasks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[TaskStatus] = mapped_column(
        Enum(TaskStatus), default=TaskStatus.INBOX, index=True
    )
    priority: Mapped[TaskPriority] = mapped_column(
        Enum(TaskPriority), default=TaskPriority.P3
    )

    # Organization
    project_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    person_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    estimate_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Timing
    start_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    due_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    snooze_reason: Mapped[Optional[SnoozeReason]] = mapped_column(
        Enum(SnoozeReason), nullable=True
    )

    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    completed_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    def __repr__(self) -> str:
        return f"<Task {self.title!r} [{self.status.value}]>"

    def is_scheduled_ahead(self, now: int) -> bool:
        """True while the task should stay hidden behind its start time."""
        return self.start_at is not None and self.start_at > now


class FocusSession(Base):
    """One finished focus or break block. Never modified after insert."""
    __tablename__ = "focus_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    task_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    type: Mapped[SessionType] = mapped_column(Enum(SessionType), nullable=False)
    preset_label: Mapped[str] = mapped_column(String(100), nullable=False)
    planned_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    started_at: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    ended_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, default=False)

    # Outcome; finished_task is tri-state (None = unknown)
    has_outcome: Mapped[bool] = mapped_column(Boolean, default=False)
    finished_task: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<FocusSession {self.type.value} {self.preset_label!r} task={self.task_id}>"

    @property
    def outcome(self) -> Optional["SessionOutcome"]:
        if not self.has_outcome:
            return None
        return SessionOutcome(
            finished_task=self.finished_task, reason=self.reason, note=self.note
        )


class Setting(Base):
    """Durable scalar value keyed by string."""
    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)


class FocusPreset(BaseModel):
    label: str
    focus_minutes: int = Field(gt=0)
    break_minutes: int = Field(gt=0)


class SessionOutcome(BaseModel):
    """How the user resolved a focus block."""

    finished_task: Optional[bool] = None
    reason: Optional[str] = None  # 'interrupted', 'blocked', 'switched', ...
    note: Optional[str] = None


class FocusState(BaseModel):
    """
    The single live focus state.

    This is the only state that has to survive a restart mid-session.
    """

    phase: FocusPhase = FocusPhase.IDLE
    active_task_id: Optional[str] = None
    start_time: Optional[int] = None
    end_time: Optional[int] = None
    preset: Optional[FocusPreset] = None
    ritual: RitualPrompt = RitualPrompt.NONE
    suggested_break: bool = False

    @property
    def is_running(self) -> bool:
        return self.phase is not FocusPhase.IDLE


@dataclass
class AppState:
    """Everything the core keeps in memory, mirrored to storage on every change."""

    tasks: dict[str, Task] = field(default_factory=dict)
    projects: dict[str, Project] = field(default_factory=dict)
    selected_task_id: Optional[str] = None
    focus: FocusState = field(default_factory=FocusState)
    focus_sessions: list[FocusSession] = field(default_factory=list)
    sound_enabled: bool = True
