"""
FounderFlow Engine

Owns the application state and wires the parser, task lifecycle,
project catalogue and focus engine together behind one object.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Optional

from founderflow.events import PHASE_ENDED, TASK_CREATED, TASK_RESURFACED, EventBus
from founderflow.flow.capture import CaptureParser, ParsedCapture
from founderflow.flow.focus import FocusEngine
from founderflow.flow.lifecycle import ConfirmSwitch, TaskLifecycle
from founderflow.flow.models import AppState, FocusPhase, Task
from founderflow.flow.projects import ProjectManager
from founderflow.flow.scheduler import TickScheduler
from founderflow.flow.store import FlowStore, persist
from founderflow.utils.clock import Clock, from_ms, now_ms
from founderflow.utils.logging import get_logger

logger = get_logger(__name__)

SOUND_KEY = "founderflow_sound_enabled"


@dataclass
class TickResult:
    """What changed during one tick."""
    resurfaced: list[Task] = field(default_factory=list)
    phase_ended: Optional[FocusPhase] = None


class FounderFlow:
    """
    FounderFlow core.

    Provides:
    - Single-line capture into tasks
    - Spotlight queues and scheduling
    - Focus sessions with history
    - A once-per-second tick
    """

    def __init__(
        self,
        db_path: Optional[str] = None,
        clock: Clock = now_ms,
        confirm_switch: Optional[ConfirmSwitch] = None,
        event_bus: Optional[EventBus] = None,
        history_limit: int = 50,
        tick_interval: float = 1.0,
        echo: bool = False,
    ):
        """
        Initialize the core.

        Args:
            db_path: Path to SQLite database (default: ~/.founderflow/founderflow.db)
            clock: Epoch-millisecond clock
            confirm_switch: Asked before a running focus session is abandoned
            event_bus: Where notifications are published
            history_limit: Recent focus sessions kept in memory
            tick_interval: Seconds between scheduler ticks
            echo: Log SQL statements
        """
        self.clock = clock
        self.store = FlowStore(db_path=db_path, echo=echo)
        self.state = AppState()
        self.events = event_bus or EventBus()
        self.history_limit = history_limit

        self.parser = CaptureParser()
        self.lifecycle = TaskLifecycle(
            self.state, self.store, clock=clock, confirm_switch=confirm_switch
        )
        self.projects = ProjectManager(self.state, self.store, clock=clock)
        self.focus = FocusEngine(
            self.state,
            self.store,
            self.lifecycle,
            clock=clock,
            on_phase_ended=self._on_phase_ended,
            history_limit=history_limit,
        )
        self.scheduler = TickScheduler(self.tick, interval=tick_interval)

    def load(self, seed_projects: bool = False) -> AppState:
        """Read everything back from storage and recover the focus timer."""
        self.state.tasks = {t.id: t for t in self.store.list_tasks()}
        self.state.projects = {p.id: p for p in self.store.list_projects()}
        self.state.focus_sessions = list(
            self.store.recent_focus_sessions(limit=self.history_limit)
        )
        self.focus.restore()

        self.state.sound_enabled = self._load_sound_pref()

        if seed_projects:
            self.projects.seed_defaults()

        logger.info(
            "state_loaded",
            tasks=len(self.state.tasks),
            projects=len(self.state.projects),
            focus_phase=self.state.focus.phase.value,
        )
        return self.state

    async def start(self) -> None:
        """Start ticking."""
        await self.scheduler.start()
        logger.info("FounderFlow started")

    async def stop(self) -> None:
        await self.scheduler.stop()
        await self.events.drain()
        self.store.close()
        logger.info("FounderFlow stopped")

    # =========================================================================
    # Capture
    # =========================================================================

    def parse(self, text: str) -> ParsedCapture:
        return self.parser.parse(text, now=from_ms(self.clock()))

    def capture(self, text: str) -> Task:
        """Parse a typed line and create the task it describes."""
        parsed = self.parse(text)
        task = self.lifecycle.add_task(**parsed.task_fields())
        self.events.emit_nowait(TASK_CREATED, {"task_id": task.id, "title": task.title})
        return task

    # =========================================================================
    # Tick
    # =========================================================================

    def tick(self) -> TickResult:
        """Resurface due tasks, then check the focus timer."""
        result = TickResult()
        result.resurfaced = self.lifecycle.check_resurfacing()
        for task in result.resurfaced:
            self.events.emit_nowait(TASK_RESURFACED, {"task_id": task.id})
        result.phase_ended = self.focus.check_timer()
        return result

    def _on_phase_ended(self, phase: FocusPhase) -> None:
        self.events.emit_nowait(PHASE_ENDED, {"phase": phase.value})

    # =========================================================================
    # Preferences
    # =========================================================================

    def _load_sound_pref(self) -> bool:
        stored = self.store.get_setting(SOUND_KEY)
        if stored is None:
            return True
        try:
            return bool(json.loads(stored))
        except ValueError:
            logger.warning("sound_pref_unreadable", value=stored)
            return True

    def toggle_sound(self) -> bool:
        self.state.sound_enabled = not self.state.sound_enabled
        persist("sound_pref", self.store.set_setting, SOUND_KEY, json.dumps(self.state.sound_enabled))
        return self.state.sound_enabled
