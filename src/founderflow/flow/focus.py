"""
Focus Sessions

Phase machine idle -> focus -> (break) -> idle with start/stop rituals.
The live FocusState is written to the settings store after every change
and recovered on startup, including timers that ran out while the
application was closed.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Callable, Optional

from pydantic import ValidationError

from founderflow.flow.lifecycle import ConfirmSwitch, TaskLifecycle
from founderflow.flow.models import (
    AppState,
    FocusPhase,
    FocusPreset,
    FocusSession,
    FocusState,
    RitualPrompt,
    SessionOutcome,
    SessionType,
    SpotlightTarget,
    TaskStatus,
    new_id,
)
from founderflow.flow.store import persist
from founderflow.utils.clock import MINUTE_MS, Clock, now_ms
from founderflow.utils.logging import get_logger

if TYPE_CHECKING:
    from founderflow.flow.store import FlowStore

logger = get_logger(__name__)

FOCUS_STATE_KEY = "founderflow_focus_state"
DEFAULT_BREAK_MINUTES = 5
SWITCHED_REASON = "switched"

PhaseEndedCallback = Callable[[FocusPhase], None]


class FocusEngine:
    """
    Focus/break timer bound to one task at a time.

    Registers itself with the lifecycle so that demoting or replacing the
    focused task stops the running session.
    """

    def __init__(
        self,
        state: AppState,
        store: "FlowStore",
        lifecycle: TaskLifecycle,
        clock: Clock = now_ms,
        on_phase_ended: Optional[PhaseEndedCallback] = None,
        history_limit: int = 50,
    ):
        """
        Args:
            state: Shared application state
            store: Durable store for history and the live state
            lifecycle: Task lifecycle used to promote and complete tasks
            clock: Epoch-millisecond clock
            on_phase_ended: Notification hook fired when a timer runs out
            history_limit: How many recent sessions to keep in memory
        """
        self.state = state
        self.store = store
        self.lifecycle = lifecycle
        self.clock = clock
        self.on_phase_ended = on_phase_ended
        self.history_limit = history_limit
        lifecycle.attach_session_guard(self)

    @property
    def focus(self) -> FocusState:
        return self.state.focus

    def _set(self, focus: FocusState) -> None:
        self.state.focus = focus
        persist(
            "focus_state",
            self.store.set_setting,
            FOCUS_STATE_KEY,
            focus.model_dump_json(),
        )

    def _update(self, **changes) -> None:
        self._set(self.focus.model_copy(update=changes))

    # =========================================================================
    # Guard hooks used by TaskLifecycle
    # =========================================================================

    def focus_task_id(self) -> Optional[str]:
        if self.focus.phase is FocusPhase.FOCUS:
            return self.focus.active_task_id
        return None

    def is_active_on(self, task_id: str) -> bool:
        return self.focus.is_running and self.focus.active_task_id == task_id

    def force_stop(self) -> None:
        """Open the stop ritual so the running session gets resolved."""
        self.stop_early()

    # =========================================================================
    # Recovery
    # =========================================================================

    def restore(self) -> FocusState:
        """
        Load the persisted state.

        An undecodable record falls back to idle. A timer that expired while
        the app was closed either asks for the focus outcome or silently
        ends the break.
        """
        raw = self.store.get_setting(FOCUS_STATE_KEY)
        focus = FocusState()
        if raw:
            try:
                focus = FocusState.model_validate_json(raw)
            except (ValidationError, json.JSONDecodeError, ValueError) as e:
                logger.warning("focus_state_unreadable", error=str(e))
                focus = FocusState()

        if focus.is_running and focus.end_time is not None and focus.end_time < self.clock():
            if focus.phase is FocusPhase.FOCUS:
                logger.info("focus_expired_while_closed", task_id=focus.active_task_id)
                focus = focus.model_copy(update={"ritual": RitualPrompt.STOP})
            else:
                logger.info("break_expired_while_closed")
                focus = FocusState()
            self._set(focus)
        else:
            self.state.focus = focus

        return self.focus

    # =========================================================================
    # Transitions
    # =========================================================================

    def toggle_ritual(self) -> RitualPrompt:
        """Open the start prompt when idle, the stop prompt otherwise."""
        if self.focus.phase is FocusPhase.IDLE:
            self._update(ritual=RitualPrompt.START)
        else:
            self._update(ritual=RitualPrompt.STOP)
        return self.focus.ritual

    def start_focus_session(
        self,
        task_id: str,
        preset: FocusPreset,
        confirm: Optional[ConfirmSwitch] = None,
    ) -> bool:
        """
        Start a focus block on a task, promoting it to Now.

        Returns False if the task is unknown or the switch was declined.
        """
        task = self.lifecycle.get(task_id)
        if task is None:
            return False

        if task.status is not TaskStatus.NOW:
            if not self.lifecycle.move_to_spotlight(task_id, SpotlightTarget.NOW, confirm):
                return False

        if self.focus.is_running:
            self._record(SessionOutcome(reason=SWITCHED_REASON))

        now = self.clock()
        self._set(FocusState(
            phase=FocusPhase.FOCUS,
            active_task_id=task_id,
            start_time=now,
            end_time=now + preset.focus_minutes * MINUTE_MS,
            preset=preset,
            ritual=RitualPrompt.NONE,
            suggested_break=False,
        ))
        logger.info(
            "focus_started",
            task_id=task_id,
            preset=preset.label,
            minutes=preset.focus_minutes,
        )
        return True

    def start_break_session(self, minutes: Optional[int] = None) -> None:
        """Start a break, keeping the task binding."""
        preset = self.focus.preset
        if minutes is None:
            minutes = preset.break_minutes if preset else DEFAULT_BREAK_MINUTES
        if preset is None:
            preset = FocusPreset(label="Break", focus_minutes=minutes, break_minutes=minutes)

        now = self.clock()
        self._update(
            phase=FocusPhase.BREAK,
            start_time=now,
            end_time=now + minutes * MINUTE_MS,
            preset=preset,
            ritual=RitualPrompt.NONE,
            suggested_break=False,
        )
        logger.info("break_started", minutes=minutes)

    def stop_early(self) -> None:
        """Manual stop: ask for the outcome before ending."""
        if self.focus.is_running:
            self._update(ritual=RitualPrompt.STOP)

    def cancel_ritual(self) -> None:
        """Dismiss a prompt; a running timer keeps running."""
        self._update(ritual=RitualPrompt.NONE)

    def remaining_ms(self) -> Optional[int]:
        if not self.focus.is_running or self.focus.end_time is None:
            return None
        return max(0, self.focus.end_time - self.clock())

    def check_timer(self) -> Optional[FocusPhase]:
        """
        Tick handler.

        Returns the phase whose timer just ran out, or None.
        """
        focus = self.focus
        if not focus.is_running or focus.end_time is None:
            return None
        if focus.end_time - self.clock() > 0 or focus.ritual is not RitualPrompt.NONE:
            return None

        ended = focus.phase
        logger.info("phase_ended", phase=ended.value, task_id=focus.active_task_id)
        if self.on_phase_ended is not None:
            try:
                self.on_phase_ended(ended)
            except Exception as e:
                logger.error("phase_ended_callback_failed", error=str(e))

        if ended is FocusPhase.FOCUS:
            self._update(ritual=RitualPrompt.STOP)
        else:
            self._set(FocusState(suggested_break=False))
        return ended

    def finalize_session(self, outcome: SessionOutcome) -> Optional[FocusSession]:
        """
        Resolve the stop ritual: record history and go idle.

        A finished focus block suggests a break; a finished break does not.
        """
        focus = self.focus
        if focus.start_time is None or focus.preset is None:
            return None

        record = self._record(outcome)

        if outcome.finished_task is True and focus.active_task_id:
            self.lifecycle.update_task(
                focus.active_task_id,
                status=TaskStatus.DONE,
                completed_at=self.clock(),
            )

        self._set(FocusState(suggested_break=focus.phase is FocusPhase.FOCUS))
        return record

    def _record(self, outcome: SessionOutcome) -> Optional[FocusSession]:
        """Append the current session to history."""
        focus = self.focus
        if focus.start_time is None or focus.preset is None:
            return None

        if focus.end_time is not None:
            planned = round((focus.end_time - focus.start_time) / MINUTE_MS)
        else:
            planned = focus.preset.focus_minutes

        record = FocusSession(
            id=new_id(),
            task_id=focus.active_task_id,
            type=SessionType.FOCUS if focus.phase is FocusPhase.FOCUS else SessionType.BREAK,
            preset_label=focus.preset.label,
            planned_minutes=planned,
            started_at=focus.start_time,
            ended_at=self.clock(),
            completed=not outcome.reason,
            has_outcome=True,
            finished_task=outcome.finished_task,
            reason=outcome.reason,
            note=outcome.note,
        )

        self.state.focus_sessions.insert(0, record)
        del self.state.focus_sessions[self.history_limit:]
        persist("focus_session_insert", self.store.insert_focus_session, record)
        logger.info(
            "session_recorded",
            type=record.type.value,
            task_id=record.task_id,
            completed=record.completed,
        )
        return record
