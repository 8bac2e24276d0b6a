"""
Task Lifecycle

Moves tasks between queues. Enforces a single Now task, the Next WIP
limit, auto-scheduling for future start times and resurfacing once a
start time arrives. Every change is written to the store and mirrored in
the shared AppState in the same call.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Optional, Protocol

from founderflow.flow.models import (
    AppState,
    SnoozeReason,
    SpotlightTarget,
    Task,
    TaskPriority,
    TaskStatus,
    new_id,
)
from founderflow.flow.store import persist
from founderflow.utils.clock import Clock, now_ms
from founderflow.utils.logging import get_logger

if TYPE_CHECKING:
    from founderflow.flow.store import FlowStore

logger = get_logger(__name__)

NEXT_WIP_LIMIT = 3

# Fields a caller may set through add_task / update_task
TASK_FIELDS = frozenset({
    "title",
    "status",
    "priority",
    "project_id",
    "person_id",
    "estimate_minutes",
    "notes",
    "start_at",
    "due_at",
    "snooze_reason",
    "completed_at",
})

ConfirmSwitch = Callable[[str], bool]

SWITCH_PROMPT = "A focus session is running on another task. Stop it and switch?"


class SessionGuard(Protocol):
    """What the lifecycle needs to know about the focus engine."""

    def focus_task_id(self) -> Optional[str]:
        """Task bound to a running focus phase, if any."""

    def is_active_on(self, task_id: str) -> bool:
        """True if a focus or break timer is bound to task_id."""

    def force_stop(self) -> None:
        """Open the stop ritual for the current session."""


class TaskLifecycle:
    """
    Task collection with queue rules.

    Lookups of unknown ids are no-ops: the caller may hold a stale view.
    """

    def __init__(
        self,
        state: AppState,
        store: "FlowStore",
        clock: Clock = now_ms,
        confirm_switch: Optional[ConfirmSwitch] = None,
    ):
        """
        Args:
            state: Shared application state
            store: Durable store for task records
            clock: Epoch-millisecond clock
            confirm_switch: Asked before abandoning a running focus session;
                without one the switch is declined
        """
        self.state = state
        self.store = store
        self.clock = clock
        self.confirm_switch = confirm_switch
        self._guard: Optional[SessionGuard] = None

    def attach_session_guard(self, guard: SessionGuard) -> None:
        self._guard = guard

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, task_id: Optional[str]) -> Optional[Task]:
        if task_id is None:
            return None
        return self.state.tasks.get(task_id)

    def tasks_with_status(self, status: TaskStatus) -> list[Task]:
        return [t for t in self.state.tasks.values() if t.status is status]

    # =========================================================================
    # CRUD
    # =========================================================================

    def add_task(self, **fields: Any) -> Task:
        """
        Create a task.

        A start time in the future forces SCHEDULED; otherwise the requested
        status (default INBOX) is used.
        """
        _check_fields(fields)
        now = self.clock()
        fields = _coerce(fields)

        start_at = fields.get("start_at")
        if start_at is not None and start_at > now:
            status = TaskStatus.SCHEDULED
        else:
            status = fields.get("status") or TaskStatus.INBOX

        if status is TaskStatus.NOW:
            self._release_now(keep=None)
        elif status is TaskStatus.NEXT:
            self._make_room_in_next(exclude=None)

        task = Task(
            id=new_id(),
            title=(fields.get("title") or "").strip() or "Untitled",
            status=status,
            priority=fields.get("priority") or TaskPriority.P3,
            project_id=fields.get("project_id"),
            person_id=fields.get("person_id"),
            estimate_minutes=fields.get("estimate_minutes"),
            notes=fields.get("notes"),
            start_at=start_at,
            due_at=fields.get("due_at"),
            snooze_reason=fields.get("snooze_reason"),
            created_at=now,
            updated_at=now,
            completed_at=fields.get("completed_at"),
        )

        self.state.tasks[task.id] = task
        persist("task_insert", self.store.insert_task, task)
        logger.info("task_added", task_id=task.id, title=task.title, status=task.status.value)
        return task

    def update_task(self, task_id: str, **patch: Any) -> Optional[Task]:
        """
        Merge a patch into a task and bump updated_at.

        Returns the task, or None if it does not exist.
        """
        _check_fields(patch)
        task = self.state.tasks.get(task_id)
        if task is None:
            logger.debug("update_unknown_task", task_id=task_id)
            return None

        now = self.clock()
        patch = _coerce(patch)

        if "start_at" in patch:
            start_at = patch["start_at"]
            if start_at is not None and start_at > now:
                patch["status"] = TaskStatus.SCHEDULED
                if (
                    task.status is TaskStatus.NOW
                    and self._guard is not None
                    and self._guard.is_active_on(task_id)
                ):
                    logger.info("deferring_focused_task", task_id=task_id)
                    self._guard.force_stop()
            elif task.status is TaskStatus.SCHEDULED:
                patch["status"] = TaskStatus.INBOX

        if patch.get("status") is TaskStatus.NOW and task.status is not TaskStatus.NOW:
            self._release_now(keep=task_id)
        elif patch.get("status") is TaskStatus.NEXT and task.status is not TaskStatus.NEXT:
            self._make_room_in_next(exclude=task_id)

        if "title" in patch:
            patch["title"] = (patch["title"] or "").strip() or task.title

        for key, value in patch.items():
            setattr(task, key, value)
        task.updated_at = now

        persist("task_update", self.store.update_task, task)
        return task

    def delete_task(self, task_id: str) -> bool:
        """Remove a task for good."""
        if self.state.tasks.pop(task_id, None) is None:
            return False
        if self.state.selected_task_id == task_id:
            self.state.selected_task_id = None
        persist("task_delete", self.store.delete_task, task_id)
        logger.info("task_deleted", task_id=task_id)
        return True

    def select_task(self, task_id: Optional[str]) -> None:
        self.state.selected_task_id = task_id

    # =========================================================================
    # Spotlight
    # =========================================================================

    def move_to_spotlight(
        self,
        task_id: str,
        target: SpotlightTarget | str,
        confirm: Optional[ConfirmSwitch] = None,
    ) -> bool:
        """
        Move a task into the Now/Next/Today spotlight.

        Moving to Now while a focus session runs on another task asks for
        confirmation first; if declined nothing changes.

        Returns:
            True if the task was moved
        """
        target = SpotlightTarget(target)
        task = self.state.tasks.get(task_id)
        if task is None:
            return False

        if target is SpotlightTarget.NOW:
            running = self._guard.focus_task_id() if self._guard else None
            if running is not None and running != task_id:
                ask = confirm or self.confirm_switch
                if ask is None or not ask(SWITCH_PROMPT):
                    logger.info("spotlight_switch_declined", task_id=task_id, running=running)
                    return False
                self._guard.force_stop()
            self.update_task(task_id, status=TaskStatus.NOW)

        elif target is SpotlightTarget.NEXT:
            self._make_room_in_next(exclude=task_id)
            self.update_task(task_id, status=TaskStatus.NEXT)

        else:
            self.update_task(task_id, status=TaskStatus.TODAY)

        return True

    def _release_now(self, keep: Optional[str]) -> None:
        """Demote every Now task except keep to Next."""
        for other in self.tasks_with_status(TaskStatus.NOW):
            if other.id != keep:
                self.update_task(other.id, status=TaskStatus.NEXT)

    def _make_room_in_next(self, exclude: Optional[str]) -> None:
        """Demote least recently touched Next tasks until one more fits."""
        queued = [t for t in self.tasks_with_status(TaskStatus.NEXT) if t.id != exclude]
        queued.sort(key=lambda t: t.updated_at)
        while len(queued) >= NEXT_WIP_LIMIT:
            oldest = queued.pop(0)
            logger.info("next_queue_full", demoted=oldest.id, limit=NEXT_WIP_LIMIT)
            self.update_task(oldest.id, status=TaskStatus.TODAY)

    # =========================================================================
    # Scheduling
    # =========================================================================

    def snooze_task(
        self, task_id: str, reason: SnoozeReason | str, until: int
    ) -> Optional[Task]:
        """Hide a task until a time, and clear the current selection."""
        task = self.update_task(
            task_id,
            status=TaskStatus.SCHEDULED,
            snooze_reason=SnoozeReason(reason),
            start_at=until,
        )
        if task is not None:
            self.state.selected_task_id = None
        return task

    def check_resurfacing(self) -> list[Task]:
        """Return Scheduled tasks whose start time has come to the Inbox."""
        now = self.clock()
        due = [
            t for t in self.tasks_with_status(TaskStatus.SCHEDULED)
            if t.start_at is not None and not t.is_scheduled_ahead(now)
        ]
        for task in due:
            self.update_task(
                task.id, status=TaskStatus.INBOX, start_at=None, snooze_reason=None
            )
            logger.info("task_resurfaced", task_id=task.id, title=task.title)
        return due


def _check_fields(fields: dict[str, Any]) -> None:
    unknown = set(fields) - TASK_FIELDS
    if unknown:
        raise TypeError(f"Unknown task field(s): {', '.join(sorted(unknown))}")


def _coerce(fields: dict[str, Any]) -> dict[str, Any]:
    """Accept enum values as plain strings."""
    fields = dict(fields)
    if isinstance(fields.get("status"), str):
        fields["status"] = TaskStatus(fields["status"])
    if isinstance(fields.get("priority"), str):
        fields["priority"] = TaskPriority(fields["priority"].upper())
    if isinstance(fields.get("snooze_reason"), str):
        fields["snooze_reason"] = SnoozeReason(fields["snooze_reason"])
    return fields
