"""
FounderFlow command line

Usage:
    founderflow add "Email @sara about p:Launch due:tomorrow est:30"
    founderflow parse "Ship it by friday 3pm"
    founderflow list --status next
    founderflow focus start <task-id> --preset Deep
    founderflow focus finish --done
    founderflow run              # tick daemon: resurfacing + focus timer

The run daemon:
1. Loads configuration and state
2. Ticks once per second until SIGINT/SIGTERM
3. Rings the terminal bell when a focus or break timer ends
"""

from __future__ import annotations

import argparse
import asyncio
import json
import signal
import sys
from typing import NoReturn, Optional

from founderflow import __version__
from founderflow.config import FounderFlowConfig, expand_path, get_config
from founderflow.events import PHASE_ENDED, Event, EventBus
from founderflow.flow.engine import FounderFlow
from founderflow.flow.models import FocusPreset, SessionOutcome, Task, TaskStatus
from founderflow.utils.clock import from_ms
from founderflow.utils.logging import get_logger, setup_logging

logger = get_logger("founderflow.cli")


def ask_yes_no(question: str) -> bool:
    """Terminal confirmation used before abandoning a running session."""
    try:
        answer = input(f"{question} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def build_app(config: FounderFlowConfig, assume_yes: bool = False) -> FounderFlow:
    config.database.path.parent.mkdir(parents=True, exist_ok=True)
    app = FounderFlow(
        db_path=str(config.database.path),
        confirm_switch=(lambda _q: True) if assume_yes else ask_yes_no,
        history_limit=config.focus.history_limit,
        tick_interval=config.focus.tick_interval,
        echo=config.database.echo,
        event_bus=EventBus(handler_timeout=config.events.handler_timeout),
    )
    app.load(seed_projects=config.app.seed_projects)
    return app


def describe(task: Task) -> str:
    parts = [f"{task.id[:8]}", f"[{task.status.value.upper()}]", task.title]
    if task.project_id:
        parts.append(f"p:{task.project_id}")
    if task.person_id:
        parts.append(f"@{task.person_id}")
    if task.priority:
        parts.append(task.priority.value)
    if task.estimate_minutes:
        parts.append(f"{task.estimate_minutes}m")
    if task.due_at:
        parts.append(f"due {from_ms(task.due_at):%a %b %d %H:%M}")
    if task.start_at:
        parts.append(f"start {from_ms(task.start_at):%a %b %d %H:%M}")
    return "  ".join(parts)


def resolve_task(app: FounderFlow, ref: str) -> Optional[Task]:
    """Accept a full id or a unique id prefix."""
    if ref in app.state.tasks:
        return app.state.tasks[ref]
    matches = [t for t in app.state.tasks.values() if t.id.startswith(ref)]
    return matches[0] if len(matches) == 1 else None


# =============================================================================
# Commands
# =============================================================================


def cmd_parse(app: FounderFlow, args: argparse.Namespace) -> int:
    parsed = app.parse(args.text)
    print(json.dumps({
        **parsed.task_fields(),
        "segments": [{"text": s.text, "type": s.type.value} for s in parsed.segments],
    }, indent=2))
    return 0


def cmd_add(app: FounderFlow, args: argparse.Namespace) -> int:
    task = app.capture(args.text)
    print(describe(task))
    return 0


def cmd_list(app: FounderFlow, args: argparse.Namespace) -> int:
    if args.status:
        tasks = app.lifecycle.tasks_with_status(TaskStatus(args.status))
    else:
        hidden = (TaskStatus.DONE, TaskStatus.ARCHIVED)
        tasks = [t for t in app.state.tasks.values() if t.status not in hidden]
    for task in tasks:
        print(describe(task))
    return 0


def cmd_focus(app: FounderFlow, args: argparse.Namespace, config: FounderFlowConfig) -> int:
    focus = app.focus
    action = args.action

    if action == "start":
        task = resolve_task(app, args.task)
        if task is None:
            print(f"No task matches {args.task!r}", file=sys.stderr)
            return 1
        try:
            preset = FocusPreset(**config.focus.preset(args.preset).model_dump())
        except KeyError as e:
            print(e.args[0], file=sys.stderr)
            return 1
        if not focus.start_focus_session(task.id, preset):
            print("Focus session not started", file=sys.stderr)
            return 1
    elif action == "stop":
        focus.stop_early()
    elif action == "finish":
        outcome = SessionOutcome(finished_task=args.done, reason=args.reason, note=args.note)
        if focus.finalize_session(outcome) is None:
            print("No session to finish", file=sys.stderr)
            return 1
    elif action == "break":
        focus.start_break_session(args.minutes)
    elif action == "cancel":
        focus.cancel_ritual()

    state = app.state.focus
    remaining = focus.remaining_ms()
    print(json.dumps({
        "phase": state.phase.value,
        "task": state.active_task_id,
        "preset": state.preset.label if state.preset else None,
        "ritual": state.ritual.value,
        "remaining_seconds": remaining // 1000 if remaining is not None else None,
        "suggested_break": state.suggested_break,
    }, indent=2))
    return 0


# =============================================================================
# Daemon
# =============================================================================


class FlowDaemon:
    """Runs the tick loop until asked to shut down."""

    def __init__(self, app: FounderFlow, config: FounderFlowConfig):
        self.app = app
        self.config = config
        self._shutdown_event = asyncio.Event()

    def _ring(self, event: Event) -> None:
        logger.info("timer_finished", phase=event.payload.get("phase"))
        if self.app.state.sound_enabled:
            sys.stdout.write("\a")
            sys.stdout.flush()

    async def run(self) -> None:
        self.app.events.subscribe(PHASE_ENDED, self._ring)
        await self.app.start()
        logger.info("founderflow_ready", version=__version__)
        try:
            await self._shutdown_event.wait()
        finally:
            try:
                await asyncio.wait_for(
                    self.app.stop(), timeout=self.config.daemon.shutdown_timeout
                )
            except asyncio.TimeoutError:
                logger.warning("shutdown_timeout")

    def request_shutdown(self) -> None:
        logger.info("shutdown_requested")
        self._shutdown_event.set()


async def async_run(app: FounderFlow, config: FounderFlowConfig) -> int:
    daemon = FlowDaemon(app, config)
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, daemon.request_shutdown)
    try:
        await daemon.run()
        return 0
    except Exception as e:
        logger.error("daemon_error", error=str(e), exc_info=True)
        return 1


# =============================================================================
# Entry point
# =============================================================================


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="founderflow",
        description="FounderFlow - capture tasks, keep a spotlight, run focus sessions",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--json-logs", action="store_true", help="Log as JSON instead of console")
    parser.add_argument("--db", help="Path to the SQLite database")

    sub = parser.add_subparsers(dest="command", required=True)

    p_parse = sub.add_parser("parse", help="Show how a capture line is read")
    p_parse.add_argument("text")

    p_add = sub.add_parser("add", help="Capture a task")
    p_add.add_argument("text")

    p_list = sub.add_parser("list", help="List tasks")
    p_list.add_argument("--status", choices=[s.value for s in TaskStatus])

    p_focus = sub.add_parser("focus", help="Focus session commands")
    p_focus.add_argument(
        "action", choices=["status", "start", "stop", "finish", "break", "cancel"]
    )
    p_focus.add_argument("task", nargs="?", help="Task id (or prefix) for 'start'")
    p_focus.add_argument("--preset", help="Preset label, e.g. Pomodoro")
    p_focus.add_argument("--yes", action="store_true", help="Switch without asking")
    p_focus.add_argument("--minutes", type=int, help="Break length for 'break'")
    done = p_focus.add_mutually_exclusive_group()
    done.add_argument("--done", dest="done", action="store_true", default=None)
    done.add_argument("--not-done", dest="done", action="store_false")
    p_focus.add_argument("--reason", help="Why the session stopped early")
    p_focus.add_argument("--note")

    sub.add_parser("run", help="Run the tick daemon")

    args = parser.parse_args(argv)
    if args.command == "focus" and args.action == "start" and not args.task:
        parser.error("focus start needs a task id")
    return args


def main(argv: Optional[list[str]] = None) -> NoReturn:
    """Main entry point for the founderflow command."""
    args = parse_args(argv)

    config = get_config()
    if args.debug:
        config.log.level = "DEBUG"
    if args.json_logs:
        config.log.format = "json"
    if args.db:
        config.database.path = expand_path(args.db)

    setup_logging(
        level=config.log.level,
        format=config.log.format,
        log_file=config.log.file,
    )

    app = build_app(config, assume_yes=getattr(args, "yes", False))

    if args.command == "parse":
        code = cmd_parse(app, args)
    elif args.command == "add":
        code = cmd_add(app, args)
    elif args.command == "list":
        code = cmd_list(app, args)
    elif args.command == "focus":
        code = cmd_focus(app, args, config)
    else:
        code = asyncio.run(async_run(app, config))

    sys.exit(code)


if __name__ == "__main__":
    main()
