"""
Integration tests for the FounderFlow core.
"""

import asyncio
from datetime import datetime

import pytest

from founderflow.events import PHASE_ENDED, TASK_CREATED, TASK_RESURFACED, Event
from founderflow.flow import FocusPhase, FocusPreset, FounderFlow, TaskStatus, TickResult
from founderflow.flow.scheduler import TickScheduler
from founderflow.utils.clock import MINUTE_MS, to_ms

QUICK = FocusPreset(label="Quick", focus_minutes=15, break_minutes=3)


class TestCapture:
    def test_capture_creates_task(self, app, clock):
        created = []
        app.events.subscribe(TASK_CREATED, created.append)

        task = app.capture("Email @sara about p:Launch due:tomorrow est:30")

        assert task.title == "Email about"
        assert task.person_id == "sara"
        assert task.project_id == "Launch"
        assert task.estimate_minutes == 30
        assert task.due_at == to_ms(datetime(2026, 3, 5, 17, 0))
        assert task.status is TaskStatus.INBOX
        assert app.state.tasks[task.id] is task
        assert [e.payload["task_id"] for e in created] == [task.id]

    def test_capture_with_future_start_is_scheduled(self, app):
        task = app.capture("Investor follow-up on monday")
        assert task.status is TaskStatus.SCHEDULED
        assert task.start_at == to_ms(datetime(2026, 3, 9, 9, 0))

    def test_parse_does_not_create(self, app):
        parsed = app.parse("Ship it by friday 3pm")
        assert parsed.title == "Ship it"
        assert app.state.tasks == {}


class TestTick:
    def test_tick_resurfaces_and_announces(self, app, clock):
        seen = []
        app.events.subscribe("task.*", seen.append)
        task = app.lifecycle.add_task(title="Later", start_at=clock.now + MINUTE_MS)

        assert app.tick().resurfaced == []
        clock.advance(minutes=1)
        result = app.tick()

        assert result.resurfaced == [task]
        assert task.status is TaskStatus.INBOX
        assert [e.name for e in seen] == [TASK_RESURFACED]

    def test_tick_announces_phase_end(self, app, clock):
        seen: list[Event] = []
        app.events.subscribe(PHASE_ENDED, seen.append)
        task = app.lifecycle.add_task(title="Deep work")
        app.focus.start_focus_session(task.id, QUICK)

        clock.advance(minutes=15)
        result = app.tick()

        assert result.phase_ended is FocusPhase.FOCUS
        assert [e.payload for e in seen] == [{"phase": "focus"}]

    def test_failing_listener_does_not_break_tick(self, app, clock):
        def explode(event):
            raise RuntimeError("speaker unplugged")

        app.events.subscribe(PHASE_ENDED, explode)
        app.focus.start_break_session(minutes=1)
        clock.advance(minutes=1)

        assert app.tick().phase_ended is FocusPhase.BREAK
        assert app.state.focus.phase is FocusPhase.IDLE


class TestLoad:
    def test_reload_restores_everything(self, app, db_path, clock):
        task = app.lifecycle.add_task(title="Keep", status=TaskStatus.NOW)
        app.projects.create_project("Product")
        app.focus.start_focus_session(task.id, QUICK)
        app.toggle_sound()

        flow = FounderFlow(db_path=db_path, clock=clock)
        state = flow.load()

        assert state.tasks[task.id].status is TaskStatus.NOW
        assert [p.name for p in state.projects.values()] == ["Product"]
        assert state.focus.active_task_id == task.id
        assert state.sound_enabled is False
        flow.store.close()

    def test_seed_projects_on_first_run(self, db_path, clock):
        flow = FounderFlow(db_path=db_path, clock=clock)
        flow.load(seed_projects=True)
        assert len(flow.state.projects) == 3
        flow.store.close()

    def test_unreadable_sound_pref(self, app, db_path, clock):
        app.store.set_setting("founderflow_sound_enabled", "loud")
        flow = FounderFlow(db_path=db_path, clock=clock)
        assert flow.load().sound_enabled is True
        flow.store.close()


class TestScheduler:
    @pytest.mark.asyncio
    async def test_start_and_stop(self, db_path, clock):
        flow = FounderFlow(db_path=db_path, clock=clock, tick_interval=0.01)
        flow.load()

        await flow.start()
        assert flow.scheduler.is_running
        await asyncio.sleep(0.05)
        await flow.stop()

        assert not flow.scheduler.is_running
        assert flow.scheduler.tick_count > 0

    @pytest.mark.asyncio
    async def test_tick_now_returns_result(self, app):
        result = await app.scheduler.tick_now()
        assert isinstance(result, TickResult)
        assert app.scheduler.tick_count == 1

    @pytest.mark.asyncio
    async def test_ticks_are_serialized(self):
        active = 0
        overlaps = []

        async def slow_tick():
            nonlocal active
            active += 1
            overlaps.append(active)
            await asyncio.sleep(0.01)
            active -= 1

        scheduler = TickScheduler(slow_tick, interval=1.0)
        await asyncio.gather(*(scheduler.tick_now() for _ in range(3)))

        assert max(overlaps) == 1
        assert scheduler.tick_count == 3

    @pytest.mark.asyncio
    async def test_tick_errors_do_not_stop_the_loop(self):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("first tick fails")

        scheduler = TickScheduler(flaky, interval=0.01)
        await scheduler.start()
        await asyncio.sleep(0.05)
        await scheduler.stop()

        assert len(calls) > 1

    @pytest.mark.asyncio
    async def test_async_listener_is_drained_on_stop(self, db_path, clock):
        flow = FounderFlow(db_path=db_path, clock=clock)
        flow.load()
        heard = []

        async def chime(event):
            await asyncio.sleep(0)
            heard.append(event.payload["phase"])

        flow.events.subscribe(PHASE_ENDED, chime)
        flow.focus.start_break_session(minutes=1)
        clock.advance(minutes=1)

        await flow.scheduler.tick_now()
        await flow.stop()

        assert heard == ["break"]
