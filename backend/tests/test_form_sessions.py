"""
WorkTrack - Form Session Manager Tests

The manager owns every open capture; whatever path a form leaves by, the
camera and its lock must come back.
"""

import asyncio
from datetime import timedelta

import pytest

from tests.conftest import FakeCamera, SlowCamera, SteppingClock
from worktrack.capture.session import CaptureState
from worktrack.core.errors import CaptureCancelled, SessionNotFound
from worktrack.models.record import SubmittedBy
from worktrack.services.form_sessions import FormSessionManager

WORKER = SubmittedBy(uid="worker-1", email="frt@worktrack.test")


class TestCaptureOwnership:

    async def test_overlapping_opens_keep_the_live_capture(self, manager, lock):
        camera = SlowCamera()
        session = manager.create("corrective", WORKER)

        first, second = await asyncio.gather(
            manager.open_capture(session, "cutLocationPhotos", camera),
            manager.open_capture(session, "cutLocationPhotos", camera),
        )

        assert isinstance(first.error, CaptureCancelled)
        assert second.ok
        assert session.capture is not None
        assert session.capture.state == CaptureState.PREVIEWING
        assert camera.open_streams == 1

        manager.close(session.session_id)
        assert len(lock) == 0
        assert camera.open_streams == 0

    async def test_reopen_replaces_previous_capture(self, manager, lock, camera):
        session = manager.create("corrective", WORKER)
        assert (await manager.open_capture(session, "cutLocationPhotos", camera)).ok
        first = session.capture
        assert (await manager.open_capture(session, "cutLocationPhotos", camera)).ok
        assert session.capture is not first
        assert first.state == CaptureState.IDLE
        assert camera.open_streams == 1
        assert len(lock) == 1


class TestIdleEviction:

    def make_manager(self, registry, lock, clock):
        return FormSessionManager(registry, lock=lock, idle_timeout=timedelta(minutes=30), clock=clock)

    async def test_abandoned_sessions_are_evicted(self, registry, lock):
        clock = SteppingClock()
        camera = FakeCamera()
        manager = self.make_manager(registry, lock, clock)

        abandoned = manager.create("corrective", WORKER)
        assert (await manager.open_capture(abandoned, "cutLocationPhotos", camera)).ok
        clock.advance(20 * 60)
        active = manager.create("punch_in", WORKER)
        clock.advance(15 * 60)
        manager.get(active.session_id)
        clock.advance(1)

        manager.create("preventive", WORKER)

        assert len(manager) == 2
        with pytest.raises(SessionNotFound):
            manager.get(abandoned.session_id)
        assert manager.get(active.session_id) is active
        assert camera.open_streams == 0
        assert len(lock) == 0

    def test_evict_idle_reports_count(self, registry, lock):
        clock = SteppingClock()
        manager = self.make_manager(registry, lock, clock)
        manager.create("preventive", WORKER)
        manager.create("corrective", WORKER)
        assert manager.evict_idle() == 0
        clock.advance(31 * 60)
        assert manager.evict_idle() == 2
        assert len(manager) == 0

    def test_no_timeout_keeps_everything(self, registry, lock):
        clock = SteppingClock()
        manager = FormSessionManager(registry, lock=lock, clock=clock)
        manager.create("preventive", WORKER)
        clock.advance(7 * 24 * 3600)
        assert manager.evict_idle() == 0
        assert len(manager) == 1
