"""Tests for StatusHub and StatusWatcher (push + poll multiplexing)."""

import asyncio
from datetime import UTC, datetime

import pytest

from meetnotes.core.exceptions import PersistenceError
from meetnotes.core.models import RecordingStatus, StatusResponse, TranscriptResponse
from meetnotes.services.notifications import (
    PROGRESS_CAP,
    StatusEvent,
    StatusHub,
    StatusWatcher,
    transcribing_progress,
)

S = RecordingStatus
NOW = datetime(2026, 1, 1, tzinfo=UTC)


def _snapshot(status: RecordingStatus, transcript: str | None = None) -> StatusResponse:
    return StatusResponse(
        recording_id=1,
        status=status,
        transcript=(
            TranscriptResponse(id=7, recording_id=1, content=transcript, created_at=NOW, updated_at=NOW)
            if transcript
            else None
        ),
        updated_at=NOW,
    )


class _Snapshots:
    """Returns queued snapshots in order, repeating the last one."""

    def __init__(self, *snapshots):
        self.snapshots = list(snapshots)
        self.calls = 0

    async def __call__(self) -> StatusResponse:
        self.calls += 1
        if len(self.snapshots) > 1:
            return self.snapshots.pop(0)
        return self.snapshots[0]


async def _collect(watcher: StatusWatcher, timeout: float = 2.0) -> list[StatusEvent]:
    events: list[StatusEvent] = []

    async def _drain():
        async with watcher:
            async for event in watcher:
                events.append(event)

    await asyncio.wait_for(_drain(), timeout)
    return events


class TestStatusHub:
    async def test_publish_reaches_only_matching_subscribers(self):
        hub = StatusHub()
        mine = hub.subscribe(1)
        other = hub.subscribe(2)

        hub.publish(StatusEvent(recording_id=1, kind="status", status=S.processing))

        assert mine.qsize() == 1
        assert other.empty()

    async def test_unsubscribe_drops_empty_entries(self):
        hub = StatusHub()
        queue = hub.subscribe(1)
        hub.unsubscribe(1, queue)
        hub.unsubscribe(1, queue)
        assert hub.subscriber_count(1) == 0


class TestProgress:
    def test_progress_grows_then_caps(self):
        assert transcribing_progress(0) == 0
        assert transcribing_progress(30) == 30
        assert transcribing_progress(10_000) == PROGRESS_CAP


class TestStatusWatcher:
    async def test_poll_only_reaches_terminal(self):
        fetch = _Snapshots(_snapshot(S.processing), _snapshot(S.completed, "hi"))
        watcher = StatusWatcher(1, StatusHub(), fetch, poll_interval=0.01)

        events = await _collect(watcher)

        assert [(e.kind, e.status) for e in events] == [
            ("status", S.processing),
            ("transcript", None),
            ("status", S.completed),
        ]
        assert events[1].transcript == "hi"

    async def test_push_and_poll_are_deduplicated(self):
        hub = StatusHub()
        fetch = _Snapshots(_snapshot(S.transcribing))
        watcher = StatusWatcher(1, hub, fetch, poll_interval=0.01, last_status=S.processing)
        events: list[StatusEvent] = []

        async with watcher:
            # Let a few polls report the same status
            await asyncio.sleep(0.05)
            hub.publish(StatusEvent(recording_id=1, kind="status", status=S.transcribing))
            hub.publish(StatusEvent(recording_id=1, kind="transcript", transcript="text", transcript_id=3))
            hub.publish(StatusEvent(recording_id=1, kind="transcript", transcript="text", transcript_id=3))
            hub.publish(StatusEvent(recording_id=1, kind="status", status=S.completed))
            async for event in watcher:
                events.append(event)

        assert [(e.kind, e.status) for e in events] == [
            ("status", S.transcribing),
            ("transcript", None),
            ("status", S.completed),
        ]
        assert fetch.calls >= 2

    async def test_known_status_is_not_redelivered(self):
        fetch = _Snapshots(_snapshot(S.processing), _snapshot(S.failed))
        watcher = StatusWatcher(1, StatusHub(), fetch, poll_interval=0.01, last_status=S.processing)

        events = await _collect(watcher)

        assert [e.status for e in events] == [S.failed]

    async def test_starting_terminal_yields_nothing(self):
        fetch = _Snapshots(_snapshot(S.completed))
        watcher = StatusWatcher(1, StatusHub(), fetch, last_status=S.completed)

        assert await _collect(watcher) == []
        assert fetch.calls == 0

    async def test_transcript_seen_is_not_repeated(self):
        fetch = _Snapshots(_snapshot(S.completed, "done"))
        watcher = StatusWatcher(1, StatusHub(), fetch, last_status=S.transcribing, transcript_seen=True)

        events = await _collect(watcher)

        assert [e.kind for e in events] == ["status"]

    async def test_poll_errors_are_tolerated(self):
        calls = {"n": 0}

        async def flaky() -> StatusResponse:
            calls["n"] += 1
            if calls["n"] == 1:
                raise PersistenceError("database is locked")
            return _snapshot(S.completed)

        watcher = StatusWatcher(1, StatusHub(), flaky, poll_interval=0.01)

        events = await _collect(watcher)

        assert [e.status for e in events] == [S.completed]

    async def test_close_releases_subscription(self):
        hub = StatusHub()
        watcher = StatusWatcher(1, hub, _Snapshots(_snapshot(S.processing)), poll_interval=10)

        watcher.start()
        assert hub.subscriber_count(1) == 1
        await watcher.close()
        assert hub.subscriber_count(1) == 0

    async def test_transcribing_elapsed_uses_clock(self):
        now = {"t": 100.0}
        watcher = StatusWatcher(
            1,
            StatusHub(),
            _Snapshots(_snapshot(S.transcribing)),
            last_status=S.transcribing,
            clock=lambda: now["t"],
        )
        now["t"] = 112.5
        assert watcher.transcribing_elapsed() == pytest.approx(12.5)

    async def test_run_invokes_callback_until_terminal(self):
        fetch = _Snapshots(_snapshot(S.transcribing), _snapshot(S.completed, "x"))
        watcher = StatusWatcher(1, StatusHub(), fetch, poll_interval=0.01)
        seen: list[str] = []

        async def on_change(event: StatusEvent) -> None:
            seen.append(event.kind)

        await asyncio.wait_for(watcher.run(on_change), 2.0)

        assert seen == ["status", "transcript", "status"]

    async def test_stale_poll_after_push_is_dropped(self):
        hub = StatusHub()
        release = asyncio.Event()
        polls = {"n": 0}

        async def slow_first_poll() -> StatusResponse:
            polls["n"] += 1
            if polls["n"] == 1:
                # Read before the push below, returned after it.
                await release.wait()
                return _snapshot(S.processing)
            return _snapshot(S.completed, "done")

        watcher = StatusWatcher(1, hub, slow_first_poll, poll_interval=0.01, last_status=S.processing)
        events: list[StatusEvent] = []

        async with watcher:
            await asyncio.sleep(0)
            hub.publish(StatusEvent(recording_id=1, kind="status", status=S.transcribing))
            await asyncio.sleep(0.01)
            release.set()
            async for event in watcher:
                events.append(event)

        assert [(e.kind, e.status) for e in events] == [
            ("status", S.transcribing),
            ("transcript", None),
            ("status", S.completed),
        ]

    async def test_retry_after_failure_is_not_stale(self):
        watcher = StatusWatcher(1, StatusHub(), _Snapshots(_snapshot(S.failed)), last_status=S.failed)

        assert watcher._is_stale(S.transcribing) is False
        assert watcher._is_stale(S.processing) is True
