"""Status notification bridge between the pipeline and watching clients.

``StatusHub`` is the in-process push channel: the job state store and the
transcription invoker publish to it after each committed change.
``StatusWatcher`` follows one recording by multiplexing a hub
subscription with a polling loop, so clients still converge when a push
is missed (another worker process, a dropped subscription). Each change
is delivered at most once and the watcher ends after a terminal status.

Usage::

    watcher = StatusWatcher(recording_id, hub, fetch_snapshot, poll_interval=5.0)
    async with watcher:
        async for event in watcher:
            ...
"""

import asyncio
import logging
import time
from collections import defaultdict
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass

from meetnotes.core.exceptions import MeetNotesError
from meetnotes.core.models import RecordingStatus, StatusResponse

logger = logging.getLogger(__name__)

PROGRESS_CAP = 95

# Lifecycle order used to discard stale polls; failed ranks with completed.
_STATUS_RANK = {
    RecordingStatus.pending: 0,
    RecordingStatus.processing: 1,
    RecordingStatus.transcribing: 2,
    RecordingStatus.completed: 3,
    RecordingStatus.failed: 3,
}


@dataclass(frozen=True)
class StatusEvent:
    """A committed change to one recording.

    ``kind`` is ``"status"`` for a status change or ``"transcript"`` when
    the transcript has been persisted.
    """

    recording_id: int
    kind: str
    status: RecordingStatus | None = None
    error_message: str | None = None
    transcript: str | None = None
    transcript_id: int | None = None

    def to_dict(self) -> dict:
        data: dict = {"recording_id": self.recording_id}
        if self.kind == "status":
            data["status"] = str(self.status)
            data["error_message"] = self.error_message
        else:
            data["transcript_id"] = self.transcript_id
            data["content"] = self.transcript
        return data


def transcribing_progress(elapsed_seconds: float, percent_per_second: float = 1.0) -> int:
    """Estimated progress while transcribing, capped until a terminal status arrives."""
    return min(PROGRESS_CAP, max(0, int(elapsed_seconds * percent_per_second)))


class StatusHub:
    """In-process publish/subscribe channel keyed by recording id."""

    def __init__(self) -> None:
        self._subscribers: dict[int, set[asyncio.Queue[StatusEvent]]] = defaultdict(set)

    def subscribe(self, recording_id: int) -> asyncio.Queue[StatusEvent]:
        queue: asyncio.Queue[StatusEvent] = asyncio.Queue()
        self._subscribers[recording_id].add(queue)
        return queue

    def unsubscribe(self, recording_id: int, queue: asyncio.Queue[StatusEvent]) -> None:
        subscribers = self._subscribers.get(recording_id)
        if subscribers is None:
            return
        subscribers.discard(queue)
        if not subscribers:
            del self._subscribers[recording_id]

    def subscriber_count(self, recording_id: int) -> int:
        return len(self._subscribers.get(recording_id, ()))

    def publish(self, event: StatusEvent) -> None:
        for queue in list(self._subscribers.get(event.recording_id, ())):
            queue.put_nowait(event)


class StatusWatcher:
    """Merges pushed and polled status for one recording into a single stream.

    Args:
        recording_id: The recording to follow.
        hub: Push channel to subscribe to.
        fetch_snapshot: Coroutine returning the current ``StatusResponse``.
        poll_interval: Seconds between polls; the first poll is immediate.
        last_status: Status the client already knows; not re-delivered.
        transcript_seen: Whether the client already has the transcript.
        clock: Monotonic clock used for transcribing elapsed time.
    """

    def __init__(
        self,
        recording_id: int,
        hub: StatusHub,
        fetch_snapshot: Callable[[], Awaitable[StatusResponse]],
        poll_interval: float = 5.0,
        last_status: RecordingStatus | None = None,
        transcript_seen: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.recording_id = recording_id
        self._hub = hub
        self._fetch = fetch_snapshot
        self._interval = poll_interval
        self._clock = clock
        self._last_status = last_status
        self._transcript_seen = transcript_seen
        self._transcribing_since: float | None = clock() if last_status == RecordingStatus.transcribing else None

        self._out: asyncio.Queue[StatusEvent] = asyncio.Queue()
        self._done = asyncio.Event()
        self._exhausted = False
        self._subscription: asyncio.Queue[StatusEvent] | None = None
        self._tasks: list[asyncio.Task] = []
        if last_status is not None and last_status.is_terminal:
            self._done.set()
            self._exhausted = True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Subscribe to the hub and start the polling loop."""
        if self._tasks or self._done.is_set():
            return
        self._subscription = self._hub.subscribe(self.recording_id)
        self._tasks = [
            asyncio.create_task(self._relay_pushes(self._subscription)),
            asyncio.create_task(self._poll()),
        ]

    async def close(self) -> None:
        """Stop both sources and release the subscription."""
        self._done.set()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        if self._subscription is not None:
            self._hub.unsubscribe(self.recording_id, self._subscription)
            self._subscription = None

    async def __aenter__(self) -> "StatusWatcher":
        self.start()
        return self

    async def __aexit__(self, *_exc) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Consumption
    # ------------------------------------------------------------------

    def __aiter__(self) -> AsyncIterator[StatusEvent]:
        return self

    async def __anext__(self) -> StatusEvent:
        if self._exhausted:
            raise StopAsyncIteration
        event = await self._out.get()
        if event.kind == "status" and event.status is not None and event.status.is_terminal:
            self._exhausted = True
        return event

    async def run(self, on_change: Callable[[StatusEvent], Awaitable[None]]) -> None:
        """Invoke ``on_change`` for every delivered event until a terminal status."""
        async with self:
            async for event in self:
                await on_change(event)

    @property
    def last_status(self) -> RecordingStatus | None:
        return self._last_status

    def transcribing_elapsed(self) -> float | None:
        """Seconds since the watcher observed ``transcribing``, or None in other states."""
        if self._last_status != RecordingStatus.transcribing or self._transcribing_since is None:
            return None
        return self._clock() - self._transcribing_since

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    async def _relay_pushes(self, subscription: asyncio.Queue[StatusEvent]) -> None:
        while not self._done.is_set():
            self._offer(await subscription.get())

    async def _poll(self) -> None:
        while not self._done.is_set():
            try:
                snapshot = await self._fetch()
            except MeetNotesError as exc:
                logger.warning("Status poll for recording %s failed: %s", self.recording_id, exc.detail)
            else:
                self._offer_snapshot(snapshot)
            if self._done.is_set():
                break
            try:
                await asyncio.wait_for(self._done.wait(), timeout=self._interval)
            except TimeoutError:
                pass

    def _offer_snapshot(self, snapshot: StatusResponse) -> None:
        if snapshot.transcript is not None:
            self._offer(
                StatusEvent(
                    recording_id=self.recording_id,
                    kind="transcript",
                    transcript=snapshot.transcript.content,
                    transcript_id=snapshot.transcript.id,
                )
            )
        if self._is_stale(snapshot.status):
            return
        self._offer(
            StatusEvent(
                recording_id=self.recording_id,
                kind="status",
                status=snapshot.status,
                error_message=snapshot.error_message,
            )
        )

    def _is_stale(self, status: RecordingStatus) -> bool:
        """True when a polled status is older than the one already delivered.

        A poll started before a pushed change can return after it. Only a
        retry (``failed`` to ``transcribing``) moves backwards in rank.
        """
        last = self._last_status
        if last is None or status == last:
            return False
        if last == RecordingStatus.failed and status == RecordingStatus.transcribing:
            return False
        return _STATUS_RANK[status] < _STATUS_RANK[last]

    def _offer(self, event: StatusEvent) -> None:
        """Deliver ``event`` unless it repeats something already delivered."""
        if self._done.is_set():
            return
        if event.kind == "transcript":
            if self._transcript_seen:
                return
            self._transcript_seen = True
        elif event.kind == "status":
            if event.status == self._last_status:
                return
            self._last_status = event.status
            if event.status == RecordingStatus.transcribing:
                self._transcribing_since = self._clock()
            if event.status is not None and event.status.is_terminal:
                self._done.set()
        else:
            return
        self._out.put_nowait(event)
