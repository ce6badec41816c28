"""Shared pytest fixtures for the meetnotes test suite.

Provides mock LLM/STT providers, an in-memory object store, a
file-backed SQLite database per test, and the wired ``Services``
container used by the API tests.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from meetnotes.core.config import Settings
from meetnotes.core.exceptions import StorageError
from meetnotes.core.models import RecordingStatus, TranscriptionResult
from meetnotes.services.objects.base import BaseObjectStore

TEST_SECRET = "test-signing-secret"

SUMMARY_JSON = json.dumps(
    {
        "main_points": ["Launch moves to Friday"],
        "next_steps": ["Alice drafts the release notes"],
        "participants": ["Alice", "Bob"],
        "general_notes": "Short sync about the release date.",
    }
)


class InMemoryObjectStore(BaseObjectStore):
    """Dict-backed object store that records calls and can inject failures.

    Attributes:
        fail_on: Substring; a ``put`` to a path containing it raises ``StorageError``.
        fail_signing: When True, ``create_signed_url`` raises ``StorageError``.
    """

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}
        self.put_paths: list[str] = []
        self.deleted: list[str] = []
        self.fail_on: str | None = None
        self.fail_signing = False
        self.in_flight = 0
        self.max_in_flight = 0

    async def put(self, path: str, data: bytes, content_type: str) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if self.fail_on is not None and self.fail_on in path:
                raise StorageError(f"Injected failure writing {path}")
            self.objects[path] = data
            self.content_types[path] = content_type
            self.put_paths.append(path)
        finally:
            self.in_flight -= 1

    async def create_signed_url(self, path: str, expires_in: int) -> str:
        if self.fail_signing:
            raise StorageError("Injected signing failure")
        if path not in self.objects:
            raise StorageError(f"Object not found: {path}")
        return f"memory://{path}?expires_in={expires_in}"

    async def fetch(self, signed_url: str) -> bytes:
        path = signed_url.removeprefix("memory://").split("?", 1)[0]
        try:
            return self.objects[path]
        except KeyError as exc:
            raise StorageError(f"Object not found: {path}") from exc

    async def delete(self, paths: list[str]) -> None:
        for path in paths:
            self.objects.pop(path, None)
            self.deleted.append(path)

    async def list_paths(self, prefix: str) -> list[str]:
        prefix = prefix.rstrip("/") + "/"
        return sorted(
            path for path in self.objects if path.startswith(prefix) and "/" not in path[len(prefix) :]
        )


# ---------------------------------------------------------------------------
# Settings / storage fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path):
    """Settings pointing every resource at the test's temp directory."""
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        storage_provider="local",
        storage_root=str(tmp_path / "objects"),
        storage_signing_secret=TEST_SECRET,
        public_base_url="http://test",
        deepgram_api_key="dg-test-key",
        openai_api_key="sk-test",
        upload_chunk_size=5 * 1024,
        upload_chunk_threshold=50 * 1024,
        upload_max_file_size=1024 * 1024,
        status_poll_interval_seconds=30.0,
        cron_secret="",
    )


@pytest.fixture
def memory_store():
    """In-memory object store with call recording."""
    return InMemoryObjectStore()


@pytest.fixture
async def database(settings):
    """File-backed SQLite database with tables created, disposed after test."""
    from meetnotes.services.storage.database import Database

    db = Database(settings.database_url)
    await db.init()
    yield db
    await db.close()


@pytest.fixture
async def db_session(database):
    """Yield an AsyncSession bound to the test database; rolls back after test."""
    async with database._session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def repository(db_session):
    """Return a RecordingRepository bound to the test session."""
    from meetnotes.services.storage.repository import RecordingRepository

    return RecordingRepository(db_session)


@pytest.fixture
def hub():
    from meetnotes.services.notifications import StatusHub

    return StatusHub()


@pytest.fixture
def jobs(database, hub):
    from meetnotes.services.jobs import JobStateStore

    return JobStateStore(database, hub)


@pytest.fixture
def make_recording(database, memory_store):
    """Factory creating a stored recording in a given status.

    Usage::

        recording = await make_recording(status=RecordingStatus.processing)
    """
    from meetnotes.services.storage.repository import RecordingRepository

    async def _make(
        status: RecordingStatus = RecordingStatus.processing,
        owner_id: str = "user-1",
        data: bytes | None = b"fake-audio-bytes",
        storage_path: str | None = None,
        mime_type: str = "audio/mpeg",
    ):
        path = storage_path or f"recordings/{owner_id}/{len(memory_store.objects) + 1}.mp3"
        if data is not None:
            memory_store.objects[path] = data
        async with database.session() as session:
            repo = RecordingRepository(session)
            recording = await repo.create_recording(
                owner_id=owner_id,
                file_name="standup.mp3",
                mime_type=mime_type,
                byte_size=len(data or b""),
                storage_path=path,
            )
            if status != RecordingStatus.pending:
                await repo.update_status(recording.id, status)
            return await repo.get_recording(recording.id, refresh=True)

    return _make


# ---------------------------------------------------------------------------
# LLM / STT fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_llm():
    """Create a mock LLM provider returning a valid summary.

    Returns:
        AsyncMock: A mock implementing the BaseLLM interface.
    """
    from meetnotes.services.llm.base import BaseLLM

    llm = AsyncMock(spec=BaseLLM)
    llm.provider = "fake"
    llm.model_name = "fake-model"
    llm.generate.return_value = SUMMARY_JSON
    return llm


@pytest.fixture
def mock_stt():
    """Create a mock STT provider with a default transcript.

    Returns:
        AsyncMock: A mock implementing the BaseSTT interface.
    """
    from meetnotes.services.transcription.base import BaseSTT

    stt = AsyncMock(spec=BaseSTT)
    stt.transcribe.return_value = TranscriptionResult(
        text="Alice: we ship on Friday. Bob: agreed.",
        language="en",
        confidence=0.97,
        duration=42.0,
        model="nova-2",
    )
    return stt


@pytest.fixture
def services(settings, database, memory_store, mock_stt, mock_llm, hub):
    """Fully wired services container using the fakes above."""
    from meetnotes.services.container import build_services

    return build_services(
        settings,
        database=database,
        object_store=memory_store,
        stt=mock_stt,
        llm=mock_llm,
        hub=hub,
    )
