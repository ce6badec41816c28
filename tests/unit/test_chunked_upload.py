"""Tests for ChunkedUploader: direct vs chunked transfer, ordering, cleanup."""

import pytest

from meetnotes.core.exceptions import StorageError
from meetnotes.services.upload import ChunkedUploader

KIB = 1024


def _payload(size: int) -> bytes:
    """Deterministic bytes where every position is distinguishable."""
    return bytes(i % 251 for i in range(size))


@pytest.fixture
def uploader(memory_store):
    # Scaled-down sizes: 5 KiB chunks above a 50 KiB threshold.
    return ChunkedUploader(
        memory_store,
        chunk_size=5 * KIB,
        threshold=50 * KIB,
        max_concurrency=6,
        clock=lambda: 1_700_000_000.0,
    )


class TestPartCount:
    def test_at_threshold_is_single_part(self, uploader):
        assert uploader.part_count(50 * KIB) == 1

    def test_above_threshold_rounds_up(self, uploader):
        assert uploader.part_count(120 * KIB) == 24
        assert uploader.part_count(120 * KIB + 1) == 25


class TestDirectUpload:
    async def test_small_file_single_put(self, uploader, memory_store):
        data = _payload(10 * KIB)
        report = await uploader.upload(data, "recordings/u1/1.mp3", "audio/mpeg")

        assert report.chunked is False
        assert report.part_count == 1
        assert memory_store.put_paths == ["recordings/u1/1.mp3"]
        assert memory_store.objects["recordings/u1/1.mp3"] == data
        assert memory_store.content_types["recordings/u1/1.mp3"] == "audio/mpeg"

    async def test_exactly_threshold_is_not_chunked(self, uploader, memory_store):
        await uploader.upload(_payload(50 * KIB), "recordings/u1/2.mp3", "audio/mpeg")
        assert len(memory_store.put_paths) == 1

    async def test_progress_reports_start_and_end(self, uploader):
        seen: list[int] = []
        await uploader.upload(_payload(KIB), "recordings/u1/3.mp3", "audio/mpeg", on_progress=seen.append)
        assert seen == [0, 100]


class TestChunkedUpload:
    async def test_parts_then_assembled_destination(self, uploader, memory_store):
        data = _payload(120 * KIB)
        report = await uploader.upload(data, "recordings/u1/big.mp4", "video/mp4")

        assert report.chunked is True
        assert report.part_count == 24
        part_puts = [p for p in memory_store.put_paths if p.startswith("chunks/")]
        assert len(part_puts) == 24
        # Destination is written last, byte-identical to the input
        assert memory_store.put_paths[-1] == "recordings/u1/big.mp4"
        assert memory_store.objects["recordings/u1/big.mp4"] == data
        assert memory_store.content_types["recordings/u1/big.mp4"] == "video/mp4"

    async def test_last_part_is_remainder(self, uploader, memory_store):
        data = _payload(50 * KIB + 123)
        await uploader.upload(data, "recordings/u1/odd.mp3", "audio/mpeg")
        assert memory_store.objects["recordings/u1/odd.mp3"] == data

    async def test_temporary_parts_removed_on_success(self, uploader, memory_store):
        await uploader.upload(_payload(60 * KIB), "recordings/u1/x.mp3", "audio/mpeg")

        assert not [p for p in memory_store.objects if p.startswith("chunks/")]
        assert len(memory_store.deleted) == 12
        assert all(p.startswith("chunks/1700000000000-") for p in memory_store.deleted)

    async def test_concurrency_is_bounded(self, uploader, memory_store):
        await uploader.upload(_payload(120 * KIB), "recordings/u1/y.mp3", "audio/mpeg")
        assert 1 < memory_store.max_in_flight <= 6

    async def test_progress_is_monotonic_and_ends_at_100(self, uploader):
        seen: list[int] = []
        await uploader.upload(_payload(120 * KIB), "recordings/u1/z.mp3", "audio/mpeg", on_progress=seen.append)

        assert seen[0] == 0
        assert seen[-1] == 100
        assert seen == sorted(set(seen))

    async def test_chunk_failure_surfaces_single_error_and_cleans_up(self, uploader, memory_store):
        memory_store.fail_on = "00007.part"

        with pytest.raises(StorageError):
            await uploader.upload(_payload(120 * KIB), "recordings/u1/fail.mp3", "audio/mpeg")

        assert "recordings/u1/fail.mp3" not in memory_store.objects
        assert not [p for p in memory_store.objects if p.startswith("chunks/")]
        assert memory_store.deleted


class TestValidation:
    def test_rejects_non_positive_chunk_size(self, memory_store):
        with pytest.raises(ValueError):
            ChunkedUploader(memory_store, chunk_size=0)
