"""
Unit tests for the filesystem blob store.
"""

import asyncio
import os
from collections.abc import AsyncIterator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from printbroker.storage import BlobStore


async def _chunks(*parts: bytes) -> AsyncIterator[bytes]:
    for part in parts:
        yield part


class TestBlobStore:
    """Tests for BlobStore."""

    @pytest.fixture
    def store(self, tmp_path: Path) -> BlobStore:
        return BlobStore(tmp_path / "blobs")

    async def test_store_and_read(self, store: BlobStore):
        storage_id = await store.store(_chunks(b"hello ", b"world"))

        assert len(storage_id) == 32
        assert store.exists(storage_id)
        assert store.path_for(storage_id).read_bytes() == b"hello world"

    async def test_failed_store_leaves_nothing(self, store: BlobStore):
        async def failing() -> AsyncIterator[bytes]:
            yield b"partial"
            raise RuntimeError("client went away")

        with pytest.raises(RuntimeError):
            await store.store(failing())

        assert list(store.root.iterdir()) == []

    def test_rejects_malformed_ids(self, store: BlobStore):
        with pytest.raises(ValueError):
            store.path_for("../etc/passwd")

        assert store.exists("../etc/passwd") is False

    async def test_delete(self, store: BlobStore):
        storage_id = await store.store(_chunks(b"data"))

        assert store.delete(storage_id) is True
        assert store.exists(storage_id) is False
        assert store.delete(storage_id) is False

    async def test_list_blobs_older_than(self, store: BlobStore):
        old_id = await store.store(_chunks(b"old"))
        new_id = await store.store(_chunks(b"new"))
        ten_days_ago = (datetime.now(timezone.utc) - timedelta(days=10)).timestamp()
        os.utime(store.path_for(old_id), (ten_days_ago, ten_days_ago))

        cutoff = datetime.now(timezone.utc) - timedelta(days=7)
        found = store.list_blobs_older_than(cutoff, limit=10)

        assert found == [old_id]
        assert new_id not in found

    def test_delete_stale_partials(self, store: BlobStore):
        stale = store.root / f"{'a' * 32}.part"
        fresh = store.root / f"{'b' * 32}.part"
        unrelated = store.root / "notes.part"
        for path in (stale, fresh, unrelated):
            path.write_bytes(b"partial")
        ten_days_ago = (datetime.now(timezone.utc) - timedelta(days=10)).timestamp()
        for path in (stale, unrelated):
            os.utime(path, (ten_days_ago, ten_days_ago))

        cutoff = datetime.now(timezone.utc) - timedelta(days=7)

        assert store.delete_stale_partials(cutoff, limit=10) == 1
        assert not stale.exists()
        assert fresh.exists()
        assert unrelated.exists()

    async def test_store_does_not_block_event_loop(self, store: BlobStore):
        ticks = 0

        async def ticker():
            nonlocal ticks
            while True:
                ticks += 1
                await asyncio.sleep(0)

        async def many() -> AsyncIterator[bytes]:
            for _ in range(20):
                yield b"x" * 1024

        task = asyncio.create_task(ticker())
        try:
            storage_id = await store.store(many())
        finally:
            task.cancel()

        assert store.path_for(storage_id).stat().st_size == 20 * 1024
        assert ticks > 0
