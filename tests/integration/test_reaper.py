"""
Integration tests for the retention reaper.
"""

import os
from datetime import timedelta
from uuid import UUID

import pytest

from printbroker.db import get_session_context
from printbroker.db.models import utcnow
from printbroker.db.repository import JobRepository
from printbroker.reaper.main import Reaper
from printbroker.storage import BlobStore


async def _store(blob_store: BlobStore, data: bytes = b"payload") -> str:
    async def chunks():
        yield data

    return await blob_store.store(chunks())


async def _create_job(storage_id: str, age_days: float) -> UUID:
    async with get_session_context() as session:
        repo = JobRepository(session)
        job = await repo.create_job(
            client_id="c1",
            printer_id="office",
            storage_id=storage_id,
        )
        job.created_at = utcnow() - timedelta(days=age_days)
        return job.id


async def _job_exists(job_id: UUID) -> bool:
    async with get_session_context() as session:
        return await JobRepository(session).get_job(job_id) is not None


class TestReaper:
    """Tests for batch cleanup."""

    @pytest.fixture
    def reaper(self, database, blob_store: BlobStore) -> Reaper:
        return Reaper(blob_store=blob_store, max_age_days=7, batch_size=2)

    async def test_shared_payload_kept_while_referenced(self, reaper: Reaper, blob_store: BlobStore):
        """Deleting the older of two jobs sharing a payload keeps the payload."""
        shared = await _store(blob_store)
        older = await _create_job(shared, age_days=10)
        newer = await _create_job(shared, age_days=1)

        result = await reaper.sweep()

        assert result.deleted_jobs == 1
        assert result.deleted_blobs == 0
        assert not await _job_exists(older)
        assert await _job_exists(newer)
        assert blob_store.exists(shared)

    async def test_shared_payload_deleted_with_last_job(self, reaper: Reaper, blob_store: BlobStore):
        shared = await _store(blob_store)
        await _create_job(shared, age_days=10)
        await _create_job(shared, age_days=9)

        result = await reaper.sweep()

        assert result.deleted_jobs == 2
        assert result.deleted_blobs == 1
        assert not blob_store.exists(shared)

    async def test_run_batch_is_bounded(self, reaper: Reaper, blob_store: BlobStore):
        for age in (12, 11, 10):
            await _create_job(await _store(blob_store), age_days=age)

        first = await reaper.run_batch(reaper.cutoff())
        second = await reaper.run_batch(reaper.cutoff())

        assert (first.deleted_jobs, first.has_more) == (2, True)
        assert (second.deleted_jobs, second.has_more) == (1, False)

    async def test_sweep_continues_until_done(self, reaper: Reaper, blob_store: BlobStore):
        storage_ids = [await _store(blob_store) for _ in range(5)]
        for storage_id in storage_ids:
            await _create_job(storage_id, age_days=30)

        result = await reaper.sweep()

        assert result.deleted_jobs == 5
        assert result.deleted_blobs == 5
        assert not any(blob_store.exists(s) for s in storage_ids)

    async def test_fresh_jobs_untouched(self, reaper: Reaper, blob_store: BlobStore):
        storage_id = await _store(blob_store)
        job_id = await _create_job(storage_id, age_days=1)

        result = await reaper.run_once()

        assert result.deleted_jobs == 0
        assert await _job_exists(job_id)
        assert blob_store.exists(storage_id)

    async def test_blob_delete_failure_is_skipped(self, reaper: Reaper, blob_store: BlobStore, monkeypatch):
        first = await _store(blob_store)
        second = await _store(blob_store)
        await _create_job(first, age_days=10)
        await _create_job(second, age_days=10)

        real_delete = blob_store.delete

        def flaky_delete(storage_id: str) -> bool:
            if storage_id == first:
                raise PermissionError("read-only filesystem")
            return real_delete(storage_id)

        monkeypatch.setattr(blob_store, "delete", flaky_delete)

        result = await reaper.sweep()

        assert result.deleted_jobs == 2
        assert result.deleted_blobs == 1
        assert blob_store.exists(first)
        assert not blob_store.exists(second)

    async def test_orphan_blobs_swept(self, reaper: Reaper, blob_store: BlobStore):
        orphan = await _store(blob_store)
        referenced = await _store(blob_store)
        fresh_orphan = await _store(blob_store)
        await _create_job(referenced, age_days=1)
        aged = (utcnow() - timedelta(days=30)).timestamp()
        for storage_id in (orphan, referenced):
            os.utime(blob_store.path_for(storage_id), (aged, aged))

        deleted = await reaper.sweep_orphan_blobs(reaper.cutoff())

        assert deleted == 1
        assert not blob_store.exists(orphan)
        assert blob_store.exists(referenced)
        assert blob_store.exists(fresh_orphan)

    async def test_stale_partial_uploads_swept(self, reaper: Reaper, blob_store: BlobStore):
        partial = blob_store.root / f"{'c' * 32}.part"
        partial.write_bytes(b"half an upload")
        aged = (utcnow() - timedelta(days=30)).timestamp()
        os.utime(partial, (aged, aged))

        await reaper.run_once()

        assert not partial.exists()
