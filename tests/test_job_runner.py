"""
Tests for JobRunner and the job stores.

Tests:
- Final status: completed, partial, failed
- Item failures are recorded and never abort the job
- Progress is persisted after every item
- A job cannot be started twice at once
- Blocking processors leave other jobs and status reads running
- JSON file persistence
"""

import asyncio
import time

import pytest

from storebridge.errors import CapabilityMismatchError, DestinationWriteError
from storebridge.models.canonical import EntityType, Platform
from storebridge.models.job import JobStatus
from storebridge.models.record import ItemOutcome, ItemStatus
from storebridge.services.job_runner import (
    InMemoryJobStore,
    JobAlreadyRunningError,
    JobNotFoundError,
    JobRunner,
    JsonFileJobStore,
)


class RecordingStore(InMemoryJobStore):
    """In-memory store remembering the progress of every write."""

    def __init__(self):
        super().__init__()
        self.progress_writes = []

    def put(self, job):
        super().put(job)
        self.progress_writes.append((job.status, job.progress))


@pytest.fixture
def runner():
    return JobRunner(store=RecordingStore())


def create(runner, items):
    return runner.create_job(EntityType.PRODUCT, Platform.WOOCOMMERCE, Platform.SHOPIFY, items)


def succeed(item_id):
    return ItemOutcome(success=True, destination_id=f"new-{item_id}")


class TestFinalStatus:
    """Tests for the job state machine."""

    def test_second_item_throws_gives_partial(self, runner):
        job = create(runner, ["1", "2", "3"])

        def process(item_id):
            if item_id == "2":
                raise DestinationWriteError("handle has already been taken")
            return succeed(item_id)

        result = asyncio.run(runner.process_job(job.id, process))

        assert result.status == JobStatus.PARTIAL
        assert len(result.results) == 3
        assert result.results[1].status == ItemStatus.FAILED
        assert result.results[1].error == "handle has already been taken"
        assert result.results[0].status == result.results[2].status == ItemStatus.SUCCESS
        assert result.results[2].destination_id == "new-3"
        assert result.completed_at is not None

    def test_all_succeed(self, runner):
        job = create(runner, ["1", "2"])
        result = asyncio.run(runner.process_job(job.id, succeed))

        assert result.status == JobStatus.COMPLETED
        assert result.error is None
        assert result.success_count == 2

    def test_all_fail(self, runner):
        job = create(runner, ["1", "2"])

        def process(item_id):
            raise ValueError("boom")

        result = asyncio.run(runner.process_job(job.id, process))

        assert result.status == JobStatus.FAILED
        assert result.error == "All 2 items failed"
        assert result.failure_count == 2

    def test_unsuccessful_outcome_is_a_failure(self, runner):
        job = create(runner, ["1", "2"])

        def process(item_id):
            if item_id == "1":
                return ItemOutcome(success=False, error="skipped")
            return succeed(item_id)

        result = asyncio.run(runner.process_job(job.id, process))

        assert result.status == JobStatus.PARTIAL
        assert result.results[0].error == "skipped"

    def test_empty_job_completes(self, runner):
        job = create(runner, [])
        result = asyncio.run(runner.process_job(job.id, succeed))

        assert result.status == JobStatus.COMPLETED
        assert result.results == []

    def test_async_processor(self, runner):
        job = create(runner, ["1"])

        async def process(item_id):
            await asyncio.sleep(0)
            return succeed(item_id)

        result = asyncio.run(runner.process_job(job.id, process))
        assert result.results[0].destination_id == "new-1"


class TestProgress:
    """Tests for progress persistence."""

    def test_progress_written_after_every_item(self, runner):
        job = create(runner, ["1", "2", "3"])
        asyncio.run(runner.process_job(job.id, succeed))

        progress = [p for status, p in runner.store.progress_writes if status == JobStatus.PROCESSING]
        assert progress == [0, 1, 2, 3]
        assert runner.store.progress_writes[0] == (JobStatus.PENDING, 0)
        assert runner.store.progress_writes[-1] == (JobStatus.COMPLETED, 3)

    def test_job_dict_shape(self, runner):
        job = create(runner, ["1"])
        data = asyncio.run(runner.process_job(job.id, succeed)).to_dict()

        assert data["type"] == "product"
        assert data["source"] == "woocommerce"
        assert data["destination"] == "shopify"
        assert data["total"] == 1
        assert data["progress"] == 1
        assert data["results"][0]["status"] == "success"


class TestConcurrency:
    """Tests for starting jobs."""

    def test_same_job_cannot_run_twice(self, runner):
        job = create(runner, ["1", "2"])

        async def scenario():
            started = asyncio.Event()
            release = asyncio.Event()

            async def process(item_id):
                started.set()
                await release.wait()
                return succeed(item_id)

            first = asyncio.ensure_future(runner.process_job(job.id, process))
            await started.wait()
            assert runner.is_processing(job.id)
            with pytest.raises(JobAlreadyRunningError):
                await runner.process_job(job.id, process)
            release.set()
            return await first

        result = asyncio.run(scenario())

        assert result.status == JobStatus.COMPLETED
        assert not runner.is_processing(job.id)

    def test_blocking_processor_does_not_stall_other_jobs(self, runner):
        first = create(runner, ["1", "2", "3"])
        second = create(runner, ["4", "5", "6"])
        order = []
        seen_progress = set()

        def process(item_id):
            time.sleep(0.05)
            order.append(item_id)
            return succeed(item_id)

        async def watch():
            for _ in range(500):
                job = runner.get_job(first.id)
                seen_progress.add(job.progress)
                if job.status == JobStatus.COMPLETED:
                    return
                await asyncio.sleep(0.01)

        async def scenario():
            return await asyncio.gather(
                runner.process_job(first.id, process),
                runner.process_job(second.id, process),
                watch(),
            )

        done_first, done_second, _ = asyncio.run(scenario())

        assert done_first.status == JobStatus.COMPLETED
        assert done_second.status == JobStatus.COMPLETED
        assert order.index("4") < order.index("3")
        assert [i for i in order if i in ("1", "2", "3")] == ["1", "2", "3"]
        assert [i for i in order if i in ("4", "5", "6")] == ["4", "5", "6"]
        assert seen_progress & {1, 2}

    def test_unknown_job(self, runner):
        with pytest.raises(JobNotFoundError):
            asyncio.run(runner.process_job("missing", succeed))

    def test_capability_checked_at_creation(self, runner):
        with pytest.raises(CapabilityMismatchError):
            runner.create_job(EntityType.REVIEW, Platform.WOOCOMMERCE, Platform.SHOPIFY, ["1"])
        assert runner.list_jobs() == []


class TestJsonFileJobStore:
    """Tests for the file-backed store."""

    def test_round_trip(self, tmp_path):
        runner = JobRunner(store=JsonFileJobStore(tmp_path / "jobs"))
        job = create(runner, ["1", "2"])

        def process(item_id):
            if item_id == "2":
                raise DestinationWriteError("rejected")
            return succeed(item_id)

        asyncio.run(runner.process_job(job.id, process))

        reloaded = JsonFileJobStore(tmp_path / "jobs").get(job.id)
        assert reloaded.status == JobStatus.PARTIAL
        assert reloaded.progress == 2
        assert reloaded.results[1].error == "rejected"
        assert reloaded.completed_at is not None
        assert (tmp_path / "jobs" / f"{job.id}.json").exists()

    def test_missing_job(self, tmp_path):
        assert JsonFileJobStore(tmp_path).get("nope") is None

    def test_list_skips_unreadable_files(self, tmp_path):
        store = JsonFileJobStore(tmp_path)
        runner = JobRunner(store=store)
        first = create(runner, ["1"])
        (tmp_path / "broken.json").write_text("{not json")

        assert [j.id for j in store.list()] == [first.id]
