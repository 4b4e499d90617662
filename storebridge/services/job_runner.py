"""Job runner for sequential, per-item migration batches."""

import json
import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from ..errors import StoreBridgeError
from ..models.canonical import EntityType, Platform
from ..models.job import JobStatus, MigrationJob
from ..models.record import ItemOutcome, ItemResult, ItemStatus
from .mapper import MigrationMapper

logger = logging.getLogger(__name__)


ItemProcessor = Callable[[str], Union[ItemOutcome, Awaitable[ItemOutcome]]]


class JobAlreadyRunningError(StoreBridgeError):
    """A job was started while it is already being processed."""


class JobNotFoundError(StoreBridgeError):
    """No job is stored under the given ID."""


class JobStore(ABC):
    """Persistence for job records, written after every progress update."""

    @abstractmethod
    def get(self, job_id: str) -> Optional[MigrationJob]:
        pass

    @abstractmethod
    def put(self, job: MigrationJob) -> None:
        pass

    @abstractmethod
    def list(self) -> List[MigrationJob]:
        pass


class InMemoryJobStore(JobStore):
    """Job store kept in a dict; jobs are lost with the process."""

    def __init__(self):
        self._jobs: Dict[str, MigrationJob] = {}

    def get(self, job_id: str) -> Optional[MigrationJob]:
        return self._jobs.get(job_id)

    def put(self, job: MigrationJob) -> None:
        self._jobs[job.id] = job

    def list(self) -> List[MigrationJob]:
        return sorted(self._jobs.values(), key=lambda j: j.created_at, reverse=True)


class JsonFileJobStore(JobStore):
    """Job store writing one JSON file per job under a directory."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, job_id: str) -> Path:
        return self.directory / f"{job_id}.json"

    def get(self, job_id: str) -> Optional[MigrationJob]:
        path = self._path(job_id)
        if not path.exists():
            return None
        with open(path) as f:
            return MigrationJob.from_dict(json.load(f))

    def put(self, job: MigrationJob) -> None:
        path = self._path(job.id)
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, "w") as f:
            json.dump(job.to_dict(), f, indent=2)
        tmp_path.replace(path)

    def list(self) -> List[MigrationJob]:
        jobs = []
        for file_path in self.directory.glob("*.json"):
            try:
                with open(file_path) as f:
                    jobs.append(MigrationJob.from_dict(json.load(f)))
            except (OSError, ValueError, KeyError) as e:
                logger.error(f"Failed to load job from {file_path}: {e}")
        return sorted(jobs, key=lambda j: j.created_at, reverse=True)


class JobRunner:
    """
    Runs migration jobs one item at a time.

    Items are processed strictly sequentially. Sync processors run in a
    worker thread so other jobs and status reads keep the event loop. An
    item's failure is recorded on that item and never aborts the rest of
    the job. Separate jobs may run concurrently; the same job cannot be
    started twice.

    Supports:
    - Capability checks before a job is created
    - Sync or async item processors
    - Persisting the job after every item
    """

    def __init__(self, store: Optional[JobStore] = None, mapper: Optional[MigrationMapper] = None):
        """
        Initialize the runner.

        Args:
            store: Job persistence (defaults to an in-memory store)
            mapper: Mapper used for capability checks
        """
        self.store = store or InMemoryJobStore()
        self.mapper = mapper or MigrationMapper()
        self._processing: Set[str] = set()

    def create_job(
        self,
        entity_type: EntityType,
        source: Platform,
        destination: Platform,
        items: List[str]
    ) -> MigrationJob:
        """
        Create and persist a pending job.

        Raises:
            CapabilityMismatchError: if either platform lacks the entity type
        """
        entity_type, source, destination = EntityType(entity_type), Platform(source), Platform(destination)
        self.mapper.check_capability(entity_type, source, destination)

        job = MigrationJob(
            entity_type=entity_type,
            source=source,
            destination=destination,
            items=[str(i) for i in items],
        )
        self.store.put(job)
        logger.info(f"Created job {job.id}: {len(job.items)} {entity_type.value} items {source.value} -> {destination.value}")
        return job

    def get_job(self, job_id: str) -> Optional[MigrationJob]:
        return self.store.get(job_id)

    def list_jobs(self) -> List[MigrationJob]:
        return self.store.list()

    def is_processing(self, job_id: str) -> bool:
        return job_id in self._processing

    async def process_job(self, job_id: str, processor: ItemProcessor) -> MigrationJob:
        """
        Process every item of a job and settle its final status.

        Args:
            job_id: ID of a stored job
            processor: Called with each item ID; returns an ItemOutcome

        Returns:
            The finished job

        Raises:
            JobNotFoundError: if no job has this ID
            JobAlreadyRunningError: if the job is already being processed
        """
        if job_id in self._processing:
            raise JobAlreadyRunningError(f"Job {job_id} is already processing")

        job = self.store.get(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")

        self._processing.add(job_id)
        try:
            job.status = JobStatus.PROCESSING
            job.progress = 0
            job.results = []
            job.error = None
            self.store.put(job)

            for i, item_id in enumerate(job.items):
                job.results.append(await self._process_item(item_id, processor))
                job.progress = i + 1
                self.store.put(job)

            job.status = self._final_status(job)
            job.completed_at = datetime.utcnow()
            if job.status == JobStatus.FAILED:
                job.error = f"All {job.total} items failed"
            self.store.put(job)

            logger.info(
                f"Job {job.id} {job.status.value}: "
                f"{job.success_count} succeeded, {job.failure_count} failed"
            )
            return job
        finally:
            self._processing.discard(job_id)

    async def _process_item(self, item_id: str, processor: ItemProcessor) -> ItemResult:
        try:
            if inspect.iscoroutinefunction(processor):
                outcome = await processor(item_id)
            else:
                outcome = await asyncio.to_thread(processor, item_id)
            if inspect.isawaitable(outcome):
                outcome = await outcome
        except Exception as e:
            logger.warning(f"Item {item_id} failed: {e}")
            return ItemResult(source_id=item_id, status=ItemStatus.FAILED, error=str(e) or type(e).__name__)

        if outcome.success:
            return ItemResult(source_id=item_id, status=ItemStatus.SUCCESS, destination_id=outcome.destination_id)
        logger.warning(f"Item {item_id} failed: {outcome.error}")
        return ItemResult(source_id=item_id, status=ItemStatus.FAILED, error=outcome.error)

    def _final_status(self, job: MigrationJob) -> JobStatus:
        if not job.results or job.failure_count == 0:
            return JobStatus.COMPLETED
        if job.success_count == 0:
            return JobStatus.FAILED
        return JobStatus.PARTIAL
