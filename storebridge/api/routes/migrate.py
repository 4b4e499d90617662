"""Migration endpoints: single items, previews and background jobs."""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException

from ..dependencies import get_orchestrator
from ..models import (
    BulkMigrateRequest,
    JobListResponse,
    JobResponse,
    MigrateItemRequest,
    MigrateItemResponse,
    PreviewResponse,
)
from ...models.canonical import EntityType, Platform
from ...orchestrator import SyncOrchestrator

router = APIRouter()


def _check_platforms(source, destination):
    if source == destination:
        raise HTTPException(status_code=400, detail="Source and destination must be different platforms")


@router.post("/single", response_model=MigrateItemResponse)
def migrate_single(
    data: MigrateItemRequest,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    """Fetch, validate and create one item on the destination."""
    _check_platforms(data.source, data.destination)
    outcome = orchestrator.migrate_item(
        EntityType(data.type.value),
        data.item_id,
        Platform(data.source.value),
        Platform(data.destination.value),
    )
    return MigrateItemResponse(success=outcome.success, destination_id=outcome.destination_id)


@router.post("/preview", response_model=PreviewResponse)
def preview(
    data: MigrateItemRequest,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    """Show the destination payload and lossy-conversion warnings for one item."""
    _check_platforms(data.source, data.destination)
    result = orchestrator.preview_item(
        EntityType(data.type.value),
        data.item_id,
        Platform(data.source.value),
        Platform(data.destination.value),
    )
    return PreviewResponse(**result.to_dict())


@router.post("/bulk", response_model=JobResponse)
async def migrate_bulk(
    data: BulkMigrateRequest,
    background_tasks: BackgroundTasks,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    """Create a migration job and run it in the background."""
    _check_platforms(data.source, data.destination)
    job = orchestrator.start_migration(
        EntityType(data.type.value),
        data.item_ids,
        Platform(data.source.value),
        Platform(data.destination.value),
    )

    # Start migration in background
    background_tasks.add_task(orchestrator.run_job, job.id)

    return JobResponse(**job.to_dict())


@router.get("/jobs", response_model=JobListResponse)
async def list_jobs(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """List all migration jobs."""
    jobs = orchestrator.list_jobs()
    return JobListResponse(jobs=[JobResponse(**j.to_dict()) for j in jobs], total=len(jobs))


@router.get("/jobs/{job_id}", response_model=JobResponse)
async def get_job(job_id: str, orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """Get a migration job's status and per-item results."""
    job = orchestrator.get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobResponse(**job.to_dict())
