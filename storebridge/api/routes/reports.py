"""Gap, orphan and inventory report endpoints."""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query

from ..dependencies import get_orchestrator
from ..models import (
    EntityTypeEnum,
    InventorySyncRequest,
    InventorySyncResponse,
    InventorySyncResultResponse,
    PlatformEnum,
)
from ...models.canonical import EntityType, Platform
from ...models.reconciliation import InventoryDifference
from ...orchestrator import SyncOrchestrator

router = APIRouter()


@router.get("/compare/{entity}")
def compare(
    entity: EntityTypeEnum,
    source: PlatformEnum = Query(..., description="Source of truth"),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """Records of the source of truth that the other store lacks."""
    report = orchestrator.compare(EntityType(entity.value), Platform(source.value))
    return report.to_dict()


@router.get("/orphans/{entity}")
def find_orphans(
    entity: EntityTypeEnum,
    source: PlatformEnum = Query(..., description="Source of truth"),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """Records of the other store with no counterpart on the source of truth."""
    report = orchestrator.find_orphans(EntityType(entity.value), Platform(source.value))
    return report.to_dict()


@router.get("/inventory/compare")
def compare_inventory(
    source: PlatformEnum = Query(..., description="Source of truth"),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """Stock differences for products present on both stores."""
    return orchestrator.compare_inventory(Platform(source.value)).to_dict()


@router.post("/inventory/sync", response_model=InventorySyncResponse)
def sync_inventory(
    data: InventorySyncRequest,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    """Set the other store's stock to the source of truth's quantities."""
    differences = [InventoryDifference(**d.model_dump()) for d in data.differences]
    results = orchestrator.sync_inventory(differences, Platform(data.source_of_truth.value))
    succeeded = sum(1 for r in results if r.success)
    return InventorySyncResponse(
        results=[InventorySyncResultResponse(**r.to_dict()) for r in results],
        succeeded=succeeded,
        failed=len(results) - succeeded,
    )
