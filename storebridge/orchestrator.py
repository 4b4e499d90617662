"""Sync orchestrator - wires connectors to the mapping and reconciliation engine."""

import logging
from typing import Any, Dict, List, Optional

from .connectors.base import DestinationConnector, SourceConnector
from .errors import ConnectorError, ValidationFailedError
from .models.canonical import EntityType, Platform
from .models.config import AppConfig
from .models.job import MigrationJob
from .models.reconciliation import (
    GapReport,
    InventoryDifference,
    InventoryReport,
    InventorySyncResult,
    OrphanReport,
)
from .models.record import ItemOutcome, MigrationPreview, ValidationResult
from .services.filters import filter_customers
from .services.job_runner import InMemoryJobStore, JobNotFoundError, JobRunner, JobStore, JsonFileJobStore
from .services.mapper import MigrationMapper
from .services.reconciler import ReconciliationEngine
from .services.validator import RecordValidator

logger = logging.getLogger(__name__)


def other_platform(platform: Platform) -> Platform:
    return Platform.SHOPIFY if Platform(platform) == Platform.WOOCOMMERCE else Platform.WOOCOMMERCE


class SyncOrchestrator:
    """
    Coordinates fetches, reports and migrations between two stores.

    Handles:
    - Gap, orphan and inventory reports with one platform as source of truth
    - Inventory corrections on the other platform
    - Single-item previews and migrations (fetch, validate, write)
    - Background migration jobs
    """

    def __init__(
        self,
        connectors: Dict[Platform, Any],
        mapper: Optional[MigrationMapper] = None,
        validator: Optional[RecordValidator] = None,
        engine: Optional[ReconciliationEngine] = None,
        job_store: Optional[JobStore] = None
    ):
        """
        Initialize the orchestrator.

        Args:
            connectors: Connector per platform; each reads and writes native records
            mapper: Migration mapper (defaults to the built-in normalizers)
            validator: Canonical record validator
            engine: Reconciliation engine
            job_store: Persistence for migration jobs
        """
        self.connectors = connectors
        self.mapper = mapper or MigrationMapper()
        self.validator = validator or RecordValidator()
        self.engine = engine or ReconciliationEngine()
        self.runner = JobRunner(store=job_store or InMemoryJobStore(), mapper=self.mapper)

    @classmethod
    def from_config(cls, config: AppConfig) -> "SyncOrchestrator":
        from .connectors import build_connectors

        store = JsonFileJobStore(config.jobs_dir) if config.jobs_dir else InMemoryJobStore()
        return cls(connectors=build_connectors(config), job_store=store)

    def _source(self, platform: Platform) -> SourceConnector:
        return self._connector(platform)

    def _destination(self, platform: Platform) -> DestinationConnector:
        return self._connector(platform)

    def _connector(self, platform: Platform) -> Any:
        platform = Platform(platform)
        connector = self.connectors.get(platform)
        if connector is None:
            raise ConnectorError(f"{platform.value} is not connected")
        return connector

    def _fetch_pair(self, entity_type: EntityType, source_of_truth: Platform):
        destination = other_platform(source_of_truth)
        source_records = self._source(source_of_truth).fetch_all(entity_type)
        destination_records = self._source(destination).fetch_all(entity_type)
        return source_records, destination_records, destination

    # Reports

    def compare(self, entity_type: EntityType, source_of_truth: Platform) -> GapReport:
        """
        Gap report for an entity type, with one platform as source of truth.

        Customer snapshots are filtered before matching; filter warnings
        are attached to the report.
        """
        entity_type, source_of_truth = EntityType(entity_type), Platform(source_of_truth)
        source_records, destination_records, destination = self._fetch_pair(entity_type, source_of_truth)

        warnings: List[str] = []
        if entity_type == EntityType.CUSTOMER:
            filtered = filter_customers(source_records, source_of_truth)
            source_records, warnings = filtered.records, filtered.warnings

        report = self.engine.compare(source_records, destination_records, entity_type, source_of_truth, destination)
        report.warnings.extend(warnings)
        return report

    def find_orphans(self, entity_type: EntityType, source_of_truth: Platform) -> OrphanReport:
        """Records on the other platform with no counterpart on the source of truth."""
        entity_type, source_of_truth = EntityType(entity_type), Platform(source_of_truth)
        source_records, destination_records, destination = self._fetch_pair(entity_type, source_of_truth)
        return self.engine.find_orphans(source_records, destination_records, entity_type, source_of_truth, destination)

    def compare_inventory(self, source_of_truth: Platform) -> InventoryReport:
        source_of_truth = Platform(source_of_truth)
        source_records, destination_records, destination = self._fetch_pair(EntityType.PRODUCT, source_of_truth)
        return self.engine.compare_inventory(source_records, destination_records, source_of_truth, destination)

    def sync_inventory(
        self,
        differences: List[InventoryDifference],
        source_of_truth: Platform
    ) -> List[InventorySyncResult]:
        """
        Set destination stock to the source quantity for each difference.

        Each correction is independent; a failure is recorded and the
        remaining corrections still run.
        """
        destination = self._destination(other_platform(source_of_truth))
        results = []
        for diff in differences:
            try:
                destination.update_inventory(
                    diff.destination_product_id,
                    diff.source_quantity,
                    variant_id=diff.destination_variant_id,
                )
                results.append(InventorySyncResult(product_id=diff.product_id, success=True))
            except Exception as e:
                logger.error(f"Failed to update inventory for {diff.name} ({diff.product_id}): {e}")
                results.append(InventorySyncResult(product_id=diff.product_id, success=False, error=str(e)))
        logger.info(f"Inventory sync: {sum(1 for r in results if r.success)}/{len(results)} updated")
        return results

    # Migration

    def preview_item(
        self,
        entity_type: EntityType,
        item_id: str,
        source: Platform,
        destination: Platform
    ) -> MigrationPreview:
        self.mapper.check_capability(entity_type, source, destination)
        data = self._source(source).fetch_one(entity_type, item_id)
        return self.mapper.preview(data, entity_type, source, destination)

    def validate_item(self, data: Dict[str, Any], entity_type: EntityType, source: Platform) -> ValidationResult:
        canonical = self.mapper.to_canonical(data, entity_type, source)
        return self.validator.validate(canonical, entity_type)

    def migrate_item(
        self,
        entity_type: EntityType,
        item_id: str,
        source: Platform,
        destination: Platform
    ) -> ItemOutcome:
        """
        Fetch, validate and write one item.

        Raises:
            CapabilityMismatchError: if either platform lacks the entity type
            ValidationFailedError: if the canonical record is incomplete
            ConnectorError: if the fetch or the write fails
        """
        self.mapper.check_capability(entity_type, source, destination)
        data = self._source(source).fetch_one(entity_type, item_id)

        canonical = self.mapper.to_canonical(data, entity_type, source)
        validation = self.validator.validate(canonical, entity_type)
        if not validation.valid:
            raise ValidationFailedError(validation.errors)

        payload = self.mapper.to_native(canonical, entity_type, destination)
        created = self._destination(destination).create(entity_type, payload)
        logger.info(
            f"Migrated {EntityType(entity_type).value} {item_id} "
            f"{Platform(source).value} -> {Platform(destination).value} as {created['id']}"
        )
        return ItemOutcome(success=True, destination_id=created["id"])

    def start_migration(
        self,
        entity_type: EntityType,
        item_ids: List[str],
        source: Platform,
        destination: Platform
    ) -> MigrationJob:
        """Create a pending job; run it with run_job()."""
        self._connector(source)
        self._connector(destination)
        return self.runner.create_job(entity_type, source, destination, item_ids)

    async def run_job(self, job_id: str) -> MigrationJob:
        job = self.runner.get_job(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")

        def process(item_id: str) -> ItemOutcome:
            return self.migrate_item(job.entity_type, item_id, job.source, job.destination)

        return await self.runner.process_job(job_id, process)

    def get_job(self, job_id: str) -> Optional[MigrationJob]:
        return self.runner.get_job(job_id)

    def list_jobs(self) -> List[MigrationJob]:
        return self.runner.list_jobs()
