"""Command-line interface for store comparison and migration."""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, List, Optional

from .errors import StoreBridgeError
from .models.canonical import EntityType, Platform
from .models.config import AppConfig
from .orchestrator import SyncOrchestrator, other_platform

logger = logging.getLogger(__name__)


PLATFORMS = [p.value for p in Platform]
ENTITY_TYPES = [e.value for e in EntityType]


def load_config(args) -> AppConfig:
    """Config file if given, environment variables otherwise; --dry-run always wins."""
    config = AppConfig.from_json_file(args.config) if args.config else AppConfig.from_env()
    if args.dry_run:
        config.dry_run = True
    return config


def build_orchestrator(config: AppConfig) -> SyncOrchestrator:
    return SyncOrchestrator.from_config(config)


def _print_json(data: Any):
    print(json.dumps(data, indent=2, default=str))


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="StoreBridge - Compare and migrate data between WooCommerce and Shopify"
    )
    parser.add_argument("--config", help="Path to a JSON config file (default: environment variables)")
    parser.add_argument("--dry-run", action="store_true", help="Never write to the destination store")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    parser.add_argument("--json", action="store_true", help="Print full reports as JSON")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Gap report
    compare_parser = subparsers.add_parser("compare", help="List records missing from the other store")
    compare_parser.add_argument("entity", choices=ENTITY_TYPES, help="Entity type")
    compare_parser.add_argument("--source", required=True, choices=PLATFORMS, help="Source of truth")

    # Orphan report
    orphans_parser = subparsers.add_parser("orphans", help="List records only the other store has")
    orphans_parser.add_argument("entity", choices=ENTITY_TYPES, help="Entity type")
    orphans_parser.add_argument("--source", required=True, choices=PLATFORMS, help="Source of truth")

    # Inventory
    inventory_parser = subparsers.add_parser("inventory", help="Compare stock levels")
    inventory_parser.add_argument("--source", required=True, choices=PLATFORMS, help="Source of truth")
    inventory_parser.add_argument("--sync", action="store_true", help="Correct the other store's stock")

    # Preview
    preview_parser = subparsers.add_parser("preview", help="Preview the migration of one item")
    preview_parser.add_argument("entity", choices=ENTITY_TYPES, help="Entity type")
    preview_parser.add_argument("item_id", help="Item ID on the source store")
    preview_parser.add_argument("--source", required=True, choices=PLATFORMS, help="Source platform")

    # Migrate
    migrate_parser = subparsers.add_parser("migrate", help="Migrate items as a job")
    migrate_parser.add_argument("entity", choices=ENTITY_TYPES, help="Entity type")
    migrate_parser.add_argument("item_ids", nargs="+", help="Item IDs on the source store")
    migrate_parser.add_argument("--source", required=True, choices=PLATFORMS, help="Source platform")

    # Job status
    status_parser = subparsers.add_parser("status", help="Show a migration job")
    status_parser.add_argument("job_id", nargs="?", help="Job ID (lists all jobs if omitted)")

    args = parser.parse_args(argv)

    # Set up logging
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    if not args.command:
        parser.print_help()
        return 1

    try:
        orchestrator = build_orchestrator(load_config(args))

        if args.command == "compare":
            return run_compare(orchestrator, args)
        elif args.command == "orphans":
            return run_orphans(orchestrator, args)
        elif args.command == "inventory":
            return run_inventory(orchestrator, args)
        elif args.command == "preview":
            return run_preview(orchestrator, args)
        elif args.command == "migrate":
            return run_migrate(orchestrator, args)
        elif args.command == "status":
            return run_status(orchestrator, args)
    except StoreBridgeError as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1

    parser.print_help()
    return 1


def run_compare(orchestrator: SyncOrchestrator, args) -> int:
    """Print records of the source of truth missing from the other store."""
    report = orchestrator.compare(EntityType(args.entity), Platform(args.source))
    if args.json:
        _print_json(report.to_dict())
        return 0

    summary = report.summary
    print(f"\n=== {args.entity} gap report ({report.source_platform.value} -> {report.destination_platform.value}) ===")
    for warning in report.warnings:
        print(f"WARNING: {warning}")
    print(f"Source records: {summary.source_count}")
    print(f"Destination records: {summary.destination_count}")
    print(f"Matched: {summary.matched}")
    print(f"Only in source: {summary.only_in_source}")
    print(f"Only in destination: {summary.only_in_destination}")
    for difference in report.differences:
        data = difference.to_dict()
        label = data.get("name") or data.get("title") or data.get("email") or data.get("code") or data.get("order_number")
        print(f"  - [{data['source_id']}] {label}")
    return 0


def run_orphans(orchestrator: SyncOrchestrator, args) -> int:
    report = orchestrator.find_orphans(EntityType(args.entity), Platform(args.source))
    if args.json:
        _print_json(report.to_dict())
        return 0

    print(f"\n=== {args.entity} orphans on {report.destination_platform.value} ===")
    print(f"Orphaned: {report.summary.orphaned} of {report.summary.destination_count}")
    for orphan in report.orphans:
        identifier = f" ({orphan.identifier})" if orphan.identifier else ""
        print(f"  - [{orphan.destination_id}] {orphan.name}{identifier}")
    return 0


def run_inventory(orchestrator: SyncOrchestrator, args) -> int:
    """Print stock differences, and correct them with --sync."""
    report = orchestrator.compare_inventory(Platform(args.source))
    if args.json and not args.sync:
        _print_json(report.to_dict())
        return 0

    summary = report.summary
    print(f"\n=== Inventory ({report.source_platform.value} -> {report.destination_platform.value}) ===")
    print(f"Matched products: {summary.matched_products}")
    print(f"Variants compared: {summary.total_variants_compared}")
    print(f"Products with differences: {summary.products_with_differences}")
    for diff in report.differences:
        variant = f" / {diff.variant_title}" if diff.variant_title else ""
        print(f"  - {diff.name}{variant}: {diff.source_quantity} vs {diff.destination_quantity} ({diff.difference:+d})")

    if not args.sync:
        return 0

    results = orchestrator.sync_inventory(report.differences, Platform(args.source))
    failed = [r for r in results if not r.success]
    print(f"\nUpdated {len(results) - len(failed)} of {len(results)}")
    for result in failed:
        print(f"  - {result.product_id}: {result.error}")
    return 1 if failed else 0


def run_preview(orchestrator: SyncOrchestrator, args) -> int:
    source = Platform(args.source)
    preview = orchestrator.preview_item(EntityType(args.entity), args.item_id, source, other_platform(source))
    _print_json(preview.to_dict())
    return 0


def run_migrate(orchestrator: SyncOrchestrator, args) -> int:
    """Create a job for the given items and run it to completion."""
    source = Platform(args.source)
    job = orchestrator.start_migration(EntityType(args.entity), args.item_ids, source, other_platform(source))
    print(f"Job {job.id}: migrating {job.total} {args.entity} items")

    job = asyncio.run(orchestrator.run_job(job.id))

    if args.json:
        _print_json(job.to_dict())
    else:
        print("\n" + "=" * 60)
        print("MIGRATION COMPLETE")
        print("=" * 60)
        print(f"Status: {job.status.value}")
        print(f"Succeeded: {job.success_count}")
        print(f"Failed: {job.failure_count}")
        for result in job.results:
            if not result.success:
                print(f"  - {result.source_id}: {result.error}")
    return 0 if job.failure_count == 0 else 1


def run_status(orchestrator: SyncOrchestrator, args) -> int:
    if not args.job_id:
        for job in orchestrator.list_jobs():
            print(f"{job.id}  {job.entity_type.value:<10} {job.status.value:<10} {job.progress}/{job.total}")
        return 0

    job = orchestrator.get_job(args.job_id)
    if job is None:
        print(f"Job {args.job_id} not found", file=sys.stderr)
        return 1
    _print_json(job.to_dict())
    return 0


if __name__ == "__main__":
    sys.exit(main())
