"""Shared dependencies for the API routes."""

from functools import lru_cache

from ..models.config import AppConfig
from ..orchestrator import SyncOrchestrator


@lru_cache(maxsize=1)
def get_orchestrator() -> SyncOrchestrator:
    """One orchestrator per process, configured from the environment."""
    return SyncOrchestrator.from_config(AppConfig.from_env())
