"""Base connector interfaces for reading from and writing to a platform."""

import uuid
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..errors import CapabilityMismatchError
from ..models.canonical import EntityType, Platform
from ..models.config import FetchLimits

logger = logging.getLogger(__name__)


class SourceConnector(ABC):
    """
    Reads complete, already-paginated collections of native records.

    Every full-collection fetch is capped by the connector's FetchLimits;
    the reconciliation engine never paginates on its own.
    """

    platform: Platform

    @abstractmethod
    def fetch_all(self, entity_type: EntityType) -> List[Dict[str, Any]]:
        """Fetch every record of an entity type, up to the configured ceilings."""
        pass

    @abstractmethod
    def fetch_one(self, entity_type: EntityType, record_id: str) -> Dict[str, Any]:
        """Fetch a single record by its platform ID."""
        pass


class DestinationConnector(ABC):
    """
    Writes native payloads to a platform.

    Rejected payloads surface as DestinationWriteError with the
    platform's own message.
    """

    platform: Platform

    @abstractmethod
    def create(self, entity_type: EntityType, payload: Dict[str, Any]) -> Dict[str, str]:
        """Create a record and return {"id": <new id>}."""
        pass

    @abstractmethod
    def update(self, entity_type: EntityType, record_id: str, payload: Dict[str, Any]) -> None:
        """Apply a partial update to an existing record."""
        pass

    @abstractmethod
    def update_inventory(self, product_id: str, quantity: int, variant_id: Optional[str] = None) -> None:
        """Set the available stock of a product or one of its variants."""
        pass


class BaseConnector(SourceConnector, DestinationConnector):
    """
    Shared plumbing for the HTTP connectors.

    Supports:
    - requests sessions with retries on rate limits and server errors
    - Per-platform fetch ceilings
    - Dry runs that never write
    """

    ENDPOINTS: Dict[EntityType, str] = {}
    RETRY_METHODS = Retry.DEFAULT_ALLOWED_METHODS

    def __init__(
        self,
        limits: FetchLimits,
        retry_config: Optional[Dict[str, Any]] = None,
        timeout: float = 30.0,
        dry_run: bool = False,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the connector.

        Args:
            limits: Page size and ceilings for full-collection fetches
            retry_config: max_retries and backoff_factor for the session
            timeout: Per-request timeout in seconds
            dry_run: If True, writes are logged and given synthetic IDs
            session: Custom requests session
        """
        self.limits = limits
        self.retry_config = retry_config or {}
        self.timeout = timeout
        self.dry_run = dry_run
        self._session = session or self._create_session()

    def _create_session(self) -> requests.Session:
        """Create a requests session with retry logic."""
        session = requests.Session()

        retries = Retry(
            total=self.retry_config.get("max_retries", 3),
            backoff_factor=self.retry_config.get("backoff_factor", 2.0),
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=self.RETRY_METHODS,
        )

        adapter = HTTPAdapter(max_retries=retries)
        session.mount("https://", adapter)
        session.mount("http://", adapter)

        return session

    def supports(self, entity_type: EntityType) -> bool:
        return EntityType(entity_type) in self.ENDPOINTS

    def _require(self, entity_type: EntityType) -> EntityType:
        entity_type = EntityType(entity_type)
        if entity_type not in self.ENDPOINTS:
            raise CapabilityMismatchError(entity_type.value, self.platform.value)
        return entity_type

    def _reached_limit(self, records: List[Dict[str, Any]], pages: int) -> bool:
        if len(records) >= self.limits.max_records:
            logger.warning(f"{self.platform.value}: stopped at the {self.limits.max_records} record ceiling")
            return True
        if pages >= self.limits.max_pages:
            logger.warning(f"{self.platform.value}: stopped at the {self.limits.max_pages} page ceiling")
            return True
        return False

    def _dry_run_id(self, entity_type: EntityType) -> Dict[str, str]:
        new_id = f"dry-run-{uuid.uuid4()}"
        logger.info(f"[dry run] {self.platform.value}: would create {EntityType(entity_type).value} ({new_id})")
        return {"id": new_id}
