"""WooCommerce REST API connector (wc/v3, plus wp/v2 for pages and posts)."""

import logging
from typing import Any, Dict, List, Optional

import requests

from .base import BaseConnector
from ..errors import ConnectorError, DestinationWriteError
from ..models.canonical import EntityType, Platform
from ..models.config import WooCommerceConfig

logger = logging.getLogger(__name__)


class WooCommerceConnector(BaseConnector):
    """
    Connector for a WooCommerce store.

    Supports:
    - Consumer key/secret basic authentication
    - Page-numbered pagination driven by X-WP-TotalPages
    - Variable products (variations fetched and batch-created)
    - WordPress pages and posts, with term names resolved to term IDs
    """

    platform = Platform.WOOCOMMERCE

    ENDPOINTS = {
        EntityType.PRODUCT: "products",
        EntityType.CUSTOMER: "customers",
        EntityType.ORDER: "orders",
        EntityType.COLLECTION: "products/categories",
        EntityType.COUPON: "coupons",
        EntityType.REVIEW: "products/reviews",
        EntityType.PAGE: "pages",
        EntityType.BLOG_POST: "posts",
    }

    # Served by the WordPress REST API rather than WooCommerce
    WORDPRESS_ENTITIES = {EntityType.PAGE, EntityType.BLOG_POST}

    def __init__(
        self,
        config: WooCommerceConfig,
        dry_run: bool = False,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the WooCommerce connector.

        Args:
            config: Store URL and REST API credentials
            dry_run: If True, writes are logged and never sent
            session: Custom requests session
        """
        super().__init__(
            limits=config.limits,
            retry_config=config.retry_config,
            timeout=config.timeout,
            dry_run=dry_run,
            session=session,
        )
        self.config = config
        self.base_url = config.store_url.rstrip("/")
        self._session.auth = (config.consumer_key, config.consumer_secret)

    def _url(self, entity_type: EntityType, suffix: str = "") -> str:
        api = "wp/v2" if entity_type in self.WORDPRESS_ENTITIES else "wc/v3"
        return f"{self.base_url}/wp-json/{api}/{self.ENDPOINTS[entity_type]}{suffix}"

    def _wp_url(self, path: str) -> str:
        return f"{self.base_url}/wp-json/wp/v2/{path}"

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            response = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise ConnectorError(f"WooCommerce request failed: {e}")

        if response.status_code >= 400:
            message = response.text
            try:
                message = response.json().get("message") or message
            except ValueError:
                pass
            error_class = ConnectorError if method == "GET" else DestinationWriteError
            raise error_class(
                f"WooCommerce API error {response.status_code}: {message}",
                status_code=response.status_code,
            )
        return response

    def test_connection(self) -> bool:
        """Check that the credentials can read the store."""
        try:
            self._request("GET", f"{self.base_url}/wp-json/wc/v3/system_status")
            return True
        except ConnectorError as e:
            logger.error(f"WooCommerce connection test failed: {e}")
            return False

    def fetch_all(self, entity_type: EntityType) -> List[Dict[str, Any]]:
        """
        Fetch every record of an entity type, one page at a time.

        Stops at the last page reported by X-WP-TotalPages, on an empty
        page, or at the page and record ceilings.
        """
        entity_type = self._require(entity_type)
        url = self._url(entity_type)
        records: List[Dict[str, Any]] = []
        page = 1

        while True:
            params: Dict[str, Any] = {"per_page": self.limits.page_size, "page": page}
            if entity_type in self.WORDPRESS_ENTITIES:
                params["_embed"] = 1
            response = self._request("GET", url, params=params)
            batch = response.json()
            if not isinstance(batch, list) or not batch:
                break

            records.extend(batch)
            total_pages = int(response.headers.get("X-WP-TotalPages") or 0)
            if total_pages and page >= total_pages:
                break
            if self._reached_limit(records, page):
                break
            page += 1

        records = records[:self.limits.max_records]
        if entity_type == EntityType.PRODUCT:
            records = [self._with_variations(p) for p in records]

        logger.info(f"Fetched {len(records)} WooCommerce {entity_type.value} records")
        return records

    def fetch_one(self, entity_type: EntityType, record_id: str) -> Dict[str, Any]:
        entity_type = self._require(entity_type)
        params = {"_embed": 1} if entity_type in self.WORDPRESS_ENTITIES else None
        record = self._request("GET", self._url(entity_type, f"/{record_id}"), params=params).json()
        if entity_type == EntityType.PRODUCT:
            record = self._with_variations(record)
        return record

    def _with_variations(self, product: Dict[str, Any]) -> Dict[str, Any]:
        """Replace a variable product's variation IDs with the variation records."""
        variations = product.get("variations") or []
        if product.get("type") != "variable" or not variations or isinstance(variations[0], dict):
            return product
        response = self._request(
            "GET",
            self._url(EntityType.PRODUCT, f"/{product['id']}/variations"),
            params={"per_page": 100},
        )
        expanded = dict(product)
        expanded["variations"] = response.json()
        return expanded

    def create(self, entity_type: EntityType, payload: Dict[str, Any]) -> Dict[str, str]:
        """
        Create a record.

        Variable products are created first and their variations added in
        one batch request. Post tags and categories are sent as names and
        resolved (or created) as WordPress terms.
        """
        entity_type = self._require(entity_type)
        if self.dry_run:
            return self._dry_run_id(entity_type)

        payload = dict(payload)
        variations = payload.pop("variations", None) if entity_type == EntityType.PRODUCT else None
        if entity_type == EntityType.PRODUCT and payload.get("categories"):
            payload["categories"] = [{"id": self._category_id(c["name"])} for c in payload["categories"]]
        if entity_type == EntityType.BLOG_POST:
            payload["tags"] = [self._term_id("tags", name) for name in payload.get("tags") or []]
            payload["categories"] = [self._term_id("categories", name) for name in payload.get("categories") or []]

        created = self._request("POST", self._url(entity_type), json=payload).json()
        new_id = str(created["id"])

        if variations:
            self._request(
                "POST",
                self._url(EntityType.PRODUCT, f"/{new_id}/variations/batch"),
                json={"create": variations},
            )
            logger.info(f"Created {len(variations)} variations for WooCommerce product {new_id}")

        logger.info(f"Created WooCommerce {entity_type.value} {new_id}")
        return {"id": new_id}

    def update(self, entity_type: EntityType, record_id: str, payload: Dict[str, Any]) -> None:
        entity_type = self._require(entity_type)
        if self.dry_run:
            logger.info(f"[dry run] woocommerce: would update {entity_type.value} {record_id}")
            return
        self._request("PUT", self._url(entity_type, f"/{record_id}"), json=payload)

    def update_inventory(self, product_id: str, quantity: int, variant_id: Optional[str] = None) -> None:
        """Set stock_quantity, enabling stock management and the matching stock status."""
        payload = {
            "stock_quantity": quantity,
            "manage_stock": True,
            "stock_status": "instock" if quantity > 0 else "outofstock",
        }
        suffix = f"/{product_id}/variations/{variant_id}" if variant_id else f"/{product_id}"
        if self.dry_run:
            logger.info(f"[dry run] woocommerce: would set stock of product{suffix} to {quantity}")
            return
        self._request("PUT", self._url(EntityType.PRODUCT, suffix), json=payload)

    def _category_id(self, name: str) -> int:
        url = self._url(EntityType.COLLECTION)
        for category in self._request("GET", url, params={"search": name, "per_page": 100}).json():
            if category.get("name", "").strip().lower() == name.strip().lower():
                return category["id"]
        return self._request("POST", url, json={"name": name}).json()["id"]

    def _term_id(self, taxonomy: str, name: str) -> int:
        url = self._wp_url(taxonomy)
        for term in self._request("GET", url, params={"search": name, "per_page": 100}).json():
            if term.get("name", "").strip().lower() == name.strip().lower():
                return term["id"]
        return self._request("POST", url, json={"name": name}).json()["id"]
