"""Connection and application configuration."""

import os
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional


@dataclass
class FetchLimits:
    """Ceilings applied to every full-collection fetch."""
    page_size: int = 100
    max_pages: int = 100
    max_records: int = 10000

    def to_dict(self) -> Dict[str, Any]:
        return {
            "page_size": self.page_size,
            "max_pages": self.max_pages,
            "max_records": self.max_records,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default: "FetchLimits") -> "FetchLimits":
        return cls(
            page_size=data.get("page_size", default.page_size),
            max_pages=data.get("max_pages", default.max_pages),
            max_records=data.get("max_records", default.max_records),
        )


WOOCOMMERCE_LIMITS = FetchLimits(page_size=100, max_pages=100, max_records=10000)
SHOPIFY_LIMITS = FetchLimits(page_size=250, max_pages=1000, max_records=10000)


@dataclass
class WooCommerceConfig:
    """Credentials for a WooCommerce store's REST API."""
    store_url: str
    consumer_key: str
    consumer_secret: str
    timeout: float = 30.0
    limits: FetchLimits = field(default_factory=lambda: WOOCOMMERCE_LIMITS)
    retry_config: Dict[str, Any] = field(default_factory=lambda: {
        "max_retries": 3,
        "backoff_factor": 2.0,
    })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WooCommerceConfig":
        return cls(
            store_url=data["store_url"],
            consumer_key=data["consumer_key"],
            consumer_secret=data["consumer_secret"],
            timeout=data.get("timeout", 30.0),
            limits=FetchLimits.from_dict(data.get("limits", {}), WOOCOMMERCE_LIMITS),
            retry_config=data.get("retry_config", {"max_retries": 3, "backoff_factor": 2.0}),
        )


@dataclass
class ShopifyConfig:
    """Credentials for a Shopify store's Admin GraphQL API."""
    store_domain: str
    access_token: str
    api_version: str = "2024-01"
    timeout: float = 30.0
    limits: FetchLimits = field(default_factory=lambda: SHOPIFY_LIMITS)
    retry_config: Dict[str, Any] = field(default_factory=lambda: {
        "max_retries": 3,
        "backoff_factor": 2.0,
    })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ShopifyConfig":
        return cls(
            store_domain=data["store_domain"],
            access_token=data["access_token"],
            api_version=data.get("api_version", "2024-01"),
            timeout=data.get("timeout", 30.0),
            limits=FetchLimits.from_dict(data.get("limits", {}), SHOPIFY_LIMITS),
            retry_config=data.get("retry_config", {"max_retries": 3, "backoff_factor": 2.0}),
        )


@dataclass
class AppConfig:
    """Top-level configuration for the CLI and HTTP surfaces."""
    woocommerce: Optional[WooCommerceConfig] = None
    shopify: Optional[ShopifyConfig] = None
    jobs_dir: Optional[str] = None  # None keeps jobs in memory
    dry_run: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        """Create from dictionary."""
        return cls(
            woocommerce=WooCommerceConfig.from_dict(data["woocommerce"]) if data.get("woocommerce") else None,
            shopify=ShopifyConfig.from_dict(data["shopify"]) if data.get("shopify") else None,
            jobs_dir=data.get("jobs_dir"),
            dry_run=data.get("dry_run", False),
            log_level=data.get("log_level", "INFO"),
        )

    @classmethod
    def from_json_file(cls, path: str) -> "AppConfig":
        with open(path) as f:
            return cls.from_dict(json.load(f))

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AppConfig":
        """
        Build configuration from environment variables.

        Recognized variables:
            WOOCOMMERCE_URL, WOOCOMMERCE_CONSUMER_KEY, WOOCOMMERCE_CONSUMER_SECRET
            SHOPIFY_STORE_DOMAIN, SHOPIFY_ACCESS_TOKEN, SHOPIFY_API_VERSION
            STOREBRIDGE_JOBS_DIR, STOREBRIDGE_DRY_RUN, STOREBRIDGE_LOG_LEVEL
        """
        env = os.environ if environ is None else environ

        woocommerce = None
        if env.get("WOOCOMMERCE_URL"):
            woocommerce = WooCommerceConfig(
                store_url=env["WOOCOMMERCE_URL"],
                consumer_key=env.get("WOOCOMMERCE_CONSUMER_KEY", ""),
                consumer_secret=env.get("WOOCOMMERCE_CONSUMER_SECRET", ""),
            )

        shopify = None
        if env.get("SHOPIFY_STORE_DOMAIN"):
            shopify = ShopifyConfig(
                store_domain=env["SHOPIFY_STORE_DOMAIN"],
                access_token=env.get("SHOPIFY_ACCESS_TOKEN", ""),
                api_version=env.get("SHOPIFY_API_VERSION", "2024-01"),
            )

        return cls(
            woocommerce=woocommerce,
            shopify=shopify,
            jobs_dir=env.get("STOREBRIDGE_JOBS_DIR") or None,
            dry_run=env.get("STOREBRIDGE_DRY_RUN", "").lower() in ("1", "true", "yes"),
            log_level=env.get("STOREBRIDGE_LOG_LEVEL", "INFO"),
        )
