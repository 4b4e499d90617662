"""Platform connectors feeding and receiving native records."""

from typing import Dict

from .base import BaseConnector, DestinationConnector, SourceConnector
from .woocommerce import WooCommerceConnector
from .shopify import ShopifyConnector
from ..models.canonical import Platform
from ..models.config import AppConfig


def build_connectors(config: AppConfig) -> Dict[Platform, BaseConnector]:
    """Create a connector for every platform the configuration has credentials for."""
    connectors: Dict[Platform, BaseConnector] = {}
    if config.woocommerce:
        connectors[Platform.WOOCOMMERCE] = WooCommerceConnector(config.woocommerce, dry_run=config.dry_run)
    if config.shopify:
        connectors[Platform.SHOPIFY] = ShopifyConnector(config.shopify, dry_run=config.dry_run)
    return connectors


__all__ = [
    "SourceConnector",
    "DestinationConnector",
    "BaseConnector",
    "WooCommerceConnector",
    "ShopifyConnector",
    "build_connectors",
]
