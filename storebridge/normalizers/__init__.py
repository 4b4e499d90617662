"""Platform normalizers between native records and canonical entities."""

from typing import Dict

from .base import BaseNormalizer
from .woocommerce import WooCommerceNormalizer
from .shopify import ShopifyNormalizer, build_import_note
from ..models.canonical import Platform


def default_normalizers() -> Dict[Platform, BaseNormalizer]:
    """One normalizer per platform, keyed by the platform tag."""
    return {
        Platform.WOOCOMMERCE: WooCommerceNormalizer(),
        Platform.SHOPIFY: ShopifyNormalizer(),
    }


__all__ = [
    "BaseNormalizer",
    "WooCommerceNormalizer",
    "ShopifyNormalizer",
    "build_import_note",
    "default_normalizers",
]
