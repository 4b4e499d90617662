"""Data models for the migration engine."""

from .canonical import (
    Platform,
    EntityType,
    ProductStatus,
    ContentStatus,
    DiscountType,
    Image,
    ProductOption,
    Variant,
    Metafield,
    SEO,
    Product,
    Address,
    Customer,
    LineItem,
    Discount,
    Order,
    Collection,
    Coupon,
    Review,
    Page,
    BlogPost,
)
from .record import (
    NativeRecord,
    ValidationError,
    ValidationResult,
    MigrationPreview,
    ItemOutcome,
    ItemResult,
    ItemStatus,
)
from .job import MigrationJob, JobStatus
from .config import AppConfig, WooCommerceConfig, ShopifyConfig, FetchLimits

__all__ = [
    "Platform",
    "EntityType",
    "ProductStatus",
    "ContentStatus",
    "DiscountType",
    "Image",
    "ProductOption",
    "Variant",
    "Metafield",
    "SEO",
    "Product",
    "Address",
    "Customer",
    "LineItem",
    "Discount",
    "Order",
    "Collection",
    "Coupon",
    "Review",
    "Page",
    "BlogPost",
    "NativeRecord",
    "ValidationError",
    "ValidationResult",
    "MigrationPreview",
    "ItemOutcome",
    "ItemResult",
    "ItemStatus",
    "MigrationJob",
    "JobStatus",
    "AppConfig",
    "WooCommerceConfig",
    "ShopifyConfig",
    "FetchLimits",
]
