"""Comparison results produced by the reconciliation engine.

These are transient records meant for a human review step; none of them
is persisted.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .canonical import EntityType, Platform, serialize


class _Serializable:
    def to_dict(self) -> Dict[str, Any]:
        return serialize(self)


@dataclass
class ProductDifference(_Serializable):
    source_id: str
    name: str
    sku: Optional[str] = None
    status: Optional[str] = None
    price: Optional[str] = None
    inventory_quantity: Optional[int] = None
    variant_count: int = 0
    image_count: int = 0
    categories: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)


@dataclass
class CustomerDifference(_Serializable):
    source_id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    phone: Optional[str] = None
    orders_count: Optional[int] = None
    total_spent: Optional[str] = None
    address_count: int = 0
    tags: List[str] = field(default_factory=list)


@dataclass
class OrderDifference(_Serializable):
    source_id: str
    order_number: str
    email: str = ""
    customer_name: str = ""
    status: Optional[str] = None
    total: Optional[str] = None
    currency: Optional[str] = None
    line_item_count: int = 0
    created_at: Optional[str] = None


@dataclass
class CollectionDifference(_Serializable):
    source_id: str
    name: str
    slug: str = ""
    product_count: Optional[int] = None


@dataclass
class CouponDifference(_Serializable):
    source_id: str
    code: str
    discount_type: Optional[str] = None
    amount: Optional[str] = None
    usage_count: Optional[int] = None
    expiry_date: Optional[str] = None


@dataclass
class PageDifference(_Serializable):
    source_id: str
    title: str
    slug: str = ""
    status: Optional[str] = None


@dataclass
class BlogPostDifference(_Serializable):
    source_id: str
    title: str
    slug: str = ""
    status: Optional[str] = None
    excerpt: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    published_at: Optional[str] = None


@dataclass
class InventoryDifference(_Serializable):
    """
    A stock mismatch between a source product and a destination variant.

    difference is source_quantity - destination_quantity: positive means
    the destination should increase its stock.
    """
    product_id: str
    name: str
    source_quantity: int
    destination_quantity: int
    difference: int
    source_product_id: str
    destination_product_id: str
    sku: Optional[str] = None
    variant_title: Optional[str] = None
    source_variant_id: Optional[str] = None
    destination_variant_id: Optional[str] = None
    source_status: str = "instock"
    destination_status: str = "instock"


@dataclass
class Orphan(_Serializable):
    """A destination record with no counterpart in the source."""
    destination_id: str
    name: str
    identifier: Optional[str] = None  # sku, slug, email, code or order number
    status: Optional[str] = None
    product_count: Optional[int] = None


@dataclass
class GapSummary(_Serializable):
    source_of_truth: Platform
    source_count: int = 0
    destination_count: int = 0
    matched: int = 0
    only_in_source: int = 0
    only_in_destination: int = 0


@dataclass
class GapReport(_Serializable):
    """Source records with no counterpart in the destination."""
    entity_type: EntityType
    source_platform: Platform
    destination_platform: Platform
    differences: List[Any] = field(default_factory=list)
    summary: Optional[GapSummary] = None
    warnings: List[str] = field(default_factory=list)


@dataclass
class OrphanSummary(_Serializable):
    source_of_truth: Platform
    source_count: int = 0
    destination_count: int = 0
    orphaned: int = 0


@dataclass
class OrphanReport(_Serializable):
    """Destination records with no counterpart in the source."""
    entity_type: EntityType
    source_platform: Platform
    destination_platform: Platform
    orphans: List[Orphan] = field(default_factory=list)
    summary: Optional[OrphanSummary] = None


@dataclass
class InventorySummary(_Serializable):
    source_count: int = 0
    destination_count: int = 0
    matched_products: int = 0
    products_with_differences: int = 0
    total_variants_compared: int = 0


@dataclass
class InventoryReport(_Serializable):
    source_platform: Platform
    destination_platform: Platform
    differences: List[InventoryDifference] = field(default_factory=list)
    summary: InventorySummary = field(default_factory=InventorySummary)


@dataclass
class InventorySyncResult(_Serializable):
    product_id: str
    success: bool
    error: Optional[str] = None
