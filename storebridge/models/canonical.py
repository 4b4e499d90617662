"""Canonical commerce entities shared by both platforms."""

from dataclasses import dataclass, field, fields, is_dataclass
from typing import Any, Dict, List, Optional
from enum import Enum
from datetime import datetime


class Platform(str, Enum):
    """Commerce platforms the engine can read from and write to."""
    WOOCOMMERCE = "woocommerce"
    SHOPIFY = "shopify"


class EntityType(str, Enum):
    """Entity types that can be migrated or reconciled."""
    PRODUCT = "product"
    CUSTOMER = "customer"
    ORDER = "order"
    COLLECTION = "collection"
    COUPON = "coupon"
    REVIEW = "review"
    PAGE = "page"
    BLOG_POST = "blog_post"


class ProductStatus(str, Enum):
    """Lifecycle status of a product."""
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class ContentStatus(str, Enum):
    """Publication status of a page or blog post."""
    DRAFT = "draft"
    PUBLISHED = "published"


class DiscountType(str, Enum):
    """How a coupon amount is applied."""
    PERCENTAGE = "percentage"
    FIXED_CART = "fixed_cart"
    FIXED_PRODUCT = "fixed_product"


def serialize(value: Any) -> Any:
    """Convert dataclasses, enums and datetimes into JSON-friendly values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: serialize(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, (list, tuple)):
        return [serialize(v) for v in value]
    if isinstance(value, dict):
        return {k: serialize(v) for k, v in value.items()}
    return value


class CanonicalEntity:
    """Mixin giving canonical records a dictionary form."""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return serialize(self)


@dataclass(frozen=True)
class Image(CanonicalEntity):
    src: str
    alt: Optional[str] = None
    position: int = 0


@dataclass(frozen=True)
class ProductOption(CanonicalEntity):
    name: str
    value: str


@dataclass(frozen=True)
class Variant(CanonicalEntity):
    """A purchasable variant of a product."""
    price: str
    inventory_quantity: int = 0
    sku: Optional[str] = None
    options: List[ProductOption] = field(default_factory=list)
    compare_at_price: Optional[str] = None
    barcode: Optional[str] = None


DEFAULT_OPTION = ProductOption(name="Title", value="Default Title")


def default_variant(
    price: str,
    inventory_quantity: int = 0,
    sku: Optional[str] = None,
    compare_at_price: Optional[str] = None,
    barcode: Optional[str] = None,
) -> Variant:
    """Build the synthetic variant used for products without explicit variants."""
    return Variant(
        price=price,
        inventory_quantity=inventory_quantity,
        sku=sku,
        options=[DEFAULT_OPTION],
        compare_at_price=compare_at_price,
        barcode=barcode,
    )


@dataclass(frozen=True)
class Metafield(CanonicalEntity):
    namespace: str
    key: str
    value: str
    type: str = "string"


@dataclass(frozen=True)
class SEO(CanonicalEntity):
    title: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class Product(CanonicalEntity):
    """
    A catalog product.

    The variants list is never empty: a product built without variants
    receives a single "Default" variant carrying the product-level
    price, sku and barcode.
    """
    platform: Platform
    original_id: str
    name: str = ""
    description: str = ""
    slug: str = ""
    status: ProductStatus = ProductStatus.DRAFT
    price: Optional[str] = None
    compare_at_price: Optional[str] = None
    sku: Optional[str] = None
    barcode: Optional[str] = None
    weight: Optional[float] = None
    images: List[Image] = field(default_factory=list)
    variants: List[Variant] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    metafields: List[Metafield] = field(default_factory=list)
    seo: Optional[SEO] = None

    def __post_init__(self):
        if not self.variants:
            default = default_variant(
                price=self.price or "0",
                sku=self.sku,
                compare_at_price=self.compare_at_price,
                barcode=self.barcode,
            )
            object.__setattr__(self, "variants", [default])

    @property
    def total_inventory(self) -> int:
        return sum(v.inventory_quantity for v in self.variants)


@dataclass(frozen=True)
class Address(CanonicalEntity):
    """A postal address owned by a customer or an order."""
    first_name: str = ""
    last_name: str = ""
    address1: str = ""
    city: str = ""
    country: str = ""
    zip: str = ""
    company: Optional[str] = None
    address2: Optional[str] = None
    province: Optional[str] = None
    phone: Optional[str] = None
    is_default: bool = False


@dataclass(frozen=True)
class Customer(CanonicalEntity):
    """A customer; email is the identity key across platforms."""
    platform: Platform
    original_id: str
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    phone: Optional[str] = None
    addresses: List[Address] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    notes: Optional[str] = None
    metafields: List[Metafield] = field(default_factory=list)

    @property
    def default_address(self) -> Optional[Address]:
        for address in self.addresses:
            if address.is_default:
                return address
        return self.addresses[0] if self.addresses else None


@dataclass(frozen=True)
class LineItem(CanonicalEntity):
    product_id: str
    title: str
    quantity: int
    price: str
    variant_id: Optional[str] = None
    sku: Optional[str] = None


@dataclass(frozen=True)
class Discount(CanonicalEntity):
    code: str
    amount: Optional[str] = None
    type: str = "fixed"


@dataclass(frozen=True)
class Order(CanonicalEntity):
    """
    A placed order.

    order_number is the human-facing number assigned by the platform the
    order was read from. It is not unique across platforms.
    """
    platform: Platform
    original_id: str
    order_number: str = ""
    email: str = ""
    line_items: List[LineItem] = field(default_factory=list)
    shipping_address: Optional[Address] = None
    billing_address: Optional[Address] = None
    financial_status: str = ""
    fulfillment_status: str = ""
    total_price: Optional[str] = None
    subtotal_price: Optional[str] = None
    total_tax: Optional[str] = None
    total_shipping: Optional[str] = None
    discounts: List[Discount] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Collection(CanonicalEntity):
    platform: Platform
    original_id: str
    name: str = ""
    slug: str = ""
    description: Optional[str] = None
    image: Optional[Image] = None
    product_ids: List[str] = field(default_factory=list)
    seo: Optional[SEO] = None


@dataclass(frozen=True)
class Coupon(CanonicalEntity):
    """
    A discount code.

    amount is kept as the decimal string the platform reported; it is only
    converted to a number when a destination needs a fraction.
    """
    platform: Platform
    original_id: str
    code: str = ""
    discount_type: Optional[DiscountType] = None
    amount: Optional[str] = None
    description: Optional[str] = None
    expiry_date: Optional[datetime] = None
    minimum_amount: Optional[str] = None
    maximum_amount: Optional[str] = None
    usage_limit: Optional[int] = None
    usage_limit_per_user: Optional[int] = None
    usage_count: Optional[int] = None
    individual_use: bool = False
    free_shipping: bool = False
    product_ids: List[str] = field(default_factory=list)
    excluded_product_ids: List[str] = field(default_factory=list)
    category_ids: List[str] = field(default_factory=list)
    excluded_category_ids: List[str] = field(default_factory=list)

    @property
    def is_scoped(self) -> bool:
        return bool(
            self.product_ids or self.excluded_product_ids
            or self.category_ids or self.excluded_category_ids
        )


@dataclass(frozen=True)
class Review(CanonicalEntity):
    platform: Platform
    original_id: str
    product_id: str = ""
    rating: Optional[int] = None
    content: str = ""
    reviewer_name: str = ""
    reviewer_email: str = ""
    verified: bool = False
    status: str = "approved"
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Page(CanonicalEntity):
    platform: Platform
    original_id: str
    title: str = ""
    content: str = ""
    slug: str = ""
    status: ContentStatus = ContentStatus.DRAFT
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class BlogPost(CanonicalEntity):
    platform: Platform
    original_id: str
    title: str = ""
    content: str = ""
    slug: str = ""
    status: ContentStatus = ContentStatus.DRAFT
    excerpt: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    author: Optional[str] = None
    featured_image: Optional[Image] = None
    published_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


ENTITY_CLASSES = {
    EntityType.PRODUCT: Product,
    EntityType.CUSTOMER: Customer,
    EntityType.ORDER: Order,
    EntityType.COLLECTION: Collection,
    EntityType.COUPON: Coupon,
    EntityType.REVIEW: Review,
    EntityType.PAGE: Page,
    EntityType.BLOG_POST: BlogPost,
}
