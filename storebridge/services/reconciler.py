"""Reconciliation engine: gap, orphan and inventory reports across two platforms."""

import re
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from ..errors import CapabilityMismatchError, StoreBridgeError
from ..models.canonical import EntityType, Platform
from ..models.reconciliation import (
    BlogPostDifference,
    CollectionDifference,
    CouponDifference,
    CustomerDifference,
    GapReport,
    GapSummary,
    InventoryDifference,
    InventoryReport,
    InventorySummary,
    OrderDifference,
    Orphan,
    OrphanReport,
    OrphanSummary,
    PageDifference,
    ProductDifference,
)
from ..normalizers import BaseNormalizer, default_normalizers
from ..normalizers.base import money, nodes, normalize_decimal, to_int
from ..normalizers.shopify import SOURCE_ORDER_ATTRIBUTE
from ..models.record import get_path

logger = logging.getLogger(__name__)


DRAFT_ORDER_NOTE_PATTERN = re.compile(r"WooCommerce Order #(\d+)", re.IGNORECASE)

KeyFunc = Callable[[Dict[str, Any]], Any]


def normalize_key(value: Any) -> Optional[str]:
    """Lower-case and trim a key; values that cannot be keys become None."""
    if value is None or isinstance(value, (dict, list, tuple, bool)):
        return None
    key = str(value).strip().lower()
    return key or None


@dataclass(frozen=True)
class MatchKeys:
    """Primary and (optional) secondary key extractors for one platform's records."""
    primary: KeyFunc
    secondary: Optional[KeyFunc] = None

    def primary_key(self, record: Dict[str, Any]) -> Optional[str]:
        return normalize_key(_safe(self.primary, record))

    def secondary_key(self, record: Dict[str, Any]) -> Optional[str]:
        if self.secondary is None:
            return None
        return normalize_key(_safe(self.secondary, record))


def _safe(func: KeyFunc, record: Dict[str, Any]) -> Any:
    # Malformed records simply fail to produce a key.
    try:
        return func(record)
    except (AttributeError, KeyError, IndexError, TypeError, ValueError):
        return None


class KeyIndex:
    """
    Lookup over one snapshot of records by two independent key families.

    Collisions overwrite: the last record inserted under a key wins.
    """

    def __init__(self, keys: MatchKeys):
        self.keys = keys
        self.by_primary_key: Dict[str, Dict[str, Any]] = {}
        self.by_secondary_key: Dict[str, Dict[str, Any]] = {}

    @classmethod
    def build(cls, records: Iterable[Dict[str, Any]], keys: MatchKeys) -> "KeyIndex":
        index = cls(keys)
        for record in records:
            index.add(record)
        return index

    def add(self, record: Dict[str, Any]) -> None:
        if not isinstance(record, dict):
            return
        primary = self.keys.primary_key(record)
        if primary:
            self.by_primary_key[primary] = record
        secondary = self.keys.secondary_key(record)
        if secondary:
            self.by_secondary_key[secondary] = record

    def find(self, primary: Optional[str], secondary: Optional[str]) -> Optional[Dict[str, Any]]:
        """Primary key first; the secondary key only when the primary misses."""
        if primary and primary in self.by_primary_key:
            return self.by_primary_key[primary]
        if secondary and secondary in self.by_secondary_key:
            return self.by_secondary_key[secondary]
        return None

    def lookup(self, record: Dict[str, Any], keys: MatchKeys) -> Optional[Dict[str, Any]]:
        """Find the counterpart of a record from the other platform, using that platform's keys."""
        if not isinstance(record, dict):
            return None
        return self.find(keys.primary_key(record), keys.secondary_key(record))


# Key extraction

def extract_source_order_number(order: Dict[str, Any]) -> Optional[str]:
    """
    Number of the WooCommerce order a Shopify draft order was created from.

    The source_order_number custom attribute is preferred; drafts created
    before it existed carry the number only in the note.
    """
    for attribute in order.get("customAttributes") or []:
        if isinstance(attribute, dict) and attribute.get("key") == SOURCE_ORDER_ATTRIBUTE and attribute.get("value"):
            return str(attribute["value"])
    for field_name in ("note2", "note"):
        note = order.get(field_name)
        if isinstance(note, str):
            match = DRAFT_ORDER_NOTE_PATTERN.search(note)
            if match:
                return match.group(1)
    return None


def _is_draft_order(order: Dict[str, Any]) -> bool:
    return bool(
        order.get("isDraft")
        or "note2" in order
        or str(order.get("id") or "").startswith("gid://shopify/DraftOrder/")
    )


def _shopify_order_number(order: Dict[str, Any]) -> Any:
    if _is_draft_order(order):
        number = extract_source_order_number(order)
        if number:
            return number
    return order.get("name") or order.get("id")


def _order_total_key(email: Any, total: Any) -> Optional[str]:
    if not email or total in (None, ""):
        return None
    return f"{str(email).strip()}_{normalize_decimal(total)}"


def _shopify_first_variant_sku(product: Dict[str, Any]) -> Any:
    variants = nodes(product.get("variants"))
    if variants and variants[0].get("sku"):
        return variants[0]["sku"]
    return product.get("sku")


def _shopify_discount_code(discount: Dict[str, Any]) -> Any:
    inner = discount.get("codeDiscount") or discount
    if inner.get("code"):
        return inner["code"]
    codes = nodes(inner.get("codes"))
    return codes[0].get("code") if codes else None


def _rendered(value: Any) -> Any:
    if isinstance(value, dict):
        return value.get("rendered") or value.get("raw")
    return value


MATCH_KEYS: Dict[Tuple[Platform, EntityType], MatchKeys] = {
    (Platform.WOOCOMMERCE, EntityType.PRODUCT): MatchKeys(
        primary=lambda r: r.get("sku"),
        secondary=lambda r: r.get("name"),
    ),
    (Platform.SHOPIFY, EntityType.PRODUCT): MatchKeys(
        primary=_shopify_first_variant_sku,
        secondary=lambda r: r.get("title") or r.get("name"),
    ),
    (Platform.WOOCOMMERCE, EntityType.COLLECTION): MatchKeys(
        primary=lambda r: r.get("slug"),
        secondary=lambda r: r.get("name"),
    ),
    (Platform.SHOPIFY, EntityType.COLLECTION): MatchKeys(
        primary=lambda r: r.get("handle"),
        secondary=lambda r: r.get("title"),
    ),
    (Platform.WOOCOMMERCE, EntityType.CUSTOMER): MatchKeys(
        primary=lambda r: r.get("email") or get_path(r, "billing.email"),
    ),
    (Platform.SHOPIFY, EntityType.CUSTOMER): MatchKeys(
        primary=lambda r: r.get("email"),
    ),
    (Platform.WOOCOMMERCE, EntityType.ORDER): MatchKeys(
        primary=lambda r: r.get("number") or r.get("id"),
        secondary=lambda r: _order_total_key(get_path(r, "billing.email"), r.get("total")),
    ),
    (Platform.SHOPIFY, EntityType.ORDER): MatchKeys(
        primary=_shopify_order_number,
        secondary=lambda r: _order_total_key(
            r.get("email"), money(r.get("totalPriceSet")) or money(r.get("totalPrice"))
        ),
    ),
    (Platform.WOOCOMMERCE, EntityType.COUPON): MatchKeys(
        primary=lambda r: r.get("code"),
    ),
    (Platform.SHOPIFY, EntityType.COUPON): MatchKeys(
        primary=_shopify_discount_code,
    ),
    (Platform.WOOCOMMERCE, EntityType.PAGE): MatchKeys(
        primary=lambda r: r.get("slug"),
        secondary=lambda r: _rendered(r.get("title")),
    ),
    (Platform.SHOPIFY, EntityType.PAGE): MatchKeys(
        primary=lambda r: r.get("handle"),
        secondary=lambda r: r.get("title"),
    ),
    (Platform.WOOCOMMERCE, EntityType.BLOG_POST): MatchKeys(
        primary=lambda r: r.get("slug"),
        secondary=lambda r: _rendered(r.get("title")),
    ),
    (Platform.SHOPIFY, EntityType.BLOG_POST): MatchKeys(
        primary=lambda r: r.get("handle"),
        secondary=lambda r: r.get("title"),
    ),
}


@dataclass(frozen=True)
class StockUnit:
    """One stock-carrying unit of a product: a variant, or the product itself."""
    product_id: str
    quantity: int
    sku: Optional[str] = None
    variant_id: Optional[str] = None
    title: Optional[str] = None
    status: str = "instock"


class ReconciliationEngine:
    """
    Engine comparing two snapshots of the same entity type across platforms.

    Inputs are complete, already-fetched lists of native records. The
    engine is synchronous and keeps no state between calls; every report
    builds its own indices.

    Supports:
    - Gap reports (source records missing from the destination)
    - Orphan reports (destination records missing from the source)
    - Inventory delta reports for matched products
    """

    def __init__(self, normalizers: Optional[Dict[Platform, BaseNormalizer]] = None):
        self._normalizers = normalizers or default_normalizers()
        self._describers: Dict[EntityType, Callable[[str, Dict[str, Any], Any], Any]] = {
            EntityType.PRODUCT: self._describe_product,
            EntityType.CUSTOMER: self._describe_customer,
            EntityType.ORDER: self._describe_order,
            EntityType.COLLECTION: self._describe_collection,
            EntityType.COUPON: self._describe_coupon,
            EntityType.PAGE: self._describe_page,
            EntityType.BLOG_POST: self._describe_blog_post,
        }

    def match_keys(self, entity_type: EntityType, platform: Platform) -> MatchKeys:
        keys = MATCH_KEYS.get((Platform(platform), EntityType(entity_type)))
        if keys is None:
            raise CapabilityMismatchError(EntityType(entity_type).value, Platform(platform).value)
        return keys

    def compare(
        self,
        source_records: List[Dict[str, Any]],
        destination_records: List[Dict[str, Any]],
        entity_type: EntityType,
        source_platform: Platform,
        destination_platform: Platform
    ) -> GapReport:
        """
        Build a gap report: source records with no counterpart in the destination.

        Args:
            source_records: Native records from the source of truth
            destination_records: Native records from the other platform
            entity_type: Entity type of both collections
            source_platform: Platform of source_records
            destination_platform: Platform of destination_records

        Returns:
            GapReport with one display record per unmatched source record
        """
        entity_type = EntityType(entity_type)
        source_platform, destination_platform = Platform(source_platform), Platform(destination_platform)
        source_keys = self.match_keys(entity_type, source_platform)
        index = KeyIndex.build(destination_records, self.match_keys(entity_type, destination_platform))

        differences = []
        matched = 0
        matched_destination = set()
        for record in source_records:
            counterpart = index.lookup(record, source_keys)
            if counterpart is None:
                differences.append(self.describe(record, entity_type, source_platform))
            else:
                matched += 1
                matched_destination.add(id(counterpart))

        summary = GapSummary(
            source_of_truth=source_platform,
            source_count=len(source_records),
            destination_count=len(destination_records),
            matched=matched,
            only_in_source=len(differences),
            only_in_destination=len(destination_records) - len(matched_destination),
        )
        logger.info(
            f"{entity_type.value} gap report {source_platform.value} -> {destination_platform.value}: "
            f"{matched} matched, {len(differences)} only in source"
        )
        return GapReport(
            entity_type=entity_type,
            source_platform=source_platform,
            destination_platform=destination_platform,
            differences=differences,
            summary=summary,
        )

    def find_orphans(
        self,
        source_records: List[Dict[str, Any]],
        destination_records: List[Dict[str, Any]],
        entity_type: EntityType,
        source_platform: Platform,
        destination_platform: Platform
    ) -> OrphanReport:
        """Build an orphan report: destination records with no counterpart in the source."""
        entity_type = EntityType(entity_type)
        source_platform, destination_platform = Platform(source_platform), Platform(destination_platform)
        destination_keys = self.match_keys(entity_type, destination_platform)
        index = KeyIndex.build(source_records, self.match_keys(entity_type, source_platform))

        orphans = []
        for record in destination_records:
            if index.lookup(record, destination_keys) is None:
                orphans.append(self._orphan(record, entity_type, destination_platform, destination_keys))

        logger.info(
            f"{entity_type.value} orphan report {source_platform.value} -> {destination_platform.value}: "
            f"{len(orphans)} orphaned of {len(destination_records)}"
        )
        return OrphanReport(
            entity_type=entity_type,
            source_platform=source_platform,
            destination_platform=destination_platform,
            orphans=orphans,
            summary=OrphanSummary(
                source_of_truth=source_platform,
                source_count=len(source_records),
                destination_count=len(destination_records),
                orphaned=len(orphans),
            ),
        )

    def compare_inventory(
        self,
        source_products: List[Dict[str, Any]],
        destination_products: List[Dict[str, Any]],
        source_platform: Platform,
        destination_platform: Platform
    ) -> InventoryReport:
        """
        Compute stock deltas for products present on both platforms.

        Each source stock unit (a variant, or the product itself when it
        has no variants) is compared with the destination unit sharing its
        SKU, falling back to the first destination unit.
        difference = source quantity - destination quantity.
        """
        source_platform, destination_platform = Platform(source_platform), Platform(destination_platform)
        source_keys = self.match_keys(EntityType.PRODUCT, source_platform)
        index = KeyIndex.build(destination_products, self.match_keys(EntityType.PRODUCT, destination_platform))

        report = InventoryReport(source_platform=source_platform, destination_platform=destination_platform)
        summary = report.summary
        summary.source_count = len(source_products)
        summary.destination_count = len(destination_products)

        for product in source_products:
            counterpart = index.lookup(product, source_keys)
            if counterpart is None:
                continue
            summary.matched_products += 1

            source_units = self._stock_units(product, source_platform)
            destination_units = self._stock_units(counterpart, destination_platform)
            if not destination_units:
                continue

            name = product.get("name") or product.get("title") or ""
            has_difference = False
            for unit in source_units:
                target = self._matching_unit(unit, destination_units)
                summary.total_variants_compared += 1
                difference = unit.quantity - target.quantity
                if difference == 0:
                    continue
                has_difference = True
                report.differences.append(InventoryDifference(
                    product_id=f"{unit.product_id}-{target.variant_id or target.product_id}",
                    name=name,
                    sku=unit.sku or target.sku,
                    variant_title=target.title or unit.title,
                    source_quantity=unit.quantity,
                    destination_quantity=target.quantity,
                    difference=difference,
                    source_product_id=unit.product_id,
                    source_variant_id=unit.variant_id,
                    destination_product_id=target.product_id,
                    destination_variant_id=target.variant_id,
                    source_status=unit.status,
                    destination_status=target.status,
                ))
            if has_difference:
                summary.products_with_differences += 1

        logger.info(
            f"Inventory {source_platform.value} -> {destination_platform.value}: "
            f"{summary.matched_products} matched products, {len(report.differences)} differences"
        )
        return report

    def _matching_unit(self, unit: StockUnit, candidates: List[StockUnit]) -> StockUnit:
        sku = normalize_key(unit.sku)
        if sku:
            for candidate in candidates:
                if normalize_key(candidate.sku) == sku:
                    return candidate
        return candidates[0]

    def _stock_units(self, product: Dict[str, Any], platform: Platform) -> List[StockUnit]:
        product_id = str(product.get("id") or "")
        if platform == Platform.WOOCOMMERCE:
            variations = [v for v in product.get("variations") or [] if isinstance(v, dict)]
            if not variations:
                return [StockUnit(
                    product_id=product_id,
                    quantity=to_int(product.get("stock_quantity"), 0),
                    sku=product.get("sku") or None,
                    status="instock" if product.get("stock_status", "instock") == "instock" else "outofstock",
                )]
            return [
                StockUnit(
                    product_id=product_id,
                    quantity=to_int(v.get("stock_quantity"), 0),
                    sku=v.get("sku") or None,
                    variant_id=str(v.get("id")) if v.get("id") is not None else None,
                    title=" / ".join(a.get("option", "") for a in v.get("attributes") or [] if isinstance(a, dict)) or None,
                    status="instock" if v.get("stock_status", "instock") == "instock" else "outofstock",
                )
                for v in variations
            ]

        units = []
        for variant in nodes(product.get("variants")):
            quantity = to_int(variant.get("inventoryQuantity"), 0)
            units.append(StockUnit(
                product_id=product_id,
                quantity=quantity,
                sku=variant.get("sku") or None,
                variant_id=variant.get("id"),
                title=variant.get("title"),
                status="instock" if quantity > 0 else "outofstock",
            ))
        return units

    # Display records

    def describe(self, record: Dict[str, Any], entity_type: EntityType, platform: Platform) -> Any:
        """Denormalized display record for an unmatched source record."""
        source_id = str(record.get("id") or "") if isinstance(record, dict) else ""
        canonical = self._canonical(record, entity_type, platform)
        return self._describers[EntityType(entity_type)](source_id, record if isinstance(record, dict) else {}, canonical)

    def _canonical(self, record: Any, entity_type: EntityType, platform: Platform) -> Any:
        try:
            return self._normalizers[platform].to_canonical(entity_type, record)
        except StoreBridgeError as e:
            logger.warning(f"Cannot describe {platform.value} {EntityType(entity_type).value} record: {e}")
            return None

    def _orphan(
        self,
        record: Dict[str, Any],
        entity_type: EntityType,
        platform: Platform,
        keys: MatchKeys
    ) -> Orphan:
        canonical = self._canonical(record, entity_type, platform)
        identifier = _safe(keys.primary, record) if isinstance(record, dict) else None
        product_count = None
        if entity_type == EntityType.COLLECTION and isinstance(record, dict):
            product_count = to_int(record.get("count"), None)
            if product_count is None:
                product_count = to_int(get_path(record, "productsCount.count", record.get("productsCount")), None)
        return Orphan(
            destination_id=str(record.get("id") or "") if isinstance(record, dict) else "",
            name=_display_name(canonical),
            identifier=str(identifier) if identifier not in (None, "") else None,
            status=_status(canonical),
            product_count=product_count,
        )

    def _describe_product(self, source_id, record, product) -> ProductDifference:
        if product is None:
            return ProductDifference(source_id=source_id, name=str(record.get("name") or record.get("title") or ""))
        return ProductDifference(
            source_id=source_id,
            name=product.name,
            sku=product.sku,
            status=product.status.value,
            price=product.price,
            inventory_quantity=product.total_inventory,
            variant_count=len(product.variants),
            image_count=len(product.images),
            categories=list(product.categories),
            tags=list(product.tags),
        )

    def _describe_customer(self, source_id, record, customer) -> CustomerDifference:
        orders_count = record.get("orders_count", record.get("numberOfOrders"))
        total_spent = record.get("total_spent") or record.get("amountSpent")
        if customer is None:
            return CustomerDifference(source_id=source_id, email=str(record.get("email") or ""))
        return CustomerDifference(
            source_id=source_id,
            email=customer.email,
            first_name=customer.first_name,
            last_name=customer.last_name,
            phone=customer.phone,
            orders_count=to_int(orders_count),
            total_spent=money(total_spent),
            address_count=len(customer.addresses),
            tags=list(customer.tags),
        )

    def _describe_order(self, source_id, record, order) -> OrderDifference:
        if order is None:
            return OrderDifference(source_id=source_id, order_number=str(record.get("number") or record.get("name") or ""))
        address = order.billing_address or order.shipping_address
        currency = (
            record.get("currency")
            or record.get("currencyCode")
            or get_path(record, "totalPriceSet.shopMoney.currencyCode")
        )
        return OrderDifference(
            source_id=source_id,
            order_number=order.order_number,
            email=order.email,
            customer_name=f"{address.first_name} {address.last_name}".strip() if address else "",
            status=order.financial_status or None,
            total=order.total_price,
            currency=currency,
            line_item_count=len(order.line_items),
            created_at=order.created_at.isoformat() if order.created_at else None,
        )

    def _describe_collection(self, source_id, record, collection) -> CollectionDifference:
        product_count = to_int(record.get("count"), None)
        if collection is None:
            return CollectionDifference(source_id=source_id, name=str(record.get("name") or record.get("title") or ""))
        return CollectionDifference(
            source_id=source_id,
            name=collection.name,
            slug=collection.slug,
            product_count=product_count if product_count is not None else len(collection.product_ids) or None,
        )

    def _describe_coupon(self, source_id, record, coupon) -> CouponDifference:
        if coupon is None:
            return CouponDifference(source_id=source_id, code=str(record.get("code") or ""))
        return CouponDifference(
            source_id=source_id,
            code=coupon.code,
            discount_type=coupon.discount_type.value if coupon.discount_type else None,
            amount=coupon.amount,
            usage_count=coupon.usage_count,
            expiry_date=coupon.expiry_date.isoformat() if coupon.expiry_date else None,
        )

    def _describe_page(self, source_id, record, page) -> PageDifference:
        if page is None:
            return PageDifference(source_id=source_id, title=str(_rendered(record.get("title")) or ""))
        return PageDifference(source_id=source_id, title=page.title, slug=page.slug, status=page.status.value)

    def _describe_blog_post(self, source_id, record, post) -> BlogPostDifference:
        if post is None:
            return BlogPostDifference(source_id=source_id, title=str(_rendered(record.get("title")) or ""))
        return BlogPostDifference(
            source_id=source_id,
            title=post.title,
            slug=post.slug,
            status=post.status.value,
            excerpt=post.excerpt,
            tags=list(post.tags),
            categories=list(post.categories),
            published_at=post.published_at.isoformat() if post.published_at else None,
        )


def _display_name(canonical: Any) -> str:
    if canonical is None:
        return ""
    for attribute in ("name", "title", "code", "order_number", "email"):
        value = getattr(canonical, attribute, None)
        if value:
            return value
    return ""


def _status(canonical: Any) -> Optional[str]:
    status = getattr(canonical, "status", None) or getattr(canonical, "financial_status", None)
    if status is None:
        return None
    return status.value if hasattr(status, "value") else str(status) or None
