"""Migration mapper: native record in, destination payload out."""

import re
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional

from ..errors import CapabilityMismatchError
from ..models.canonical import (
    BlogPost,
    Collection,
    Coupon,
    Customer,
    EntityType,
    Order,
    Platform,
    Product,
    ProductStatus,
)
from ..models.record import MigrationPreview, NativeRecord
from ..normalizers import BaseNormalizer, default_normalizers
from ..normalizers.woocommerce import WooCommerceNormalizer
from ..normalizers.shopify import ShopifyNormalizer

logger = logging.getLogger(__name__)


SHORTCODE_PATTERN = re.compile(r"\[/?[a-zA-Z_][\w-]*(?:\s[^\]]*)?\]")
WORDPRESS_MEDIA_PATTERN = re.compile(r"/wp-content/uploads/")

WarningCheck = Callable[[Any, Platform, Platform], List[str]]


def _nonzero(amount: Optional[str]) -> bool:
    try:
        return Decimal(amount or "0") != 0
    except InvalidOperation:
        return False


def _is_shopify_gid(value: Optional[str], resource: str) -> bool:
    return bool(value) and value.startswith(f"gid://shopify/{resource}/")


class MigrationMapper:
    """
    Facade composing source normalization with destination denormalization.

    migrate() does not validate; callers validate the canonical record
    explicitly so validation failures stay distinct from transformation
    failures.

    Supports:
    - Native -> canonical -> native conversion between platforms
    - Previews with lossy-conversion warnings
    - Capability checks per entity type and platform
    """

    def __init__(self, normalizers: Optional[Dict[Platform, BaseNormalizer]] = None):
        """
        Initialize the mapper.

        Args:
            normalizers: Normalizer per platform (defaults to the built-in pair)
        """
        self._normalizers = normalizers or default_normalizers()
        self._warning_checks: Dict[EntityType, WarningCheck] = {
            EntityType.PRODUCT: self._product_warnings,
            EntityType.CUSTOMER: self._customer_warnings,
            EntityType.ORDER: self._order_warnings,
            EntityType.COLLECTION: self._collection_warnings,
            EntityType.COUPON: self._coupon_warnings,
            EntityType.PAGE: self._content_warnings,
            EntityType.BLOG_POST: self._content_warnings,
        }

    def normalizer(self, platform: Platform) -> BaseNormalizer:
        return self._normalizers[Platform(platform)]

    def supports(self, entity_type: EntityType, platform: Platform) -> bool:
        return self.normalizer(platform).supports(entity_type)

    def check_capability(self, entity_type: EntityType, source: Platform, destination: Platform) -> None:
        """Raise CapabilityMismatchError if either platform lacks the entity type."""
        for platform in (source, destination):
            if not self.supports(entity_type, platform):
                raise CapabilityMismatchError(EntityType(entity_type).value, Platform(platform).value)

    def to_canonical(self, data: Dict[str, Any], entity_type: EntityType, platform: Platform) -> Any:
        return self.normalizer(platform).to_canonical(entity_type, data)

    def to_native(self, record: Any, entity_type: EntityType, platform: Platform) -> Dict[str, Any]:
        return self.normalizer(platform).to_native(entity_type, record)

    def migrate(
        self,
        data: Dict[str, Any],
        entity_type: EntityType,
        source: Platform,
        destination: Platform
    ) -> Dict[str, Any]:
        """
        Convert a native source record into a destination create payload.

        Args:
            data: Record in the source platform's API shape
            entity_type: Entity type of the record
            source: Platform the record was read from
            destination: Platform the payload is for

        Returns:
            Payload in the destination platform's create shape

        Raises:
            CapabilityMismatchError: if either platform lacks the entity type
        """
        self.check_capability(entity_type, source, destination)
        canonical = self.to_canonical(data, entity_type, source)
        return self.to_native(canonical, entity_type, destination)

    def migrate_record(self, record: NativeRecord, destination: Platform) -> Dict[str, Any]:
        """Same as migrate(), dispatching on the record's platform tag."""
        return self.migrate(record.data, record.entity_type, record.platform, destination)

    def preview(
        self,
        data: Dict[str, Any],
        entity_type: EntityType,
        source: Platform,
        destination: Platform
    ) -> MigrationPreview:
        """
        Convert a record and report every lossy conversion it would suffer.

        Warnings are advisory; they never block migrate().
        """
        self.check_capability(entity_type, source, destination)
        source, destination = Platform(source), Platform(destination)
        canonical = self.to_canonical(data, entity_type, source)
        payload = self.to_native(canonical, entity_type, destination)

        check = self._warning_checks.get(EntityType(entity_type))
        warnings = check(canonical, source, destination) if check else []
        if warnings:
            logger.debug(f"Preview of {EntityType(entity_type).value} {canonical.original_id}: {len(warnings)} warnings")

        return MigrationPreview(source=data, destination=payload, warnings=warnings)

    # Lossy-conversion checks

    def _foreign_metafields(self, metafields, destination: Platform) -> int:
        if destination == Platform.WOOCOMMERCE:
            return sum(1 for m in metafields if m.namespace != WooCommerceNormalizer.META_NAMESPACE)
        return sum(1 for m in metafields if m.namespace == ShopifyNormalizer.SKIPPED_METAFIELD_NAMESPACE)

    def _product_warnings(self, product: Product, source: Platform, destination: Platform) -> List[str]:
        warnings = []

        dropped = self._foreign_metafields(product.metafields, destination)
        if dropped:
            warnings.append(f"Product has {dropped} metafields that will not be migrated")

        if destination == Platform.SHOPIFY:
            limit = ShopifyNormalizer.MAX_VARIANTS
            if len(product.variants) > limit:
                warnings.append(
                    f"Product has {len(product.variants)} variants, only the first {limit} will be migrated"
                )
            if len(product.categories) > 1:
                warnings.append(
                    f"Product has {len(product.categories)} categories, only '{product.categories[0]}' "
                    f"will be kept as the product type"
                )

        if destination == Platform.WOOCOMMERCE and product.status == ProductStatus.ARCHIVED:
            warnings.append("WooCommerce has no archived status, the product will be created as a draft")

        if source == Platform.WOOCOMMERCE and destination == Platform.SHOPIFY:
            hosted = [i for i in product.images if WORDPRESS_MEDIA_PATTERN.search(i.src)]
            if hosted:
                warnings.append(
                    f"{len(hosted)} images are hosted on the WordPress site and must stay reachable until Shopify imports them"
                )

        return warnings

    def _customer_warnings(self, customer: Customer, source: Platform, destination: Platform) -> List[str]:
        warnings = []

        if destination == Platform.WOOCOMMERCE:
            limit = WooCommerceNormalizer.MAX_ADDRESSES
            if len(customer.addresses) > limit:
                warnings.append(
                    f"Customer has {len(customer.addresses)} addresses, only {limit} will be migrated"
                )
            if customer.tags:
                warnings.append("WooCommerce customers have no tags, customer tags will be dropped")

        dropped = self._foreign_metafields(customer.metafields, destination)
        if dropped:
            warnings.append(f"Customer has {dropped} metafields that will not be migrated")

        return warnings

    def _order_warnings(self, order: Order, source: Platform, destination: Platform) -> List[str]:
        warnings = []

        if destination == Platform.SHOPIFY:
            warnings.append(
                "Order will be created as a Shopify draft order; payment and fulfillment status "
                "are kept only in the note and tags"
            )
            if order.discounts:
                warnings.append(f"{len(order.discounts)} discount lines will not be applied to the draft order")
            custom = [i for i in order.line_items if not _is_shopify_gid(i.variant_id, "ProductVariant")]
            if custom:
                warnings.append(f"{len(custom)} line items will be created as custom items without a product link")

        if destination == Platform.WOOCOMMERCE:
            custom = [i for i in order.line_items if not (i.product_id or "").isdigit()]
            if custom:
                warnings.append(f"{len(custom)} line items will be created without a WooCommerce product link")

        return warnings

    def _collection_warnings(self, collection: Collection, source: Platform, destination: Platform) -> List[str]:
        if destination == Platform.WOOCOMMERCE and collection.product_ids:
            return [
                f"Collection membership of {len(collection.product_ids)} products is not migrated, "
                f"assign the category on each product instead"
            ]
        if destination == Platform.SHOPIFY:
            foreign = [p for p in collection.product_ids if not _is_shopify_gid(p, "Product")]
            if foreign:
                return [f"{len(foreign)} collection products do not exist in Shopify and will not be added"]
        return []

    def _coupon_warnings(self, coupon: Coupon, source: Platform, destination: Platform) -> List[str]:
        warnings = []

        if destination == Platform.SHOPIFY:
            foreign_products = [p for p in coupon.product_ids if not _is_shopify_gid(p, "Product")]
            foreign_categories = [c for c in coupon.category_ids if not _is_shopify_gid(c, "Collection")]
            if foreign_products:
                warnings.append(
                    f"Coupon applies to {len(foreign_products)} specific products, "
                    f"product restrictions will not be migrated"
                )
            if foreign_categories:
                warnings.append(
                    f"Coupon applies to {len(foreign_categories)} categories, "
                    f"category restrictions will not be migrated"
                )
            excluded = len(coupon.excluded_product_ids) + len(coupon.excluded_category_ids)
            if excluded:
                warnings.append(f"Coupon has {excluded} exclusions, which Shopify discounts do not support")
            if coupon.maximum_amount:
                warnings.append("Maximum spend restriction is not supported by Shopify and will be dropped")
            if coupon.individual_use:
                warnings.append("Individual-use restriction is not supported by Shopify and will be dropped")
            if coupon.usage_limit_per_user and coupon.usage_limit_per_user > 1:
                warnings.append(
                    f"Per-customer limit of {coupon.usage_limit_per_user} uses cannot be expressed in Shopify, "
                    f"the code will have no per-customer limit"
                )
            if coupon.free_shipping and _nonzero(coupon.amount):
                warnings.append("Free shipping will be dropped because the coupon also carries an amount")

        if destination == Platform.WOOCOMMERCE:
            foreign = [
                i for i in coupon.product_ids + coupon.category_ids
                + coupon.excluded_product_ids + coupon.excluded_category_ids
                if not i.isdigit()
            ]
            if foreign:
                warnings.append(f"Coupon restrictions reference {len(foreign)} items that do not exist in WooCommerce")

        return warnings

    def _content_warnings(self, content: Any, source: Platform, destination: Platform) -> List[str]:
        warnings = []

        if destination == Platform.SHOPIFY:
            if SHORTCODE_PATTERN.search(content.content or ""):
                warnings.append("Content contains shortcodes that will not render on the destination platform")
            if source == Platform.WOOCOMMERCE and WORDPRESS_MEDIA_PATTERN.search(content.content or ""):
                warnings.append("Content references images hosted on the WordPress site")

        if isinstance(content, BlogPost):
            if destination == Platform.SHOPIFY and content.categories:
                warnings.append(
                    f"Post has {len(content.categories)} categories, Shopify articles have no categories"
                )
            if destination == Platform.WOOCOMMERCE:
                if content.featured_image:
                    warnings.append("Featured image cannot be attached by URL and must be set manually")
                if content.author:
                    warnings.append("Author will be set to the API user")

        return warnings
