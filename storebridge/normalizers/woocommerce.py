"""Normalizers for WooCommerce (wc/v3) and WordPress (wp/v2) records."""

import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from .base import (
    BaseNormalizer,
    NormalizerPair,
    format_datetime,
    money,
    names,
    parse_datetime,
    require_identity,
    text,
    to_int,
)
from ..models.canonical import (
    Address,
    BlogPost,
    Collection,
    ContentStatus,
    Coupon,
    Customer,
    Discount,
    DiscountType,
    EntityType,
    Image,
    LineItem,
    Metafield,
    Order,
    Page,
    Platform,
    Product,
    ProductOption,
    ProductStatus,
    Review,
    SEO,
    Variant,
    default_variant,
)
from ..models.record import get_path

logger = logging.getLogger(__name__)


class WooCommerceNormalizer(BaseNormalizer):
    """
    Normalizers for a WooCommerce store.

    Supports:
    - Simple and variable products (expanded variations become variants)
    - Customers with billing/shipping addresses
    - Orders, product categories (as collections), coupons, reviews
    - WordPress pages and posts
    """

    platform = Platform.WOOCOMMERCE

    META_NAMESPACE = "woocommerce"
    YOAST_TITLE = "_yoast_wpseo_title"
    YOAST_DESCRIPTION = "_yoast_wpseo_metadesc"
    CUSTOMER_NOTE = "customer_note"

    # billing + shipping
    MAX_ADDRESSES = 2

    STATUS_TO_NATIVE = {
        ProductStatus.PUBLISHED: "publish",
        ProductStatus.DRAFT: "draft",
        ProductStatus.ARCHIVED: "draft",
    }

    DISCOUNT_TYPES = {
        "percent": DiscountType.PERCENTAGE,
        "fixed_cart": DiscountType.FIXED_CART,
        "fixed_product": DiscountType.FIXED_PRODUCT,
    }

    ORDER_STATUSES = {
        "pending", "processing", "on-hold", "completed",
        "cancelled", "refunded", "failed", "checkout-draft",
    }

    FINANCIAL_STATUS_MAP = {
        "paid": "processing",
        "pending": "pending",
        "refunded": "refunded",
        "partially_refunded": "processing",
        "voided": "cancelled",
        "authorized": "on-hold",
    }

    def _register_normalizers(self) -> Dict[EntityType, NormalizerPair]:
        return {
            EntityType.PRODUCT: (self.product_to_canonical, self.product_to_native),
            EntityType.CUSTOMER: (self.customer_to_canonical, self.customer_to_native),
            EntityType.ORDER: (self.order_to_canonical, self.order_to_native),
            EntityType.COLLECTION: (self.collection_to_canonical, self.collection_to_native),
            EntityType.COUPON: (self.coupon_to_canonical, self.coupon_to_native),
            EntityType.REVIEW: (self.review_to_canonical, self.review_to_native),
            EntityType.PAGE: (self.page_to_canonical, self.page_to_native),
            EntityType.BLOG_POST: (self.blog_post_to_canonical, self.blog_post_to_native),
        }

    # Products

    def product_to_canonical(self, data: Dict[str, Any]) -> Product:
        require_identity(data, "WooCommerce product", ("id", "name", "sku", "slug"))
        price, compare_at = self._prices(data)
        metafields = self._metafields(data)
        name = data.get("name") or ""

        images = []
        for position, image in enumerate(data.get("images") or []):
            if isinstance(image, dict) and image.get("src"):
                images.append(Image(
                    src=image["src"],
                    alt=text(image.get("alt")) or text(name),
                    position=position,
                ))

        return Product(
            platform=self.platform,
            original_id=str(data.get("id") or ""),
            name=name,
            description=data.get("description") or "",
            slug=data.get("slug") or "",
            status=ProductStatus.PUBLISHED if data.get("status") == "publish" else ProductStatus.DRAFT,
            price=price,
            compare_at_price=compare_at,
            sku=text(data.get("sku")),
            barcode=text(data.get("global_unique_id")),
            weight=self._weight(data.get("weight")),
            images=images,
            variants=self._variants(data, price, compare_at),
            categories=names(data.get("categories")),
            tags=names(data.get("tags")),
            metafields=metafields,
            seo=self._seo(metafields),
        )

    def product_to_native(self, product: Product) -> Dict[str, Any]:
        is_variable = len(product.variants) > 1
        payload: Dict[str, Any] = {
            "name": product.name,
            "type": "variable" if is_variable else "simple",
            "status": self.STATUS_TO_NATIVE[product.status],
            "description": product.description,
            "slug": product.slug,
            "sku": product.sku or "",
            "global_unique_id": product.barcode or "",
            "categories": [{"name": c} for c in product.categories],
            "tags": [{"name": t} for t in product.tags],
            "images": [
                {"src": image.src, "alt": image.alt or ""}
                for image in sorted(product.images, key=lambda i: i.position)
            ],
            "meta_data": self._meta_data(product.metafields, self._seo_meta(product.seo)),
        }
        payload.update(self._price_fields(product.price, product.compare_at_price))

        if product.weight is not None:
            payload["weight"] = str(product.weight)

        if is_variable:
            payload["attributes"] = self._attributes(product.variants)
            payload["variations"] = [self._variation(v) for v in product.variants]
        else:
            payload["manage_stock"] = True
            payload["stock_quantity"] = product.variants[0].inventory_quantity

        return payload

    def _prices(self, data: Dict[str, Any]):
        price = (
            money(data.get("price"))
            or money(data.get("sale_price"))
            or money(data.get("regular_price"))
            or "0"
        )
        regular = money(data.get("regular_price"))
        compare_at = regular if regular and regular != price else None
        return price, compare_at

    def _price_fields(self, price: Optional[str], compare_at: Optional[str]) -> Dict[str, str]:
        if compare_at:
            return {"regular_price": compare_at, "sale_price": price or "0"}
        return {"regular_price": price or "0", "sale_price": ""}

    def _variants(self, data: Dict[str, Any], price: str, compare_at: Optional[str]) -> List[Variant]:
        expanded = [v for v in data.get("variations") or [] if isinstance(v, dict)]
        if not expanded:
            return [default_variant(
                price=price,
                inventory_quantity=to_int(data.get("stock_quantity"), 0),
                sku=text(data.get("sku")),
                compare_at_price=compare_at,
                barcode=text(data.get("global_unique_id")),
            )]

        variants = []
        for variation in expanded:
            v_price, v_compare = self._prices(variation)
            variants.append(Variant(
                price=v_price,
                inventory_quantity=to_int(variation.get("stock_quantity"), 0),
                sku=text(variation.get("sku")),
                options=[
                    ProductOption(name=a.get("name") or "", value=a.get("option") or "")
                    for a in variation.get("attributes") or []
                    if isinstance(a, dict)
                ],
                compare_at_price=v_compare,
                barcode=text(variation.get("global_unique_id")),
            ))
        return variants

    def _attributes(self, variants: List[Variant]) -> List[Dict[str, Any]]:
        options: Dict[str, List[str]] = {}
        for variant in variants:
            for option in variant.options:
                values = options.setdefault(option.name, [])
                if option.value not in values:
                    values.append(option.value)
        return [
            {"name": name, "options": values, "variation": True, "visible": True}
            for name, values in options.items()
        ]

    def _variation(self, variant: Variant) -> Dict[str, Any]:
        payload = {
            "sku": variant.sku or "",
            "manage_stock": True,
            "stock_quantity": variant.inventory_quantity,
            "global_unique_id": variant.barcode or "",
            "attributes": [{"name": o.name, "option": o.value} for o in variant.options],
        }
        payload.update(self._price_fields(variant.price, variant.compare_at_price))
        return payload

    def _weight(self, value: Any) -> Optional[float]:
        if value in (None, ""):
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    def _metafields(self, data: Dict[str, Any]) -> List[Metafield]:
        metafields = []
        for meta in data.get("meta_data") or []:
            if not isinstance(meta, dict) or not meta.get("key"):
                continue
            value = meta.get("value")
            metafields.append(Metafield(
                namespace=self.META_NAMESPACE,
                key=meta["key"],
                value=value if isinstance(value, str) else json.dumps(value),
            ))
        return metafields

    def _meta_data(self, metafields: List[Metafield], extra: Dict[str, str]) -> List[Dict[str, str]]:
        """Write only WooCommerce-namespaced metafields, plus any derived keys not already present."""
        meta = [
            {"key": m.key, "value": m.value}
            for m in metafields
            if m.namespace == self.META_NAMESPACE
        ]
        present = {m["key"] for m in meta}
        for key, value in extra.items():
            if key not in present and value:
                meta.append({"key": key, "value": value})
        return meta

    def _seo(self, metafields: List[Metafield]) -> Optional[SEO]:
        values = {m.key: m.value for m in metafields}
        title = text(values.get(self.YOAST_TITLE))
        description = text(values.get(self.YOAST_DESCRIPTION))
        if not title and not description:
            return None
        return SEO(title=title, description=description)

    def _seo_meta(self, seo: Optional[SEO]) -> Dict[str, str]:
        if not seo:
            return {}
        return {self.YOAST_TITLE: seo.title or "", self.YOAST_DESCRIPTION: seo.description or ""}

    # Customers

    def customer_to_canonical(self, data: Dict[str, Any]) -> Customer:
        require_identity(data, "WooCommerce customer", ("id", "email"))
        billing = data.get("billing") or {}
        shipping = data.get("shipping") or {}
        metafields = self._metafields(data)

        addresses = []
        if self._has_address(billing):
            addresses.append(self._address(billing, is_default=True))
        if self._has_address(shipping):
            addresses.append(self._address(shipping, is_default=not addresses))

        notes = next((m.value for m in metafields if m.key == self.CUSTOMER_NOTE), None)

        return Customer(
            platform=self.platform,
            original_id=str(data.get("id") or ""),
            email=data.get("email") or billing.get("email") or "",
            first_name=data.get("first_name") or "",
            last_name=data.get("last_name") or "",
            phone=text(billing.get("phone")),
            addresses=addresses,
            tags=[],
            notes=text(notes),
            metafields=metafields,
        )

    def customer_to_native(self, customer: Customer) -> Dict[str, Any]:
        # Extra addresses beyond billing and shipping are dropped.
        billing_address = customer.default_address
        others = [a for a in customer.addresses if a is not billing_address]
        shipping_address = others[0] if others else None

        billing = self._address_native(billing_address) if billing_address else {}
        billing["email"] = customer.email
        billing["phone"] = (billing_address.phone if billing_address else None) or customer.phone or ""

        payload = {
            "email": customer.email,
            "first_name": customer.first_name,
            "last_name": customer.last_name,
            "billing": billing,
            "meta_data": self._meta_data(
                customer.metafields, {self.CUSTOMER_NOTE: customer.notes or ""}
            ),
        }
        if shipping_address:
            payload["shipping"] = self._address_native(shipping_address)
        return payload

    def _has_address(self, block: Dict[str, Any]) -> bool:
        return isinstance(block, dict) and any(
            block.get(k) for k in ("address_1", "city", "postcode", "country")
        )

    def _address(self, block: Dict[str, Any], is_default: bool = False) -> Address:
        return Address(
            first_name=block.get("first_name") or "",
            last_name=block.get("last_name") or "",
            company=text(block.get("company")),
            address1=block.get("address_1") or "",
            address2=text(block.get("address_2")),
            city=block.get("city") or "",
            province=text(block.get("state")),
            zip=block.get("postcode") or "",
            country=block.get("country") or "",
            phone=text(block.get("phone")),
            is_default=is_default,
        )

    def _address_native(self, address: Address) -> Dict[str, Any]:
        return {
            "first_name": address.first_name,
            "last_name": address.last_name,
            "company": address.company or "",
            "address_1": address.address1,
            "address_2": address.address2 or "",
            "city": address.city,
            "state": address.province or "",
            "postcode": address.zip,
            "country": address.country,
            "phone": address.phone or "",
        }

    # Orders

    def order_to_canonical(self, data: Dict[str, Any]) -> Order:
        require_identity(data, "WooCommerce order", ("id", "number", "line_items"))
        billing = data.get("billing") or {}
        shipping = data.get("shipping") or {}
        status = data.get("status") or ""

        line_items = []
        for item in data.get("line_items") or []:
            if not isinstance(item, dict):
                continue
            line_items.append(LineItem(
                product_id=str(item.get("product_id") or ""),
                variant_id=str(item["variation_id"]) if item.get("variation_id") else None,
                title=item.get("name") or "",
                quantity=to_int(item.get("quantity"), 0),
                price=self._unit_price(item),
                sku=text(item.get("sku")),
            ))

        total = money(data.get("total"))
        return Order(
            platform=self.platform,
            original_id=str(data.get("id") or ""),
            order_number=str(data.get("number") or data.get("id") or ""),
            email=billing.get("email") or "",
            line_items=line_items,
            shipping_address=self._address(shipping) if self._has_address(shipping) else None,
            billing_address=self._address(billing) if self._has_address(billing) else None,
            financial_status=status,
            fulfillment_status="fulfilled" if status == "completed" else "unfulfilled",
            total_price=total,
            subtotal_price=money(data.get("subtotal")) or self._line_subtotal(data) or total,
            total_tax=money(data.get("total_tax"), "0"),
            total_shipping=money(data.get("shipping_total"), "0"),
            discounts=[
                Discount(code=c.get("code") or "", amount=money(c.get("discount")), type="fixed")
                for c in data.get("coupon_lines") or []
                if isinstance(c, dict)
            ],
            tags=[],
            notes=text(data.get("customer_note")),
            created_at=parse_datetime(data.get("date_created")),
        )

    def order_to_native(self, order: Order) -> Dict[str, Any]:
        status = self._order_status(order.financial_status, order.fulfillment_status)
        billing = self._address_native(order.billing_address) if order.billing_address else {}
        billing["email"] = order.email

        payload = {
            "status": status,
            "set_paid": (order.financial_status or "").lower() == "paid",
            "billing": billing,
            "line_items": [self._line_item_native(item) for item in order.line_items],
            "customer_note": order.notes or "",
            "coupon_lines": [
                {"code": d.code, "discount": d.amount or "0"} for d in order.discounts
            ],
        }
        if order.shipping_address:
            payload["shipping"] = self._address_native(order.shipping_address)
        return payload

    def _order_status(self, financial_status: str, fulfillment_status: str) -> str:
        status = (financial_status or "").lower()
        if status in self.ORDER_STATUSES:
            return status
        mapped = self.FINANCIAL_STATUS_MAP.get(status, "pending")
        if mapped == "processing" and (fulfillment_status or "").lower() == "fulfilled":
            return "completed"
        return mapped

    def _unit_price(self, item: Dict[str, Any]) -> str:
        if item.get("price") not in (None, ""):
            return money(item["price"], "0")
        total = money(item.get("total"), "0")
        quantity = to_int(item.get("quantity"), 0)
        if not quantity:
            return total
        try:
            return str(Decimal(total) / Decimal(quantity))
        except InvalidOperation:
            return total

    def _line_subtotal(self, data: Dict[str, Any]) -> Optional[str]:
        subtotals = [i.get("subtotal") for i in data.get("line_items") or [] if isinstance(i, dict)]
        if not subtotals or any(s in (None, "") for s in subtotals):
            return None
        try:
            return str(sum((Decimal(str(s)) for s in subtotals), Decimal("0")))
        except InvalidOperation:
            return None

    def _line_item_native(self, item: LineItem) -> Dict[str, Any]:
        try:
            line_total = str(Decimal(item.price) * item.quantity)
        except InvalidOperation:
            line_total = item.price
        payload: Dict[str, Any] = {
            "name": item.title,
            "quantity": item.quantity,
            "subtotal": line_total,
            "total": line_total,
        }
        if item.sku:
            payload["sku"] = item.sku
        product_id = _numeric_id(item.product_id)
        if product_id is not None:
            payload["product_id"] = product_id
        variation_id = _numeric_id(item.variant_id)
        if variation_id is not None:
            payload["variation_id"] = variation_id
        return payload

    # Collections (product categories)

    def collection_to_canonical(self, data: Dict[str, Any]) -> Collection:
        require_identity(data, "WooCommerce category", ("id", "name", "slug"))
        name = data.get("name") or ""
        image = data.get("image") if isinstance(data.get("image"), dict) else None
        return Collection(
            platform=self.platform,
            original_id=str(data.get("id") or ""),
            name=name,
            slug=data.get("slug") or "",
            description=text(data.get("description")),
            image=Image(src=image["src"], alt=text(image.get("alt")) or text(name)) if image and image.get("src") else None,
        )

    def collection_to_native(self, collection: Collection) -> Dict[str, Any]:
        payload = {
            "name": collection.name,
            "slug": collection.slug,
            "description": collection.description or "",
        }
        if collection.image:
            payload["image"] = {"src": collection.image.src, "alt": collection.image.alt or ""}
        return payload

    # Coupons

    def coupon_to_canonical(self, data: Dict[str, Any]) -> Coupon:
        require_identity(data, "WooCommerce coupon", ("id", "code"))
        return Coupon(
            platform=self.platform,
            original_id=str(data.get("id") or ""),
            code=data.get("code") or "",
            discount_type=self.DISCOUNT_TYPES.get(data.get("discount_type")),
            amount=money(data.get("amount")),
            description=text(data.get("description")),
            expiry_date=parse_datetime(data.get("date_expires")),
            minimum_amount=_optional_amount(data.get("minimum_amount")),
            maximum_amount=_optional_amount(data.get("maximum_amount")),
            usage_limit=to_int(data.get("usage_limit")),
            usage_limit_per_user=to_int(data.get("usage_limit_per_user")),
            usage_count=to_int(data.get("usage_count")),
            individual_use=bool(data.get("individual_use")),
            free_shipping=bool(data.get("free_shipping")),
            product_ids=[str(i) for i in data.get("product_ids") or []],
            excluded_product_ids=[str(i) for i in data.get("excluded_product_ids") or []],
            category_ids=[str(i) for i in data.get("product_categories") or []],
            excluded_category_ids=[str(i) for i in data.get("excluded_product_categories") or []],
        )

    def coupon_to_native(self, coupon: Coupon) -> Dict[str, Any]:
        native_types = {v: k for k, v in self.DISCOUNT_TYPES.items()}
        return {
            "code": coupon.code,
            "discount_type": native_types.get(coupon.discount_type, "fixed_cart"),
            "amount": coupon.amount or "0",
            "description": coupon.description or "",
            "date_expires": format_datetime(coupon.expiry_date),
            "minimum_amount": coupon.minimum_amount or "",
            "maximum_amount": coupon.maximum_amount or "",
            "usage_limit": coupon.usage_limit,
            "usage_limit_per_user": coupon.usage_limit_per_user,
            "individual_use": coupon.individual_use,
            "free_shipping": coupon.free_shipping,
            "product_ids": _numeric_ids(coupon.product_ids),
            "excluded_product_ids": _numeric_ids(coupon.excluded_product_ids),
            "product_categories": _numeric_ids(coupon.category_ids),
            "excluded_product_categories": _numeric_ids(coupon.excluded_category_ids),
        }

    # Reviews

    def review_to_canonical(self, data: Dict[str, Any]) -> Review:
        require_identity(data, "WooCommerce review", ("id", "product_id"))
        return Review(
            platform=self.platform,
            original_id=str(data.get("id") or ""),
            product_id=str(data.get("product_id") or ""),
            rating=to_int(data.get("rating")),
            content=data.get("review") or "",
            reviewer_name=data.get("reviewer") or "",
            reviewer_email=data.get("reviewer_email") or "",
            verified=bool(data.get("verified")),
            status=data.get("status") or "approved",
            created_at=parse_datetime(data.get("date_created")),
        )

    def review_to_native(self, review: Review) -> Dict[str, Any]:
        return {
            "product_id": _numeric_id(review.product_id),
            "review": review.content,
            "reviewer": review.reviewer_name,
            "reviewer_email": review.reviewer_email,
            "rating": review.rating,
            "status": review.status,
            "verified": review.verified,
        }

    # Pages and posts

    def page_to_canonical(self, data: Dict[str, Any]) -> Page:
        require_identity(data, "WordPress page", ("id", "slug", "title"))
        return Page(
            platform=self.platform,
            original_id=str(data.get("id") or ""),
            title=_rendered(data.get("title")),
            content=_rendered(data.get("content")),
            slug=data.get("slug") or "",
            status=ContentStatus.PUBLISHED if data.get("status") == "publish" else ContentStatus.DRAFT,
            created_at=parse_datetime(data.get("date")),
            updated_at=parse_datetime(data.get("modified")),
        )

    def page_to_native(self, page: Page) -> Dict[str, Any]:
        return {
            "title": page.title,
            "content": page.content,
            "slug": page.slug,
            "status": "publish" if page.status == ContentStatus.PUBLISHED else "draft",
        }

    def blog_post_to_canonical(self, data: Dict[str, Any]) -> BlogPost:
        require_identity(data, "WordPress post", ("id", "slug", "title"))
        embedded = data.get("_embedded") or {}
        terms = embedded.get("wp:term") or []
        published = data.get("status") == "publish"

        categories = names(terms[0]) if len(terms) > 0 else names(data.get("categories"))
        tags = names(terms[1]) if len(terms) > 1 else names(data.get("tags"))

        featured = get_path(embedded, "wp:featuredmedia.0")
        featured_image = None
        if isinstance(featured, dict) and featured.get("source_url"):
            featured_image = Image(src=featured["source_url"], alt=text(featured.get("alt_text")))

        author = get_path(embedded, "author.0.name")
        if not author and data.get("author"):
            author = str(data["author"])

        return BlogPost(
            platform=self.platform,
            original_id=str(data.get("id") or ""),
            title=_rendered(data.get("title")),
            content=_rendered(data.get("content")),
            slug=data.get("slug") or "",
            status=ContentStatus.PUBLISHED if published else ContentStatus.DRAFT,
            excerpt=text(_rendered(data.get("excerpt"))),
            tags=tags,
            categories=categories,
            author=author,
            featured_image=featured_image,
            published_at=parse_datetime(data.get("date")) if published else None,
            created_at=parse_datetime(data.get("date")),
            updated_at=parse_datetime(data.get("modified")),
        )

    def blog_post_to_native(self, post: BlogPost) -> Dict[str, Any]:
        # tags and categories are term names; the connector resolves them to term ids
        payload = {
            "title": post.title,
            "content": post.content,
            "excerpt": post.excerpt or "",
            "slug": post.slug,
            "status": "publish" if post.status == ContentStatus.PUBLISHED else "draft",
            "tags": list(post.tags),
            "categories": list(post.categories),
        }
        if post.published_at:
            payload["date"] = format_datetime(post.published_at)
        return payload


def _rendered(value: Any) -> str:
    if isinstance(value, dict):
        return value.get("rendered") or value.get("raw") or ""
    if isinstance(value, str):
        return value
    return ""


def _optional_amount(value: Any) -> Optional[str]:
    amount = money(value)
    if amount is None:
        return None
    try:
        if Decimal(amount) == 0:
            return None
    except InvalidOperation:
        pass
    return amount


def _numeric_id(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    value = str(value).strip()
    return int(value) if value.isdigit() else None


def _numeric_ids(values: List[str]) -> List[int]:
    """Keep only ids WooCommerce can address; foreign ids (e.g. Shopify GIDs) are dropped."""
    return [i for i in (_numeric_id(v) for v in values) if i is not None]
