"""Normalizers for Shopify Admin GraphQL records."""

import re
import logging
from typing import Any, Dict, List, Optional

from .base import (
    BaseNormalizer,
    NormalizerPair,
    format_datetime,
    fraction_from_percent,
    money,
    nodes,
    normalize_decimal,
    parse_datetime,
    percent_from_fraction,
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
    SEO,
    Variant,
    default_variant,
)

logger = logging.getLogger(__name__)


IMPORT_NOTE_PREFIX = "WooCommerce Order #"
SOURCE_ORDER_ATTRIBUTE = "source_order_number"


def build_import_note(order: Order) -> str:
    """Note text that marks a draft order as created from a WooCommerce order."""
    created = order.created_at.isoformat() if order.created_at else "unknown"
    note = (
        f"{IMPORT_NOTE_PREFIX}{order.order_number}\n"
        f"Original Date: {created}\n"
        f"Original Status: {order.financial_status or 'unknown'}"
    )
    if order.notes:
        note += f"\n\nCustomer Note: {order.notes}"
    return note


class ShopifyNormalizer(BaseNormalizer):
    """
    Normalizers for a Shopify store.

    Supports:
    - Products with variants, images, metafields and SEO
    - Customers with any number of addresses
    - Orders (read) and draft orders (write)
    - Collections, code discounts, pages and blog articles

    Shopify has no product reviews API, so reviews are not registered.
    """

    platform = Platform.SHOPIFY

    MAX_VARIANTS = 100
    SKIPPED_METAFIELD_NAMESPACE = "woocommerce"

    STATUS_TO_CANONICAL = {
        "ACTIVE": ProductStatus.PUBLISHED,
        "DRAFT": ProductStatus.DRAFT,
        "ARCHIVED": ProductStatus.ARCHIVED,
    }
    STATUS_TO_NATIVE = {v: k for k, v in STATUS_TO_CANONICAL.items()}

    def _register_normalizers(self) -> Dict[EntityType, NormalizerPair]:
        return {
            EntityType.PRODUCT: (self.product_to_canonical, self.product_to_native),
            EntityType.CUSTOMER: (self.customer_to_canonical, self.customer_to_native),
            EntityType.ORDER: (self.order_to_canonical, self.order_to_native),
            EntityType.COLLECTION: (self.collection_to_canonical, self.collection_to_native),
            EntityType.COUPON: (self.coupon_to_canonical, self.coupon_to_native),
            EntityType.PAGE: (self.page_to_canonical, self.page_to_native),
            EntityType.BLOG_POST: (self.blog_post_to_canonical, self.blog_post_to_native),
        }

    # Products

    def product_to_canonical(self, data: Dict[str, Any]) -> Product:
        require_identity(data, "Shopify product", ("id", "title", "handle"))
        option_names = [
            o if isinstance(o, str) else o.get("name", "")
            for o in data.get("options") or []
        ]
        variant_nodes = nodes(data.get("variants"))
        variants = [self._variant(v, option_names) for v in variant_nodes]
        if not variants:
            variants = [default_variant(price="0", inventory_quantity=to_int(data.get("totalInventory"), 0))]
        first = variant_nodes[0] if variant_nodes else {}

        images = []
        image_nodes = nodes(data.get("images")) or nodes(data.get("media"))
        if not image_nodes and isinstance(data.get("featuredImage"), dict):
            image_nodes = [data["featuredImage"]]
        for position, image in enumerate(image_nodes):
            src = image.get("url") or image.get("src") or image.get("originalSource")
            if src:
                images.append(Image(
                    src=src,
                    alt=text(image.get("altText") or image.get("alt")) or text(data.get("title")),
                    position=position,
                ))

        seo = data.get("seo") or {}
        seo_title, seo_description = text(seo.get("title")), text(seo.get("description"))

        return Product(
            platform=self.platform,
            original_id=str(data.get("id") or ""),
            name=data.get("title") or "",
            description=data.get("descriptionHtml") or data.get("description") or "",
            slug=data.get("handle") or "",
            status=self.STATUS_TO_CANONICAL.get((data.get("status") or "").upper(), ProductStatus.ARCHIVED),
            price=variants[0].price if variants else "0",
            compare_at_price=variants[0].compare_at_price if variants else None,
            sku=text(first.get("sku")),
            barcode=text(first.get("barcode")),
            weight=self._weight(first),
            images=images,
            variants=variants,
            categories=[data["productType"]] if data.get("productType") else [],
            tags=_tags(data.get("tags")),
            metafields=[
                Metafield(
                    namespace=m.get("namespace") or "",
                    key=m.get("key") or "",
                    value=m.get("value") if isinstance(m.get("value"), str) else str(m.get("value")),
                    type=m.get("type") or "string",
                )
                for m in nodes(data.get("metafields"))
            ],
            seo=SEO(title=seo_title, description=seo_description) if seo_title or seo_description else None,
        )

    def product_to_native(self, product: Product) -> Dict[str, Any]:
        # Variants beyond the first MAX_VARIANTS are dropped.
        variants = product.variants[:self.MAX_VARIANTS]
        option_names: List[str] = []
        for variant in variants:
            for option in variant.options:
                if option.name not in option_names:
                    option_names.append(option.name)

        payload: Dict[str, Any] = {
            "title": product.name,
            "descriptionHtml": product.description,
            "handle": product.slug,
            "status": self.STATUS_TO_NATIVE[product.status],
            "productType": product.categories[0] if product.categories else "",
            "tags": list(product.tags),
            "options": option_names,
            "variants": [self._variant_native(v, option_names, product.weight) for v in variants],
            "images": [
                {"src": image.src, "altText": image.alt or ""}
                for image in sorted(product.images, key=lambda i: i.position)
            ],
            "metafields": [
                {"namespace": m.namespace, "key": m.key, "value": m.value, "type": m.type}
                for m in product.metafields
                if m.namespace != self.SKIPPED_METAFIELD_NAMESPACE
            ],
        }
        if product.seo:
            payload["seo"] = {"title": product.seo.title, "description": product.seo.description}
        return payload

    def _variant(self, data: Dict[str, Any], option_names: List[str]) -> Variant:
        selected = data.get("selectedOptions")
        if selected:
            options = [ProductOption(name=o.get("name", ""), value=o.get("value", "")) for o in selected]
        else:
            values = data.get("options") or []
            options = [
                ProductOption(name=option_names[i] if i < len(option_names) else f"Option{i + 1}", value=value)
                for i, value in enumerate(values)
            ]

        quantity = data.get("inventoryQuantity")
        if quantity is None:
            levels = data.get("inventoryQuantities") or []
            quantity = levels[0].get("availableQuantity") if levels else 0

        return Variant(
            price=money(data.get("price"), "0"),
            inventory_quantity=to_int(quantity, 0),
            sku=text(data.get("sku")),
            options=options,
            compare_at_price=money(data.get("compareAtPrice")),
            barcode=text(data.get("barcode")),
        )

    def _variant_native(
        self,
        variant: Variant,
        option_names: List[str],
        weight: Optional[float]
    ) -> Dict[str, Any]:
        values = {o.name: o.value for o in variant.options}
        payload: Dict[str, Any] = {
            "price": variant.price,
            "compareAtPrice": variant.compare_at_price,
            "sku": variant.sku or "",
            "barcode": variant.barcode or "",
            "options": [values.get(name, "") for name in option_names],
            # locationId is filled in by the connector
            "inventoryQuantities": [{"availableQuantity": variant.inventory_quantity}],
        }
        if weight is not None:
            payload["weight"] = weight
            payload["weightUnit"] = "KILOGRAMS"
        return payload

    def _weight(self, variant: Dict[str, Any]) -> Optional[float]:
        value = variant.get("weight")
        if value in (None, ""):
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    # Customers

    def customer_to_canonical(self, data: Dict[str, Any]) -> Customer:
        require_identity(data, "Shopify customer", ("id", "email"))
        default_id = (data.get("defaultAddress") or {}).get("id")
        addresses = []
        for index, address in enumerate(nodes(data.get("addresses"))):
            is_default = address.get("id") == default_id if default_id else index == 0
            addresses.append(self._address(address, is_default))
        # first is default
        addresses.sort(key=lambda a: not a.is_default)

        return Customer(
            platform=self.platform,
            original_id=str(data.get("id") or ""),
            email=data.get("email") or "",
            first_name=data.get("firstName") or "",
            last_name=data.get("lastName") or "",
            phone=text(data.get("phone")),
            addresses=addresses,
            tags=_tags(data.get("tags")),
            notes=text(data.get("note")),
            metafields=[
                Metafield(
                    namespace=m.get("namespace") or "",
                    key=m.get("key") or "",
                    value=str(m.get("value") or ""),
                    type=m.get("type") or "string",
                )
                for m in nodes(data.get("metafields"))
            ],
        )

    def customer_to_native(self, customer: Customer) -> Dict[str, Any]:
        ordered = sorted(customer.addresses, key=lambda a: not a.is_default)
        return {
            "email": customer.email,
            "firstName": customer.first_name,
            "lastName": customer.last_name,
            "phone": customer.phone,
            "tags": list(customer.tags),
            "note": customer.notes,
            "addresses": [self._address_native(a) for a in ordered],
            "metafields": [
                {"namespace": m.namespace, "key": m.key, "value": m.value, "type": m.type}
                for m in customer.metafields
                if m.namespace != self.SKIPPED_METAFIELD_NAMESPACE
            ],
        }

    def _address(self, data: Dict[str, Any], is_default: bool = False) -> Address:
        return Address(
            first_name=data.get("firstName") or "",
            last_name=data.get("lastName") or "",
            company=text(data.get("company")),
            address1=data.get("address1") or "",
            address2=text(data.get("address2")),
            city=data.get("city") or "",
            province=text(data.get("province") or data.get("provinceCode")),
            zip=data.get("zip") or "",
            country=data.get("country") or data.get("countryCode") or "",
            phone=text(data.get("phone")),
            is_default=is_default,
        )

    def _address_native(self, address: Address) -> Dict[str, Any]:
        return {
            "firstName": address.first_name,
            "lastName": address.last_name,
            "company": address.company,
            "address1": address.address1,
            "address2": address.address2,
            "city": address.city,
            "province": address.province,
            "zip": address.zip,
            "country": address.country,
            "phone": address.phone,
        }

    # Orders

    def order_to_canonical(self, data: Dict[str, Any]) -> Order:
        require_identity(data, "Shopify order", ("id", "name", "lineItems"))
        line_items = []
        for item in nodes(data.get("lineItems")):
            variant = item.get("variant") or {}
            price = (
                money(item.get("originalUnitPriceSet"))
                or money(item.get("originalUnitPrice"))
                or money(variant.get("price"), "0")
            )
            line_items.append(LineItem(
                product_id=str((variant.get("product") or {}).get("id") or (item.get("product") or {}).get("id") or ""),
                variant_id=text(variant.get("id") or item.get("variantId")),
                title=item.get("title") or item.get("name") or "",
                quantity=to_int(item.get("quantity"), 0),
                price=price,
                sku=text(item.get("sku") or variant.get("sku")),
            ))

        discounts = []
        for application in nodes(data.get("discountApplications")):
            value = application.get("value") or {}
            if "percentage" in value:
                # PricingPercentageValue is already a percentage, not a fraction
                discounts.append(Discount(
                    code=application.get("code") or "",
                    amount=normalize_decimal(value["percentage"]),
                    type="percentage",
                ))
            else:
                discounts.append(Discount(code=application.get("code") or "", amount=money(value.get("amount")), type="fixed"))

        return Order(
            platform=self.platform,
            original_id=str(data.get("id") or ""),
            order_number=data.get("name") or "",
            email=data.get("email") or "",
            line_items=line_items,
            shipping_address=self._address(data["shippingAddress"]) if data.get("shippingAddress") else None,
            billing_address=self._address(data["billingAddress"]) if data.get("billingAddress") else None,
            financial_status=(data.get("displayFinancialStatus") or data.get("financialStatus") or "").lower(),
            fulfillment_status=(data.get("displayFulfillmentStatus") or data.get("fulfillmentStatus") or "").lower(),
            total_price=money(data.get("totalPriceSet")) or money(data.get("totalPrice")),
            subtotal_price=money(data.get("subtotalPriceSet")) or money(data.get("subtotalPrice")),
            total_tax=money(data.get("totalTaxSet")) or money(data.get("totalTax"), "0"),
            total_shipping=money(data.get("totalShippingPriceSet")) or money(data.get("totalShippingPrice"), "0"),
            discounts=discounts,
            tags=_tags(data.get("tags")),
            notes=text(data.get("note") if data.get("note") is not None else data.get("note2")),
            created_at=parse_datetime(data.get("createdAt")),
        )

    def order_to_native(self, order: Order) -> Dict[str, Any]:
        """Build a DraftOrderInput; Shopify does not accept historical orders directly."""
        tags = list(order.tags)
        custom_attributes = []
        note = order.notes

        if order.platform == Platform.WOOCOMMERCE:
            note = build_import_note(order)
            status = (order.financial_status or "").lower()
            tags.append("woocommerce-import")
            if order.created_at:
                tags.append(f"wc-{order.created_at.year}")
            if status == "completed":
                tags.append("wc-completed")
            elif status:
                tags.append(f"wc-{status}")
            custom_attributes.append({"key": SOURCE_ORDER_ATTRIBUTE, "value": order.order_number})

        payload: Dict[str, Any] = {
            "email": order.email,
            "note": note,
            "tags": tags,
            "lineItems": [self._line_item_native(item) for item in order.line_items],
        }
        if custom_attributes:
            payload["customAttributes"] = custom_attributes
        if order.shipping_address:
            payload["shippingAddress"] = self._address_native(order.shipping_address)
        if order.billing_address:
            payload["billingAddress"] = self._address_native(order.billing_address)
        return payload

    def _line_item_native(self, item: LineItem) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "title": item.title,
            "quantity": item.quantity,
            "originalUnitPrice": item.price,
        }
        if item.sku:
            payload["sku"] = item.sku
        if item.variant_id and item.variant_id.startswith("gid://shopify/ProductVariant/"):
            payload["variantId"] = item.variant_id
        return payload

    # Collections

    def collection_to_canonical(self, data: Dict[str, Any]) -> Collection:
        require_identity(data, "Shopify collection", ("id", "title", "handle"))
        image = data.get("image") if isinstance(data.get("image"), dict) else None
        seo = data.get("seo") or {}
        seo_title, seo_description = text(seo.get("title")), text(seo.get("description"))
        return Collection(
            platform=self.platform,
            original_id=str(data.get("id") or ""),
            name=data.get("title") or "",
            slug=data.get("handle") or "",
            description=text(data.get("descriptionHtml") or data.get("description")),
            image=Image(
                src=image.get("url") or image.get("src"),
                alt=text(image.get("altText")) or text(data.get("title")),
            ) if image and (image.get("url") or image.get("src")) else None,
            product_ids=_ids(data.get("products")),
            seo=SEO(title=seo_title, description=seo_description) if seo_title or seo_description else None,
        )

    def collection_to_native(self, collection: Collection) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "title": collection.name,
            "handle": collection.slug,
            "descriptionHtml": collection.description or "",
        }
        if collection.image:
            payload["image"] = {"src": collection.image.src, "altText": collection.image.alt or ""}
        if collection.seo:
            payload["seo"] = {"title": collection.seo.title, "description": collection.seo.description}
        if any(p.startswith("gid://shopify/Product/") for p in collection.product_ids):
            payload["products"] = [p for p in collection.product_ids if p.startswith("gid://shopify/Product/")]
        return payload

    # Discounts

    def coupon_to_canonical(self, data: Dict[str, Any]) -> Coupon:
        """
        Convert a DiscountCodeNode (or a basic / free-shipping discount input).

        Percentage values arrive as fractions (0.15) and are stored as
        percentage strings ("15").
        """
        discount = (
            data.get("codeDiscount")
            or data.get("basicCodeDiscount")
            or data.get("freeShippingCodeDiscount")
            or data
        )
        require_identity(
            {"id": data.get("id"), "code": discount.get("code"), "codes": discount.get("codes")},
            "Shopify discount",
            ("id", "code", "codes"),
        )
        typename = discount.get("__typename") or ""
        is_free_shipping = typename == "DiscountCodeFreeShipping" or "freeShippingCodeDiscount" in data

        code = discount.get("code")
        if not code:
            codes = nodes(discount.get("codes"))
            code = codes[0].get("code") if codes else ""

        customer_gets = discount.get("customerGets") or {}
        value = customer_gets.get("value") or {}
        discount_type = None
        amount = None
        if is_free_shipping:
            discount_type, amount = DiscountType.FIXED_CART, "0"
        elif "percentage" in value:
            discount_type, amount = DiscountType.PERCENTAGE, percent_from_fraction(value["percentage"])
        elif "amount" in value or "discountAmount" in value:
            amount_value = value.get("discountAmount") or value
            amount = money(amount_value.get("amount"))
            discount_type = (
                DiscountType.FIXED_PRODUCT if amount_value.get("appliesOnEachItem")
                else DiscountType.FIXED_CART
            )

        items = customer_gets.get("items") or {}
        product_ids = [str(p["id"]) for p in nodes(get_products(items)) if p.get("id")]
        product_ids += [str(p) for p in (items.get("products") or {}).get("productsToAdd") or []]
        category_ids = [str(c["id"]) for c in nodes((items.get("collections") or {}).get("collections")) if c.get("id")]
        category_ids += [str(c) for c in (items.get("collections") or {}).get("add") or []]

        minimum = discount.get("minimumRequirement") or {}
        minimum_amount = (
            money((minimum.get("greaterThanOrEqualToSubtotal") or {}).get("amount"))
            or money((minimum.get("subtotal") or {}).get("greaterThanOrEqualToSubtotal"))
        )

        title = text(discount.get("title"))
        return Coupon(
            platform=self.platform,
            original_id=str(data.get("id") or ""),
            code=code or "",
            discount_type=discount_type,
            amount=amount,
            description=title if title and title != code else None,
            expiry_date=parse_datetime(discount.get("endsAt")),
            minimum_amount=minimum_amount,
            usage_limit=to_int(discount.get("usageLimit")),
            usage_limit_per_user=1 if discount.get("appliesOncePerCustomer") else None,
            usage_count=to_int(discount.get("asyncUsageCount")),
            free_shipping=is_free_shipping,
            product_ids=product_ids,
            category_ids=category_ids,
        )

    def coupon_to_native(self, coupon: Coupon) -> Dict[str, Any]:
        """
        Build the variables for discountCodeBasicCreate or discountCodeFreeShippingCreate.

        The payload's single top-level key names the mutation argument.
        """
        discount: Dict[str, Any] = {
            "title": coupon.description or coupon.code,
            "code": coupon.code,
            "startsAt": None,
            "endsAt": format_datetime(coupon.expiry_date),
            "usageLimit": coupon.usage_limit,
            "appliesOncePerCustomer": coupon.usage_limit_per_user == 1,
            "customerSelection": {"all": True},
        }
        if coupon.minimum_amount:
            discount["minimumRequirement"] = {
                "subtotal": {"greaterThanOrEqualToSubtotal": coupon.minimum_amount}
            }

        if coupon.free_shipping and (coupon.amount in (None, "") or _is_zero(coupon.amount)):
            discount["destination"] = {"all": True}
            return {"freeShippingCodeDiscount": discount}

        if coupon.discount_type == DiscountType.PERCENTAGE:
            value: Dict[str, Any] = {"percentage": fraction_from_percent(coupon.amount)}
        else:
            value = {"discountAmount": {
                "amount": coupon.amount or "0",
                "appliesOnEachItem": coupon.discount_type == DiscountType.FIXED_PRODUCT,
            }}

        products = [p for p in coupon.product_ids if p.startswith("gid://shopify/Product/")]
        collections = [c for c in coupon.category_ids if c.startswith("gid://shopify/Collection/")]
        if products:
            items: Dict[str, Any] = {"products": {"productsToAdd": products}}
        elif collections:
            items = {"collections": {"add": collections}}
        else:
            items = {"all": True}

        discount["customerGets"] = {"value": value, "items": items}
        return {"basicCodeDiscount": discount}

    # Pages and articles

    def page_to_canonical(self, data: Dict[str, Any]) -> Page:
        require_identity(data, "Shopify page", ("id", "title", "handle"))
        published = data.get("isPublished")
        if published is None:
            published = bool(data.get("publishedAt"))
        return Page(
            platform=self.platform,
            original_id=str(data.get("id") or ""),
            title=data.get("title") or "",
            content=data.get("body") or data.get("bodySummary") or "",
            slug=data.get("handle") or "",
            status=ContentStatus.PUBLISHED if published else ContentStatus.DRAFT,
            created_at=parse_datetime(data.get("createdAt")),
            updated_at=parse_datetime(data.get("updatedAt")),
        )

    def page_to_native(self, page: Page) -> Dict[str, Any]:
        return {
            "title": page.title,
            "body": page.content,
            "handle": page.slug,
            "isPublished": page.status == ContentStatus.PUBLISHED,
        }

    def blog_post_to_canonical(self, data: Dict[str, Any]) -> BlogPost:
        require_identity(data, "Shopify article", ("id", "title", "handle"))
        published_at = parse_datetime(data.get("publishedAt") or data.get("publishDate"))
        published = data.get("isPublished")
        if published is None:
            published = published_at is not None
        image = data.get("image") if isinstance(data.get("image"), dict) else None
        author = data.get("author")
        if isinstance(author, dict):
            author = author.get("name")

        return BlogPost(
            platform=self.platform,
            original_id=str(data.get("id") or ""),
            title=data.get("title") or "",
            content=data.get("body") or data.get("content") or "",
            slug=data.get("handle") or "",
            status=ContentStatus.PUBLISHED if published else ContentStatus.DRAFT,
            excerpt=text(data.get("summary")),
            tags=_tags(data.get("tags")),
            categories=[],
            author=text(author),
            featured_image=Image(
                src=image.get("url") or image.get("src"),
                alt=text(image.get("altText")),
            ) if image and (image.get("url") or image.get("src")) else None,
            published_at=published_at if published else None,
            created_at=parse_datetime(data.get("createdAt")),
            updated_at=parse_datetime(data.get("updatedAt")),
        )

    def blog_post_to_native(self, post: BlogPost) -> Dict[str, Any]:
        """Build an ArticleCreateInput; the connector fills in blogId."""
        payload: Dict[str, Any] = {
            "title": post.title,
            "body": post.content,
            "summary": post.excerpt,
            "handle": post.slug,
            "tags": list(post.tags),
            "isPublished": post.status == ContentStatus.PUBLISHED,
            "author": {"name": post.author or "Staff"},
        }
        if post.published_at:
            payload["publishDate"] = format_datetime(post.published_at)
        if post.featured_image:
            payload["image"] = {"url": post.featured_image.src, "altText": post.featured_image.alt}
        return payload


def get_products(items: Dict[str, Any]) -> Any:
    """Product connection inside a DiscountProducts value, if any."""
    products = items.get("products")
    if isinstance(products, dict) and ("edges" in products or "nodes" in products):
        return products
    return None


def _tags(value: Any) -> List[str]:
    if isinstance(value, str):
        return [t.strip() for t in value.split(",") if t.strip()]
    return [t for t in value or [] if isinstance(t, str) and t]


def _is_zero(amount: str) -> bool:
    return bool(re.fullmatch(r"0*(\.0*)?", amount.strip()))


def _ids(value: Any) -> List[str]:
    """IDs from a connection of {'id': ...} nodes or a plain list of ID strings."""
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return list(value)
    return [str(n["id"]) for n in nodes(value) if n.get("id")]
