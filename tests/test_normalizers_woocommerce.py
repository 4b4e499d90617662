"""
Tests for the WooCommerce normalizers.

Tests:
- Simple and variable products to canonical and back
- Status mapping (archived has no WooCommerce equivalent)
- Customers with billing and shipping addresses
- Orders, categories, coupons, reviews, pages and posts
- Structurally impossible input
"""

from dataclasses import replace

import pytest

from storebridge.errors import MalformedRecordError
from storebridge.models.canonical import (
    Address,
    ContentStatus,
    Customer,
    DiscountType,
    EntityType,
    Platform,
    Product,
    ProductStatus,
)
from storebridge.normalizers.woocommerce import WooCommerceNormalizer

from conftest import WC_CATEGORY, WC_COUPON, WC_PAGE, WC_POST, WC_REVIEW


@pytest.fixture
def normalizer():
    return WooCommerceNormalizer()


class TestProducts:
    """Tests for product conversion."""

    def test_simple_product_to_canonical(self, normalizer, wc_product):
        product = normalizer.to_canonical(EntityType.PRODUCT, wc_product)

        assert product.platform == Platform.WOOCOMMERCE
        assert product.original_id == "101"
        assert product.name == "Blue Widget"
        assert product.status == ProductStatus.PUBLISHED
        assert product.price == "19.99"
        assert product.compare_at_price == "24.99"
        assert product.weight == 1.5
        assert product.categories == ["Widgets"]
        assert product.tags == ["blue"]
        assert product.seo.title == "Blue Widget | Shop"
        assert product.seo.description == "Buy the blue widget"

    def test_simple_product_gets_default_variant(self, normalizer, wc_product):
        product = normalizer.to_canonical(EntityType.PRODUCT, wc_product)

        assert len(product.variants) == 1
        variant = product.variants[0]
        assert variant.sku == "BW-1"
        assert variant.price == "19.99"
        assert variant.inventory_quantity == 10
        assert variant.options[0].value == "Default Title"

    def test_image_alt_falls_back_to_product_name(self, normalizer, wc_product):
        product = normalizer.to_canonical(EntityType.PRODUCT, wc_product)
        assert product.images[0].alt == "Blue Widget"

    def test_variable_product_variants(self, normalizer, wc_variable_product):
        product = normalizer.to_canonical(EntityType.PRODUCT, wc_variable_product)

        assert product.status == ProductStatus.DRAFT
        assert [v.sku for v in product.variants] == ["TS-S", "TS-M"]
        assert [v.inventory_quantity for v in product.variants] == [4, 6]
        assert product.variants[0].options[0].name == "Size"
        assert product.total_inventory == 10

    def test_variable_product_to_native(self, normalizer, wc_variable_product):
        product = normalizer.to_canonical(EntityType.PRODUCT, wc_variable_product)
        payload = normalizer.to_native(EntityType.PRODUCT, product)

        assert payload["type"] == "variable"
        assert payload["attributes"] == [
            {"name": "Size", "options": ["S", "M"], "variation": True, "visible": True}
        ]
        assert [v["sku"] for v in payload["variations"]] == ["TS-S", "TS-M"]
        assert "stock_quantity" not in payload

    def test_simple_product_to_native_keeps_money_strings(self, normalizer, wc_product):
        product = normalizer.to_canonical(EntityType.PRODUCT, wc_product)
        payload = normalizer.to_native(EntityType.PRODUCT, product)

        assert payload["type"] == "simple"
        assert payload["regular_price"] == "24.99"
        assert payload["sale_price"] == "19.99"
        assert payload["stock_quantity"] == 10
        assert payload["categories"] == [{"name": "Widgets"}]

    @pytest.mark.parametrize("status,expected", [
        (ProductStatus.PUBLISHED, "publish"),
        (ProductStatus.DRAFT, "draft"),
        (ProductStatus.ARCHIVED, "draft"),
    ])
    def test_status_mapping_on_write(self, normalizer, status, expected):
        product = Product(platform=Platform.SHOPIFY, original_id="1", name="Hat", price="5", status=status)
        assert normalizer.to_native(EntityType.PRODUCT, product)["status"] == expected

    def test_missing_optional_fields(self, normalizer):
        product = normalizer.to_canonical(EntityType.PRODUCT, {"id": 5, "name": "Bare"})

        assert product.price == "0"
        assert product.sku is None
        assert product.images == []
        assert product.seo is None
        assert len(product.variants) == 1


class TestCustomers:
    """Tests for customer conversion."""

    def test_customer_to_canonical(self, normalizer, wc_customer):
        customer = normalizer.to_canonical(EntityType.CUSTOMER, wc_customer)

        assert customer.email == "ada@example.com"
        assert customer.phone == "+44 20 0000 0000"
        assert customer.notes == "Prefers email"
        assert len(customer.addresses) == 2
        assert customer.addresses[0].is_default
        assert customer.addresses[0].address1 == "1 Analytical Way"
        assert not customer.addresses[1].is_default

    def test_extra_addresses_are_truncated(self, normalizer):
        customer = Customer(
            platform=Platform.SHOPIFY,
            original_id="c1",
            email="x@example.com",
            first_name="X",
            addresses=[
                Address(address1="A", is_default=True),
                Address(address1="B"),
                Address(address1="C"),
            ],
        )
        payload = normalizer.to_native(EntityType.CUSTOMER, customer)

        assert payload["billing"]["address_1"] == "A"
        assert payload["billing"]["email"] == "x@example.com"
        assert payload["shipping"]["address_1"] == "B"

    def test_customer_without_addresses(self, normalizer):
        customer = normalizer.to_canonical(EntityType.CUSTOMER, {"id": 1, "email": "a@b.co"})
        payload = normalizer.to_native(EntityType.CUSTOMER, customer)

        assert customer.addresses == []
        assert payload["billing"] == {"email": "a@b.co", "phone": ""}
        assert "shipping" not in payload


class TestOrders:
    """Tests for order conversion."""

    def test_order_to_canonical(self, normalizer, wc_order):
        order = normalizer.to_canonical(EntityType.ORDER, wc_order)

        assert order.order_number == "4821"
        assert order.email == "ada@example.com"
        assert order.total_price == "45.50"
        assert order.total_shipping == "2.50"
        assert order.financial_status == "completed"
        assert order.fulfillment_status == "fulfilled"
        assert order.shipping_address is None
        assert order.billing_address.city == "London"
        assert order.discounts[0].code == "SPRING"
        assert order.created_at.year == 2023

    def test_line_items(self, normalizer, wc_order):
        item = normalizer.to_canonical(EntityType.ORDER, wc_order).line_items[0]

        assert item.product_id == "101"
        assert item.variant_id is None
        assert item.quantity == 2
        assert item.price == "20.00"

    def test_unit_price_from_line_total(self, normalizer, wc_order):
        wc_order["line_items"][0].pop("price")
        wc_order["line_items"][0]["total"] = "40.00"

        item = normalizer.to_canonical(EntityType.ORDER, wc_order).line_items[0]
        assert item.price == "20.00"

    def test_order_to_native_status(self, normalizer, wc_order):
        order = normalizer.to_canonical(EntityType.ORDER, wc_order)
        payload = normalizer.to_native(EntityType.ORDER, order)

        assert payload["status"] == "completed"
        assert payload["line_items"][0]["product_id"] == 101
        assert payload["line_items"][0]["total"] == "40.00"
        assert payload["coupon_lines"] == [{"code": "SPRING", "discount": "5.00"}]

    def test_shopify_statuses_map_to_woocommerce(self, normalizer, shopify_order):
        from storebridge.normalizers.shopify import ShopifyNormalizer

        order = ShopifyNormalizer().to_canonical(EntityType.ORDER, shopify_order)
        payload = normalizer.to_native(EntityType.ORDER, order)

        assert payload["status"] == "completed"
        assert payload["set_paid"] is True
        # Shopify GIDs cannot be WooCommerce product links
        assert "product_id" not in payload["line_items"][0]


class TestCollections:
    """Tests for product category conversion."""

    def test_category_to_canonical(self, normalizer):
        collection = normalizer.to_canonical(EntityType.COLLECTION, dict(WC_CATEGORY))

        assert collection.name == "Widgets"
        assert collection.slug == "widgets"
        assert collection.image.alt == "Widgets"


class TestCoupons:
    """Tests for coupon conversion."""

    def test_coupon_to_canonical(self, normalizer):
        coupon = normalizer.to_canonical(EntityType.COUPON, dict(WC_COUPON))

        assert coupon.code == "SPRING15"
        assert coupon.discount_type == DiscountType.PERCENTAGE
        assert coupon.amount == "15.00"
        assert coupon.minimum_amount == "50.00"
        assert coupon.maximum_amount is None
        assert coupon.usage_count == 12
        assert coupon.expiry_date.month == 6

    def test_coupon_amount_is_not_converted(self, normalizer):
        coupon = normalizer.to_canonical(EntityType.COUPON, dict(WC_COUPON))
        payload = normalizer.to_native(EntityType.COUPON, coupon)

        assert payload["discount_type"] == "percent"
        assert payload["amount"] == "15.00"

    def test_foreign_product_ids_are_dropped(self, normalizer):
        coupon = normalizer.to_canonical(EntityType.COUPON, dict(WC_COUPON))
        coupon = replace(coupon, product_ids=["5", "gid://shopify/Product/1"])

        assert normalizer.to_native(EntityType.COUPON, coupon)["product_ids"] == [5]


class TestContent:
    """Tests for reviews, pages and posts."""

    def test_review(self, normalizer):
        review = normalizer.to_canonical(EntityType.REVIEW, dict(WC_REVIEW))

        assert review.rating == 5
        assert review.content == "Works great"
        assert normalizer.to_native(EntityType.REVIEW, review)["product_id"] == 101

    def test_page_rendered_fields(self, normalizer):
        page = normalizer.to_canonical(EntityType.PAGE, dict(WC_PAGE))

        assert page.title == "About Us"
        assert page.content == "<p>We make widgets.</p>"
        assert page.status == ContentStatus.PUBLISHED

    def test_post_embedded_terms(self, normalizer):
        post = normalizer.to_canonical(EntityType.BLOG_POST, dict(WC_POST))

        assert post.categories == ["News"]
        assert post.tags == ["launch", "widgets"]
        assert post.author == "Grace"
        assert post.featured_image.src.endswith("launch.jpg")
        assert post.published_at is not None

    def test_post_to_native_sends_term_names(self, normalizer):
        post = normalizer.to_canonical(EntityType.BLOG_POST, dict(WC_POST))
        payload = normalizer.to_native(EntityType.BLOG_POST, post)

        assert payload["tags"] == ["launch", "widgets"]
        assert payload["categories"] == ["News"]
        assert payload["status"] == "publish"


class TestMalformedInput:
    """Tests for structurally impossible records."""

    def test_non_mapping_record(self, normalizer):
        with pytest.raises(MalformedRecordError):
            normalizer.to_canonical(EntityType.PRODUCT, ["not", "a", "record"])

    def test_record_without_identity(self, normalizer):
        with pytest.raises(MalformedRecordError):
            normalizer.to_canonical(EntityType.CUSTOMER, {"first_name": "Nobody"})
