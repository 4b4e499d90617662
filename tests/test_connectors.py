"""
Tests for the WooCommerce and Shopify connectors.

Tests:
- WooCommerce page pagination, page and record ceilings
- Variation expansion and variable product creation
- WooCommerce API errors
- Shopify cursor pagination, draft orders and GraphQL errors
- Shopify userErrors and inventory adjustments
- Dry runs never write
"""

import json

import pytest

from storebridge.connectors import build_connectors
from storebridge.connectors.shopify import ShopifyConnector
from storebridge.connectors.woocommerce import WooCommerceConnector
from storebridge.errors import CapabilityMismatchError, ConnectorError, DestinationWriteError
from storebridge.models.canonical import EntityType, Platform
from storebridge.models.config import AppConfig, FetchLimits, ShopifyConfig, WooCommerceConfig


class FakeResponse:
    def __init__(self, payload, status_code=200, headers=None):
        self._payload = payload
        self.status_code = status_code
        self.headers = headers or {}
        self.text = json.dumps(payload)

    def json(self):
        return self._payload


class FakeSession:
    """Session returning queued responses and recording every call."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls = []
        self.headers = {}
        self.auth = None

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        return self.responses.pop(0)

    def post(self, url, **kwargs):
        return self.request("POST", url, **kwargs)


def wc_connector(responses, limits=None, dry_run=False):
    config = WooCommerceConfig(
        store_url="https://shop.example/",
        consumer_key="ck",
        consumer_secret="cs",
        limits=limits or FetchLimits(page_size=2, max_pages=10, max_records=100),
    )
    session = FakeSession(responses)
    return WooCommerceConnector(config, dry_run=dry_run, session=session), session


def shopify_connector(responses, limits=None, dry_run=False):
    config = ShopifyConfig(
        store_domain="https://example.myshopify.com/",
        access_token="shpat",
        limits=limits or FetchLimits(page_size=2, max_pages=10, max_records=100),
    )
    session = FakeSession(responses)
    return ShopifyConnector(config, dry_run=dry_run, session=session), session


def page(edges, has_next=False, cursor=None):
    return {"edges": [{"node": n} for n in edges], "pageInfo": {"hasNextPage": has_next, "endCursor": cursor}}


class TestWooCommercePagination:
    """Tests for WooCommerce fetch_all()."""

    def test_follows_total_pages(self):
        connector, session = wc_connector([
            FakeResponse([{"id": 1}, {"id": 2}], headers={"X-WP-TotalPages": "2"}),
            FakeResponse([{"id": 3}], headers={"X-WP-TotalPages": "2"}),
        ])

        records = connector.fetch_all(EntityType.CUSTOMER)

        assert [r["id"] for r in records] == [1, 2, 3]
        assert session.calls[0][1] == "https://shop.example/wp-json/wc/v3/customers"
        assert session.calls[1][2]["params"] == {"per_page": 2, "page": 2}
        assert session.auth == ("ck", "cs")

    def test_stops_on_empty_page(self):
        connector, session = wc_connector([FakeResponse([{"id": 1}, {"id": 2}]), FakeResponse([])])

        assert len(connector.fetch_all(EntityType.COUPON)) == 2
        assert len(session.calls) == 2

    def test_page_ceiling(self):
        limits = FetchLimits(page_size=1, max_pages=2, max_records=100)
        connector, session = wc_connector([FakeResponse([{"id": i}]) for i in range(5)], limits=limits)

        assert len(connector.fetch_all(EntityType.ORDER)) == 2
        assert len(session.calls) == 2

    def test_record_ceiling_truncates(self):
        limits = FetchLimits(page_size=2, max_pages=10, max_records=3)
        connector, _ = wc_connector([FakeResponse([{"id": 1}, {"id": 2}]), FakeResponse([{"id": 3}, {"id": 4}])], limits=limits)

        assert [r["id"] for r in connector.fetch_all(EntityType.ORDER)] == [1, 2, 3]

    def test_wordpress_entities_use_wp_api(self):
        connector, session = wc_connector([FakeResponse([{"id": 1}], headers={"X-WP-TotalPages": "1"})])

        connector.fetch_all(EntityType.BLOG_POST)

        method, url, kwargs = session.calls[0]
        assert url == "https://shop.example/wp-json/wp/v2/posts"
        assert kwargs["params"]["_embed"] == 1

    def test_variations_expanded(self):
        connector, session = wc_connector([
            FakeResponse([{"id": 5, "type": "variable", "variations": [11, 12]}], headers={"X-WP-TotalPages": "1"}),
            FakeResponse([{"id": 11, "sku": "S"}, {"id": 12, "sku": "M"}]),
        ])

        product = connector.fetch_all(EntityType.PRODUCT)[0]

        assert [v["sku"] for v in product["variations"]] == ["S", "M"]
        assert session.calls[1][1] == "https://shop.example/wp-json/wc/v3/products/5/variations"


class TestWooCommerceWrites:
    """Tests for WooCommerce create() and update_inventory()."""

    def test_variable_product_created_then_variations_batched(self):
        connector, session = wc_connector([
            FakeResponse([{"id": 7, "name": "Apparel"}]),
            FakeResponse({"id": 55}),
            FakeResponse({"create": []}),
        ])
        payload = {
            "name": "T-Shirt",
            "type": "variable",
            "categories": [{"name": "apparel"}],
            "variations": [{"sku": "TS-S"}, {"sku": "TS-M"}],
        }

        assert connector.create(EntityType.PRODUCT, payload) == {"id": "55"}

        create_call = session.calls[1]
        assert create_call[2]["json"]["categories"] == [{"id": 7}]
        assert "variations" not in create_call[2]["json"]
        assert session.calls[2][1].endswith("/products/55/variations/batch")
        assert session.calls[2][2]["json"] == {"create": [{"sku": "TS-S"}, {"sku": "TS-M"}]}

    def test_rejected_write(self):
        connector, _ = wc_connector([FakeResponse({"message": "Invalid or duplicated SKU."}, status_code=400)])

        with pytest.raises(DestinationWriteError) as exc_info:
            connector.create(EntityType.COUPON, {"code": "X"})

        assert "Invalid or duplicated SKU." in str(exc_info.value)
        assert exc_info.value.status_code == 400

    def test_failed_read_is_a_connector_error(self):
        connector, _ = wc_connector([FakeResponse({"message": "Sorry, you cannot list resources."}, status_code=401)])

        with pytest.raises(ConnectorError) as exc_info:
            connector.fetch_one(EntityType.ORDER, "1")
        assert not isinstance(exc_info.value, DestinationWriteError)

    def test_update_inventory_on_variation(self):
        connector, session = wc_connector([FakeResponse({"id": 12})])

        connector.update_inventory("5", 0, variant_id="12")

        method, url, kwargs = session.calls[0]
        assert method == "PUT"
        assert url.endswith("/products/5/variations/12")
        assert kwargs["json"] == {"stock_quantity": 0, "manage_stock": True, "stock_status": "outofstock"}

    def test_dry_run_never_writes(self):
        connector, session = wc_connector([], dry_run=True)

        result = connector.create(EntityType.PRODUCT, {"name": "Hat"})
        connector.update_inventory("5", 3)

        assert result["id"].startswith("dry-run-")
        assert session.calls == []


class TestShopifyReads:
    """Tests for Shopify fetch_all() and fetch_one()."""

    def test_cursor_pagination(self):
        connector, session = shopify_connector([
            FakeResponse({"data": {"products": page([{"id": "p1"}, {"id": "p2"}], has_next=True, cursor="c1")}}),
            FakeResponse({"data": {"products": page([{"id": "p3"}])}}),
        ])

        records = connector.fetch_all(EntityType.PRODUCT)

        assert [r["id"] for r in records] == ["p1", "p2", "p3"]
        assert session.calls[0][1] == "https://example.myshopify.com/admin/api/2024-01/graphql.json"
        assert session.calls[1][2]["json"]["variables"] == {"first": 2, "after": "c1"}
        assert session.headers["X-Shopify-Access-Token"] == "shpat"

    def test_orders_include_draft_orders(self):
        connector, _ = shopify_connector([
            FakeResponse({"data": {"orders": page([{"id": "o1"}])}}),
            FakeResponse({"data": {"draftOrders": page([{"id": "gid://shopify/DraftOrder/1"}])}}),
        ])

        records = connector.fetch_all(EntityType.ORDER)

        assert [r.get("isDraft", False) for r in records] == [False, True]

    def test_blog_posts_read_from_default_blog(self):
        connector, session = shopify_connector([
            FakeResponse({"data": {"blogs": page([{"id": "gid://shopify/Blog/1"}])}}),
            FakeResponse({"data": {"blog": {"articles": page([{"id": "a1"}])}}}),
        ])

        assert connector.fetch_all(EntityType.BLOG_POST) == [{"id": "a1"}]
        assert session.calls[1][2]["json"]["variables"]["blogId"] == "gid://shopify/Blog/1"

    def test_graphql_errors(self):
        connector, _ = shopify_connector([FakeResponse({"errors": [{"message": "Throttled"}]})])

        with pytest.raises(ConnectorError) as exc_info:
            connector.fetch_all(EntityType.CUSTOMER)
        assert "Throttled" in str(exc_info.value)

    def test_http_errors(self):
        connector, _ = shopify_connector([FakeResponse({}, status_code=401)])

        with pytest.raises(ConnectorError) as exc_info:
            connector.fetch_one(EntityType.PRODUCT, "gid://shopify/Product/1")
        assert exc_info.value.status_code == 401

    def test_fetch_one_missing(self):
        connector, _ = shopify_connector([FakeResponse({"data": {"node": None}})])

        with pytest.raises(ConnectorError) as exc_info:
            connector.fetch_one(EntityType.CUSTOMER, "gid://shopify/Customer/404")
        assert exc_info.value.status_code == 404

    def test_reviews_not_supported(self):
        connector, _ = shopify_connector([])

        assert not connector.supports(EntityType.REVIEW)
        with pytest.raises(CapabilityMismatchError):
            connector.fetch_all(EntityType.REVIEW)


class TestShopifyWrites:
    """Tests for Shopify create() and update_inventory()."""

    def test_user_errors_raise(self):
        connector, _ = shopify_connector([FakeResponse({"data": {"customerCreate": {
            "customer": None,
            "userErrors": [{"field": ["email"], "message": "Email has already been taken"}],
        }}})])

        with pytest.raises(DestinationWriteError) as exc_info:
            connector.create(EntityType.CUSTOMER, {"email": "a@example.com"})
        assert "email: Email has already been taken" in str(exc_info.value)

    def test_product_create_attaches_location(self):
        connector, session = shopify_connector([
            FakeResponse({"data": {"locations": page([{"id": "gid://shopify/Location/1"}])}}),
            FakeResponse({"data": {"productCreate": {"product": {"id": "gid://shopify/Product/9"}, "userErrors": []}}}),
        ])
        payload = {"title": "Hat", "variants": [{"price": "5", "inventoryQuantities": [{"availableQuantity": 2}]}]}

        assert connector.create(EntityType.PRODUCT, payload) == {"id": "gid://shopify/Product/9"}

        sent = session.calls[1][2]["json"]["variables"]["input"]
        assert sent["variants"][0]["inventoryQuantities"] == [
            {"availableQuantity": 2, "locationId": "gid://shopify/Location/1"}
        ]

    def test_discount_mutation_chosen_by_payload_key(self):
        connector, session = shopify_connector([FakeResponse({"data": {"discountCodeFreeShippingCreate": {
            "codeDiscountNode": {"id": "gid://shopify/DiscountCodeNode/1"},
            "userErrors": [],
        }}})])

        result = connector.create(EntityType.COUPON, {"freeShippingCodeDiscount": {"code": "SHIP"}})

        assert result["id"] == "gid://shopify/DiscountCodeNode/1"
        assert "discountCodeFreeShippingCreate" in session.calls[0][2]["json"]["query"]

    def test_update_inventory_applies_delta(self):
        connector, session = shopify_connector([
            FakeResponse({"data": {"productVariant": {"inventoryItem": {
                "id": "gid://shopify/InventoryItem/1",
                "inventoryLevels": page([{
                    "location": {"id": "gid://shopify/Location/1"},
                    "quantities": [{"name": "available", "quantity": 4}],
                }]),
            }}}}),
            FakeResponse({"data": {"inventoryAdjustQuantities": {
                "inventoryAdjustmentGroup": {"reason": "correction"},
                "userErrors": [],
            }}}),
        ])

        connector.update_inventory("gid://shopify/Product/1", 10, variant_id="gid://shopify/ProductVariant/1")

        changes = session.calls[1][2]["json"]["variables"]["input"]["changes"]
        assert changes == [{
            "inventoryItemId": "gid://shopify/InventoryItem/1",
            "locationId": "gid://shopify/Location/1",
            "delta": 6,
        }]

    def test_update_inventory_without_change(self):
        connector, session = shopify_connector([
            FakeResponse({"data": {"productVariant": {"inventoryItem": {
                "id": "gid://shopify/InventoryItem/1",
                "inventoryLevels": page([{
                    "location": {"id": "gid://shopify/Location/1"},
                    "quantities": [{"name": "available", "quantity": 10}],
                }]),
            }}}}),
        ])

        connector.update_inventory("gid://shopify/Product/1", 10, variant_id="gid://shopify/ProductVariant/1")
        assert len(session.calls) == 1

    def test_dry_run(self):
        connector, session = shopify_connector([], dry_run=True)

        assert connector.create(EntityType.PAGE, {"title": "About"})["id"].startswith("dry-run-")
        assert session.calls == []


class TestBuildConnectors:
    """Tests for build_connectors()."""

    def test_only_configured_platforms(self):
        config = AppConfig.from_env({"SHOPIFY_STORE_DOMAIN": "example.myshopify.com", "SHOPIFY_ACCESS_TOKEN": "t"})
        connectors = build_connectors(config)

        assert list(connectors) == [Platform.SHOPIFY]
        assert connectors[Platform.SHOPIFY].api_url.startswith("https://example.myshopify.com/")
