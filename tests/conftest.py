"""
Shared pytest fixtures for the StoreBridge test suite.

Provides native sample records in each platform's API shape and an
in-memory connector that stands in for both stores.
"""

import copy
from typing import Any, Dict, List, Optional

import pytest

from storebridge.connectors.base import DestinationConnector, SourceConnector
from storebridge.errors import ConnectorError, DestinationWriteError
from storebridge.models.canonical import EntityType, Platform


# ============================================================================
# Native WooCommerce records
# ============================================================================

WC_SIMPLE_PRODUCT = {
    "id": 101,
    "name": "Blue Widget",
    "slug": "blue-widget",
    "type": "simple",
    "status": "publish",
    "description": "<p>A very blue widget.</p>",
    "sku": "BW-1",
    "price": "19.99",
    "regular_price": "24.99",
    "sale_price": "19.99",
    "stock_quantity": 10,
    "stock_status": "instock",
    "weight": "1.5",
    "categories": [{"id": 7, "name": "Widgets"}],
    "tags": [{"id": 3, "name": "blue"}],
    "images": [{"src": "https://shop.example/wp-content/uploads/widget.jpg", "alt": ""}],
    "meta_data": [
        {"key": "_yoast_wpseo_title", "value": "Blue Widget | Shop"},
        {"key": "_yoast_wpseo_metadesc", "value": "Buy the blue widget"},
    ],
}

WC_VARIABLE_PRODUCT = {
    "id": 102,
    "name": "T-Shirt",
    "slug": "t-shirt",
    "type": "variable",
    "status": "draft",
    "sku": "TS",
    "price": "15.00",
    "regular_price": "15.00",
    "categories": [{"name": "Apparel"}],
    "variations": [
        {
            "id": 201,
            "sku": "TS-S",
            "price": "15.00",
            "regular_price": "15.00",
            "stock_quantity": 4,
            "attributes": [{"name": "Size", "option": "S"}],
        },
        {
            "id": 202,
            "sku": "TS-M",
            "price": "15.00",
            "regular_price": "15.00",
            "stock_quantity": 6,
            "attributes": [{"name": "Size", "option": "M"}],
        },
    ],
}

WC_CUSTOMER = {
    "id": 11,
    "email": "ada@example.com",
    "first_name": "Ada",
    "last_name": "Lovelace",
    "orders_count": 3,
    "total_spent": "120.00",
    "billing": {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "address_1": "1 Analytical Way",
        "city": "London",
        "postcode": "N1 1AA",
        "country": "GB",
        "email": "ada@example.com",
        "phone": "+44 20 0000 0000",
    },
    "shipping": {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "address_1": "2 Engine Street",
        "city": "London",
        "postcode": "N1 2BB",
        "country": "GB",
    },
    "meta_data": [{"key": "customer_note", "value": "Prefers email"}],
}

WC_ORDER = {
    "id": 4821,
    "number": "4821",
    "status": "completed",
    "total": "45.50",
    "subtotal": "40.00",
    "total_tax": "3.00",
    "shipping_total": "2.50",
    "date_created": "2023-05-01T10:00:00",
    "customer_note": "Leave at the door",
    "billing": {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "address_1": "1 Analytical Way",
        "city": "London",
        "postcode": "N1 1AA",
        "country": "GB",
        "email": "ada@example.com",
    },
    "shipping": {},
    "line_items": [
        {"product_id": 101, "variation_id": 0, "name": "Blue Widget", "quantity": 2, "price": "20.00", "sku": "BW-1"},
    ],
    "coupon_lines": [{"code": "SPRING", "discount": "5.00"}],
}

WC_CATEGORY = {
    "id": 7,
    "name": "Widgets",
    "slug": "widgets",
    "description": "All widgets",
    "count": 12,
    "image": {"src": "https://shop.example/wp-content/uploads/widgets.jpg", "alt": "Widgets"},
}

WC_COUPON = {
    "id": 31,
    "code": "SPRING15",
    "discount_type": "percent",
    "amount": "15.00",
    "description": "Spring sale",
    "date_expires": "2024-06-30T23:59:59",
    "minimum_amount": "50.00",
    "maximum_amount": "0.00",
    "usage_limit": 100,
    "usage_limit_per_user": 1,
    "usage_count": 12,
    "individual_use": False,
    "free_shipping": False,
    "product_ids": [],
    "excluded_product_ids": [],
    "product_categories": [],
    "excluded_product_categories": [],
}

WC_REVIEW = {
    "id": 51,
    "product_id": 101,
    "review": "Works great",
    "reviewer": "Ada",
    "reviewer_email": "ada@example.com",
    "rating": 5,
    "verified": True,
    "status": "approved",
    "date_created": "2023-06-01T09:00:00",
}

WC_PAGE = {
    "id": 61,
    "slug": "about",
    "status": "publish",
    "title": {"rendered": "About Us"},
    "content": {"rendered": "<p>We make widgets.</p>"},
    "date": "2023-01-01T00:00:00",
    "modified": "2023-02-01T00:00:00",
}

WC_POST = {
    "id": 71,
    "slug": "launch",
    "status": "publish",
    "title": {"rendered": "We launched"},
    "content": {"rendered": "<p>Big news.</p>"},
    "excerpt": {"rendered": "Big news"},
    "date": "2023-03-01T08:00:00",
    "modified": "2023-03-02T08:00:00",
    "_embedded": {
        "wp:term": [[{"name": "News"}], [{"name": "launch"}, {"name": "widgets"}]],
        "author": [{"name": "Grace"}],
        "wp:featuredmedia": [{"source_url": "https://shop.example/wp-content/uploads/launch.jpg", "alt_text": "Launch"}],
    },
}


# ============================================================================
# Native Shopify records
# ============================================================================

SHOPIFY_PRODUCT = {
    "id": "gid://shopify/Product/9001",
    "title": "Red Widget",
    "handle": "red-widget",
    "status": "ACTIVE",
    "descriptionHtml": "<p>A very red widget.</p>",
    "productType": "Widgets",
    "tags": ["red", "sale"],
    "options": [{"name": "Size"}],
    "variants": {"edges": [
        {"node": {
            "id": "gid://shopify/ProductVariant/1",
            "sku": "RW-S",
            "price": "9.50",
            "compareAtPrice": "12.00",
            "inventoryQuantity": 3,
            "selectedOptions": [{"name": "Size", "value": "S"}],
        }},
        {"node": {
            "id": "gid://shopify/ProductVariant/2",
            "sku": "RW-L",
            "price": "9.50",
            "compareAtPrice": None,
            "inventoryQuantity": 0,
            "selectedOptions": [{"name": "Size", "value": "L"}],
        }},
    ]},
    "images": {"edges": [{"node": {"url": "https://cdn.shopify.com/red.jpg", "altText": "Red"}}]},
    "metafields": {"edges": [
        {"node": {"namespace": "custom", "key": "material", "value": "steel", "type": "single_line_text_field"}},
    ]},
    "seo": {"title": "Red Widget", "description": "Buy red"},
}

SHOPIFY_CUSTOMER = {
    "id": "gid://shopify/Customer/77",
    "email": "grace@example.com",
    "firstName": "Grace",
    "lastName": "Hopper",
    "phone": "+1 555 0100",
    "tags": ["vip"],
    "note": "Navy",
    "numberOfOrders": "2",
    "amountSpent": {"amount": "80.00", "currencyCode": "USD"},
    "defaultAddress": {"id": "gid://shopify/MailingAddress/2"},
    "addresses": [
        {"id": "gid://shopify/MailingAddress/1", "address1": "1 Main St", "city": "Arlington", "zip": "22201", "country": "US"},
        {"id": "gid://shopify/MailingAddress/2", "address1": "2 Pier Rd", "city": "Norfolk", "zip": "23501", "country": "US"},
        {"id": "gid://shopify/MailingAddress/3", "address1": "3 Fleet Ave", "city": "San Diego", "zip": "92101", "country": "US"},
    ],
}

SHOPIFY_ORDER = {
    "id": "gid://shopify/Order/5001",
    "name": "#1001",
    "email": "grace@example.com",
    "createdAt": "2023-07-01T12:00:00Z",
    "displayFinancialStatus": "PAID",
    "displayFulfillmentStatus": "FULFILLED",
    "totalPriceSet": {"shopMoney": {"amount": "30.00", "currencyCode": "USD"}},
    "subtotalPriceSet": {"shopMoney": {"amount": "25.00", "currencyCode": "USD"}},
    "totalTaxSet": {"shopMoney": {"amount": "2.00", "currencyCode": "USD"}},
    "totalShippingPriceSet": {"shopMoney": {"amount": "3.00", "currencyCode": "USD"}},
    "tags": ["online"],
    "lineItems": {"edges": [{"node": {
        "title": "Red Widget",
        "quantity": 2,
        "sku": "RW-S",
        "originalUnitPriceSet": {"shopMoney": {"amount": "12.50", "currencyCode": "USD"}},
        "variant": {"id": "gid://shopify/ProductVariant/1", "product": {"id": "gid://shopify/Product/9001"}},
    }}]},
    "discountApplications": {"edges": [
        {"node": {"code": "TENOFF", "value": {"percentage": 10.0}}},
    ]},
}

SHOPIFY_DRAFT_ORDER = {
    "id": "gid://shopify/DraftOrder/8001",
    "name": "#D1",
    "email": "ada@example.com",
    "note2": "WooCommerce Order #4821\nOriginal Date: 2023-05-01T10:00:00\nOriginal Status: completed",
    "totalPrice": "45.50",
    "lineItems": {"edges": []},
    "isDraft": True,
}

SHOPIFY_COLLECTION = {
    "id": "gid://shopify/Collection/300",
    "title": "Widgets",
    "handle": "widgets",
    "descriptionHtml": "All widgets",
    "productsCount": {"count": 4},
    "products": {"edges": [{"node": {"id": "gid://shopify/Product/9001"}}]},
}

SHOPIFY_DISCOUNT = {
    "id": "gid://shopify/DiscountCodeNode/400",
    "codeDiscount": {
        "__typename": "DiscountCodeBasic",
        "title": "Summer",
        "codes": {"edges": [{"node": {"code": "SUMMER15"}}]},
        "endsAt": "2024-08-31T23:59:59Z",
        "usageLimit": 50,
        "appliesOncePerCustomer": True,
        "asyncUsageCount": 7,
        "customerGets": {"value": {"percentage": 0.15}, "items": {"allItems": True}},
        "minimumRequirement": {"greaterThanOrEqualToSubtotal": {"amount": "40.00"}},
    },
}

SHOPIFY_PAGE = {
    "id": "gid://shopify/Page/500",
    "title": "Contact",
    "handle": "contact",
    "body": "<p>Write to us. [contact-form-7 id=\"12\"]</p>",
    "isPublished": True,
    "createdAt": "2023-01-01T00:00:00Z",
    "updatedAt": "2023-01-05T00:00:00Z",
}

SHOPIFY_ARTICLE = {
    "id": "gid://shopify/Article/600",
    "title": "Hello",
    "handle": "hello",
    "body": "<p>First post</p>",
    "summary": "First",
    "tags": ["intro"],
    "author": {"name": "Grace"},
    "isPublished": True,
    "publishedAt": "2023-04-01T00:00:00Z",
    "image": {"url": "https://cdn.shopify.com/hello.jpg", "altText": "Hello"},
}


@pytest.fixture
def wc_product():
    return copy.deepcopy(WC_SIMPLE_PRODUCT)


@pytest.fixture
def wc_variable_product():
    return copy.deepcopy(WC_VARIABLE_PRODUCT)


@pytest.fixture
def wc_customer():
    return copy.deepcopy(WC_CUSTOMER)


@pytest.fixture
def wc_order():
    return copy.deepcopy(WC_ORDER)


@pytest.fixture
def shopify_product():
    return copy.deepcopy(SHOPIFY_PRODUCT)


@pytest.fixture
def shopify_customer():
    return copy.deepcopy(SHOPIFY_CUSTOMER)


@pytest.fixture
def shopify_order():
    return copy.deepcopy(SHOPIFY_ORDER)


# ============================================================================
# In-memory connector
# ============================================================================


class FakeConnector(SourceConnector, DestinationConnector):
    """Connector backed by per-entity lists of native records."""

    def __init__(self, platform: Platform, records: Optional[Dict[EntityType, List[Dict[str, Any]]]] = None):
        self.platform = platform
        self.records = {EntityType(k): list(v) for k, v in (records or {}).items()}
        self.created: List[Dict[str, Any]] = []
        self.inventory_updates: List[Dict[str, Any]] = []
        self.fail_inventory_for: set = set()
        self.reject_creates = False

    def fetch_all(self, entity_type: EntityType) -> List[Dict[str, Any]]:
        return copy.deepcopy(self.records.get(EntityType(entity_type), []))

    def fetch_one(self, entity_type: EntityType, record_id: str) -> Dict[str, Any]:
        for record in self.records.get(EntityType(entity_type), []):
            if str(record.get("id")) == str(record_id):
                return copy.deepcopy(record)
        raise ConnectorError(f"{entity_type} {record_id} not found", status_code=404)

    def create(self, entity_type: EntityType, payload: Dict[str, Any]) -> Dict[str, str]:
        if self.reject_creates:
            raise DestinationWriteError("payload rejected")
        new_id = f"{self.platform.value}-{len(self.created) + 1}"
        self.created.append({"entity_type": EntityType(entity_type), "payload": payload, "id": new_id})
        return {"id": new_id}

    def update(self, entity_type: EntityType, record_id: str, payload: Dict[str, Any]) -> None:
        pass

    def update_inventory(self, product_id: str, quantity: int, variant_id: Optional[str] = None) -> None:
        if product_id in self.fail_inventory_for:
            raise DestinationWriteError(f"cannot update {product_id}")
        self.inventory_updates.append({"product_id": product_id, "quantity": quantity, "variant_id": variant_id})


@pytest.fixture
def wc_connector():
    return FakeConnector(Platform.WOOCOMMERCE)


@pytest.fixture
def shopify_connector():
    return FakeConnector(Platform.SHOPIFY)
