"""Shopify Admin GraphQL API connector."""

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

from .base import BaseConnector
from ..errors import ConnectorError, DestinationWriteError
from ..models.canonical import EntityType, Platform
from ..models.config import ShopifyConfig
from ..normalizers.base import nodes

logger = logging.getLogger(__name__)


MONEY = "shopMoney { amount currencyCode }"

ADDRESS_FIELDS = """
    id firstName lastName company address1 address2 city province provinceCode
    country countryCode zip phone
"""

PRODUCT_FIELDS = """
    id title descriptionHtml handle status tags vendor productType createdAt updatedAt totalInventory
    options { name }
    featuredImage { url altText }
    images(first: 50) { edges { node { url altText } } }
    variants(first: 100) {
        edges {
            node {
                id title sku barcode price compareAtPrice inventoryQuantity
                selectedOptions { name value }
            }
        }
    }
    seo { title description }
"""

CUSTOMER_FIELDS = f"""
    id email firstName lastName phone tags note numberOfOrders
    amountSpent {{ amount currencyCode }}
    defaultAddress {{ id }}
    addresses {{ {ADDRESS_FIELDS} }}
"""

ORDER_FIELDS = f"""
    id name email createdAt note tags displayFinancialStatus displayFulfillmentStatus
    totalPriceSet {{ {MONEY} }}
    subtotalPriceSet {{ {MONEY} }}
    totalTaxSet {{ {MONEY} }}
    totalShippingPriceSet {{ {MONEY} }}
    shippingAddress {{ {ADDRESS_FIELDS} }}
    billingAddress {{ {ADDRESS_FIELDS} }}
    customAttributes {{ key value }}
    discountApplications(first: 20) {{
        edges {{
            node {{
                ... on DiscountCodeApplication {{ code }}
                value {{
                    ... on MoneyV2 {{ amount }}
                    ... on PricingPercentageValue {{ percentage }}
                }}
            }}
        }}
    }}
    lineItems(first: 100) {{
        edges {{
            node {{
                title quantity sku
                originalUnitPriceSet {{ {MONEY} }}
                variant {{ id sku product {{ id }} }}
            }}
        }}
    }}
"""

DRAFT_ORDER_FIELDS = f"""
    id name email createdAt note2 tags
    totalPriceSet {{ {MONEY} }}
    subtotalPriceSet {{ {MONEY} }}
    shippingAddress {{ {ADDRESS_FIELDS} }}
    billingAddress {{ {ADDRESS_FIELDS} }}
    customAttributes {{ key value }}
    lineItems(first: 100) {{
        edges {{
            node {{
                title quantity sku
                originalUnitPriceSet {{ {MONEY} }}
                variant {{ id sku product {{ id }} }}
            }}
        }}
    }}
"""

COLLECTION_FIELDS = """
    id title descriptionHtml handle
    image { url altText }
    productsCount { count }
    seo { title description }
"""

DISCOUNT_CODES = "codes(first: 1) { edges { node { code } } }"

DISCOUNT_FIELDS = f"""
    id
    codeDiscount {{
        __typename
        ... on DiscountCodeBasic {{
            title startsAt endsAt status usageLimit appliesOncePerCustomer asyncUsageCount
            {DISCOUNT_CODES}
            customerGets {{
                value {{
                    ... on DiscountPercentage {{ percentage }}
                    ... on DiscountAmount {{ amount {{ amount }} appliesOnEachItem }}
                }}
                items {{
                    ... on AllDiscountItems {{ allItems }}
                    ... on DiscountProducts {{ products(first: 100) {{ edges {{ node {{ id }} }} }} }}
                    ... on DiscountCollections {{ collections(first: 100) {{ edges {{ node {{ id }} }} }} }}
                }}
            }}
            minimumRequirement {{
                ... on DiscountMinimumSubtotal {{ greaterThanOrEqualToSubtotal {{ amount }} }}
            }}
        }}
        ... on DiscountCodeFreeShipping {{
            title startsAt endsAt status usageLimit appliesOncePerCustomer asyncUsageCount
            {DISCOUNT_CODES}
            minimumRequirement {{
                ... on DiscountMinimumSubtotal {{ greaterThanOrEqualToSubtotal {{ amount }} }}
            }}
        }}
    }}
"""

PAGE_FIELDS = "id title body bodySummary handle createdAt updatedAt isPublished"

ARTICLE_FIELDS = """
    id title handle body summary publishedAt createdAt updatedAt tags isPublished
    image { url altText }
    author { name }
"""

# entity type -> (connection field, node selection, GraphQL type for node lookups)
CONNECTIONS: Dict[EntityType, Tuple[str, str, str]] = {
    EntityType.PRODUCT: ("products", PRODUCT_FIELDS, "Product"),
    EntityType.CUSTOMER: ("customers", CUSTOMER_FIELDS, "Customer"),
    EntityType.ORDER: ("orders", ORDER_FIELDS, "Order"),
    EntityType.COLLECTION: ("collections", COLLECTION_FIELDS, "Collection"),
    EntityType.COUPON: ("codeDiscountNodes", DISCOUNT_FIELDS, "DiscountCodeNode"),
    EntityType.PAGE: ("pages", PAGE_FIELDS, "Page"),
    EntityType.BLOG_POST: ("articles", ARTICLE_FIELDS, "Article"),
}

# entity type -> (mutation, input variable, GraphQL input type, result field)
CREATE_MUTATIONS: Dict[EntityType, Tuple[str, str, str, str]] = {
    EntityType.PRODUCT: ("productCreate", "input", "ProductInput!", "product"),
    EntityType.CUSTOMER: ("customerCreate", "input", "CustomerInput!", "customer"),
    EntityType.ORDER: ("draftOrderCreate", "input", "DraftOrderInput!", "draftOrder"),
    EntityType.COLLECTION: ("collectionCreate", "input", "CollectionInput!", "collection"),
    EntityType.PAGE: ("pageCreate", "page", "PageCreateInput!", "page"),
}

UPDATE_MUTATIONS: Dict[EntityType, Tuple[str, str, str, str]] = {
    EntityType.PRODUCT: ("productUpdate", "input", "ProductInput!", "product"),
    EntityType.CUSTOMER: ("customerUpdate", "input", "CustomerInput!", "customer"),
    EntityType.COLLECTION: ("collectionUpdate", "input", "CollectionInput!", "collection"),
}

DISCOUNT_MUTATIONS = {
    "basicCodeDiscount": ("discountCodeBasicCreate", "DiscountCodeBasicInput!"),
    "freeShippingCodeDiscount": ("discountCodeFreeShippingCreate", "DiscountCodeFreeShippingInput!"),
}


class ShopifyConnector(BaseConnector):
    """
    Connector for a Shopify store's Admin GraphQL API.

    Supports:
    - Cursor pagination over GraphQL connections
    - Draft orders listed alongside orders
    - Create mutations for every supported entity type
    - Inventory corrections through inventoryAdjustQuantities
    """

    platform = Platform.SHOPIFY

    ENDPOINTS = {entity_type: connection for entity_type, (connection, _, _) in CONNECTIONS.items()}

    # GraphQL reads are POSTs too
    RETRY_METHODS = frozenset(["POST"])

    def __init__(
        self,
        config: ShopifyConfig,
        dry_run: bool = False,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the Shopify connector.

        Args:
            config: Store domain, access token and API version
            dry_run: If True, mutations are logged and never sent
            session: Custom requests session
        """
        super().__init__(
            limits=config.limits,
            retry_config=config.retry_config,
            timeout=config.timeout,
            dry_run=dry_run,
            session=session,
        )
        self.config = config
        domain = config.store_domain.replace("https://", "").replace("http://", "").rstrip("/")
        self.api_url = f"https://{domain}/admin/api/{config.api_version}/graphql.json"
        self._session.headers["X-Shopify-Access-Token"] = config.access_token
        self._session.headers["Content-Type"] = "application/json"
        self._location_id: Optional[str] = None
        self._blog_id: Optional[str] = None

    def graphql(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Run a GraphQL document and return its data.

        Raises:
            ConnectorError: on HTTP failures or top-level GraphQL errors
        """
        try:
            response = self._session.post(
                self.api_url,
                json={"query": query, "variables": variables or {}},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise ConnectorError(f"Shopify request failed: {e}")

        if response.status_code >= 400:
            raise ConnectorError(
                f"Shopify API error {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        result = response.json()
        if result.get("errors"):
            raise ConnectorError(f"GraphQL errors: {json.dumps(result['errors'])}")
        return result.get("data") or {}

    def test_connection(self) -> bool:
        try:
            return bool(self.graphql("query { shop { id name } }").get("shop"))
        except ConnectorError as e:
            logger.error(f"Shopify connection test failed: {e}")
            return False

    # Reads

    def fetch_all(self, entity_type: EntityType) -> List[Dict[str, Any]]:
        """
        Fetch every record of an entity type by following page cursors.

        Orders include draft orders, flagged with isDraft, so orders
        created by an earlier migration are recognized.
        """
        entity_type = self._require(entity_type)
        connection, fields, _ = CONNECTIONS[entity_type]

        if entity_type == EntityType.BLOG_POST:
            records = self._paginate(
                f"query($first: Int!, $after: String, $blogId: ID!) {{ blog(id: $blogId) {{ "
                f"articles(first: $first, after: $after) {{ edges {{ node {{ {fields} }} }} "
                f"pageInfo {{ hasNextPage endCursor }} }} }} }}",
                ("blog", "articles"),
                {"blogId": self._default_blog_id()},
            )
        else:
            records = self._paginate(
                f"query($first: Int!, $after: String) {{ {connection}(first: $first, after: $after) {{ "
                f"edges {{ node {{ {fields} }} }} pageInfo {{ hasNextPage endCursor }} }} }}",
                (connection,),
            )

        if entity_type == EntityType.ORDER and len(records) < self.limits.max_records:
            drafts = self._paginate(
                f"query($first: Int!, $after: String) {{ draftOrders(first: $first, after: $after) {{ "
                f"edges {{ node {{ {DRAFT_ORDER_FIELDS} }} }} pageInfo {{ hasNextPage endCursor }} }} }}",
                ("draftOrders",),
                limit=self.limits.max_records - len(records),
            )
            records.extend(dict(d, isDraft=True) for d in drafts)

        logger.info(f"Fetched {len(records)} Shopify {entity_type.value} records")
        return records

    def _paginate(
        self,
        query: str,
        path: Tuple[str, ...],
        variables: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        limit = self.limits.max_records if limit is None else limit
        records: List[Dict[str, Any]] = []
        cursor = None
        pages = 0

        while True:
            data = self.graphql(query, dict(variables or {}, first=self.limits.page_size, after=cursor))
            for key in path:
                data = data.get(key) or {}
            records.extend(nodes(data))
            pages += 1

            page_info = data.get("pageInfo") or {}
            if not page_info.get("hasNextPage"):
                break
            if len(records) >= limit:
                logger.warning(f"shopify: stopped at the {limit} record ceiling")
                break
            if self._reached_limit(records, pages):
                break
            cursor = page_info.get("endCursor")

        return records[:limit]

    def fetch_one(self, entity_type: EntityType, record_id: str) -> Dict[str, Any]:
        entity_type = self._require(entity_type)
        _, fields, type_name = CONNECTIONS[entity_type]
        if entity_type == EntityType.ORDER and "/DraftOrder/" in record_id:
            fields, type_name = DRAFT_ORDER_FIELDS, "DraftOrder"

        data = self.graphql(
            f"query($id: ID!) {{ node(id: $id) {{ ... on {type_name} {{ {fields} }} }} }}",
            {"id": record_id},
        )
        record = data.get("node")
        if not record:
            raise ConnectorError(f"Shopify {entity_type.value} {record_id} not found", status_code=404)
        return record

    # Writes

    def create(self, entity_type: EntityType, payload: Dict[str, Any]) -> Dict[str, str]:
        """
        Create a record through the entity's create mutation.

        Raises:
            DestinationWriteError: if the mutation reports userErrors
        """
        entity_type = self._require(entity_type)
        if self.dry_run:
            return self._dry_run_id(entity_type)

        if entity_type == EntityType.COUPON:
            return self._create_discount(payload)
        if entity_type == EntityType.BLOG_POST:
            result = self._mutate(
                "articleCreate",
                {"blogId": ("ID!", self._default_blog_id()), "article": ("ArticleCreateInput!", payload)},
                "article",
            )
            return {"id": result["id"]}

        if entity_type == EntityType.PRODUCT:
            payload = self._with_location(payload)

        mutation, variable, input_type, result_field = CREATE_MUTATIONS[entity_type]
        result = self._mutate(mutation, {variable: (input_type, payload)}, result_field)
        logger.info(f"Created Shopify {entity_type.value} {result['id']}")
        return {"id": result["id"]}

    def update(self, entity_type: EntityType, record_id: str, payload: Dict[str, Any]) -> None:
        entity_type = self._require(entity_type)
        if entity_type not in UPDATE_MUTATIONS:
            raise DestinationWriteError(f"Updating Shopify {entity_type.value} records is not supported")
        if self.dry_run:
            logger.info(f"[dry run] shopify: would update {entity_type.value} {record_id}")
            return
        mutation, variable, input_type, result_field = UPDATE_MUTATIONS[entity_type]
        self._mutate(mutation, {variable: (input_type, dict(payload, id=record_id))}, result_field)

    def update_inventory(self, product_id: str, quantity: int, variant_id: Optional[str] = None) -> None:
        """
        Set a variant's available quantity.

        Shopify only accepts adjustments, so the current level is read
        first and the delta applied with inventoryAdjustQuantities.
        """
        if not variant_id:
            data = self.graphql(
                "query($id: ID!) { product(id: $id) { variants(first: 1) { edges { node { id } } } } }",
                {"id": product_id},
            )
            variants = nodes((data.get("product") or {}).get("variants"))
            if not variants:
                raise DestinationWriteError(f"Shopify product {product_id} has no variants")
            variant_id = variants[0]["id"]

        data = self.graphql(
            """
            query($id: ID!) {
                productVariant(id: $id) {
                    inventoryItem {
                        id
                        inventoryLevels(first: 1) {
                            edges { node { location { id } quantities(names: ["available"]) { name quantity } } }
                        }
                    }
                }
            }
            """,
            {"id": variant_id},
        )
        item = (data.get("productVariant") or {}).get("inventoryItem")
        if not item:
            raise DestinationWriteError(f"No inventory item found for variant {variant_id}")
        levels = nodes(item.get("inventoryLevels"))
        if not levels:
            raise DestinationWriteError(f"No inventory level found for variant {variant_id}")

        level = levels[0]
        current = next((q["quantity"] for q in level.get("quantities") or [] if q.get("name") == "available"), 0)
        delta = quantity - current
        if delta == 0:
            logger.debug(f"Variant {variant_id} already has {quantity} available")
            return
        if self.dry_run:
            logger.info(f"[dry run] shopify: would adjust variant {variant_id} by {delta}")
            return

        self._mutate(
            "inventoryAdjustQuantities",
            {"input": ("InventoryAdjustQuantitiesInput!", {
                "reason": "correction",
                "name": "available",
                "changes": [{
                    "inventoryItemId": item["id"],
                    "locationId": level["location"]["id"],
                    "delta": delta,
                }],
            })},
            "inventoryAdjustmentGroup",
            selection="reason",
        )
        logger.info(f"Adjusted Shopify variant {variant_id} by {delta} to {quantity}")

    def _create_discount(self, payload: Dict[str, Any]) -> Dict[str, str]:
        for variable, (mutation, input_type) in DISCOUNT_MUTATIONS.items():
            if variable in payload:
                result = self._mutate(mutation, {variable: (input_type, payload[variable])}, "codeDiscountNode")
                logger.info(f"Created Shopify discount {result['id']}")
                return {"id": result["id"]}
        raise DestinationWriteError("Discount payload has neither basicCodeDiscount nor freeShippingCodeDiscount")

    def _mutate(
        self,
        mutation: str,
        variables: Dict[str, Tuple[str, Any]],
        result_field: str,
        selection: str = "id"
    ) -> Dict[str, Any]:
        declarations = ", ".join(f"${name}: {type_}" for name, (type_, _) in variables.items())
        arguments = ", ".join(f"{name}: ${name}" for name in variables)
        document = (
            f"mutation({declarations}) {{ {mutation}({arguments}) {{ "
            f"{result_field} {{ {selection} }} userErrors {{ field message }} }} }}"
        )
        data = self.graphql(document, {name: value for name, (_, value) in variables.items()})

        result = data.get(mutation) or {}
        user_errors = result.get("userErrors") or []
        if user_errors:
            messages = "; ".join(
                f"{'.'.join(str(f) for f in e.get('field') or [])}: {e.get('message')}".lstrip(": ")
                for e in user_errors
            )
            raise DestinationWriteError(f"{mutation} failed: {messages}")
        if not result.get(result_field):
            raise DestinationWriteError(f"{mutation} returned no {result_field}")
        return result[result_field]

    def _with_location(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Attach the store's first location to every variant inventory quantity."""
        if not any(v.get("inventoryQuantities") for v in payload.get("variants") or []):
            return payload
        location_id = self._default_location_id()
        payload = dict(payload)
        payload["variants"] = [
            dict(v, inventoryQuantities=[
                dict(q, locationId=location_id) for q in v.get("inventoryQuantities") or []
            ])
            for v in payload["variants"]
        ]
        return payload

    def _default_location_id(self) -> str:
        if self._location_id is None:
            data = self.graphql("query { locations(first: 1) { edges { node { id } } } }")
            locations = nodes(data.get("locations"))
            if not locations:
                raise DestinationWriteError("No locations found in the Shopify store")
            self._location_id = locations[0]["id"]
        return self._location_id

    def _default_blog_id(self) -> str:
        if self._blog_id is None:
            data = self.graphql("query { blogs(first: 1) { edges { node { id } } } }")
            blogs = nodes(data.get("blogs"))
            if not blogs:
                raise ConnectorError("No blog found in the Shopify store; create one first")
            self._blog_id = blogs[0]["id"]
        return self._blog_id
