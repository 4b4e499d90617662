"""Pydantic models for API requests and responses."""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from enum import Enum


class PlatformEnum(str, Enum):
    WOOCOMMERCE = "woocommerce"
    SHOPIFY = "shopify"


class EntityTypeEnum(str, Enum):
    PRODUCT = "product"
    CUSTOMER = "customer"
    ORDER = "order"
    COLLECTION = "collection"
    COUPON = "coupon"
    REVIEW = "review"
    PAGE = "page"
    BLOG_POST = "blog_post"


# Request Models
class InventoryDifferenceModel(BaseModel):
    product_id: str
    name: str = ""
    source_quantity: int
    destination_quantity: int
    difference: int
    source_product_id: str = ""
    destination_product_id: str
    sku: Optional[str] = None
    variant_title: Optional[str] = None
    source_variant_id: Optional[str] = None
    destination_variant_id: Optional[str] = None
    source_status: str = "instock"
    destination_status: str = "instock"


class InventorySyncRequest(BaseModel):
    source_of_truth: PlatformEnum
    differences: List[InventoryDifferenceModel] = Field(..., min_length=1)


class MigrateItemRequest(BaseModel):
    item_id: str
    type: EntityTypeEnum
    source: PlatformEnum
    destination: PlatformEnum


class BulkMigrateRequest(BaseModel):
    item_ids: List[str] = Field(..., min_length=1)
    type: EntityTypeEnum
    source: PlatformEnum
    destination: PlatformEnum


# Response Models
class MigrateItemResponse(BaseModel):
    success: bool
    destination_id: Optional[str] = None


class InventorySyncResultResponse(BaseModel):
    product_id: str
    success: bool
    error: Optional[str] = None


class InventorySyncResponse(BaseModel):
    results: List[InventorySyncResultResponse]
    succeeded: int
    failed: int


class ItemResultResponse(BaseModel):
    source_id: str
    destination_id: Optional[str] = None
    status: str
    error: Optional[str] = None


class JobResponse(BaseModel):
    id: str
    type: str
    source: str
    destination: str
    items: List[str]
    status: str
    progress: int
    total: int
    results: List[ItemResultResponse] = Field(default_factory=list)
    created_at: str
    completed_at: Optional[str] = None
    error: Optional[str] = None


class JobListResponse(BaseModel):
    jobs: List[JobResponse]
    total: int


class PreviewResponse(BaseModel):
    source: Dict[str, Any]
    destination: Dict[str, Any]
    warnings: List[str] = Field(default_factory=list)
