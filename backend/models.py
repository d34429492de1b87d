"""
Pydantic models for request validation.

Status fields are plain strings on the wire. They are parsed by the order
status policy so that an unknown token yields an `invalidstatusvalue` error
instead of a generic 422.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional

from domain.constants import BULK_STATUS_MAX_IDS


class APIModel(BaseModel):
    """Shared base — allows construction by Python name or alias."""
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


# ── Checkout ────────────────────────────────────────────────────────

class CartItem(APIModel):
    product_id: int = Field(..., gt=0, alias="productId")
    quantity: int = Field(1, ge=1, le=100)


class OrderCreateRequest(APIModel):
    items: List[CartItem] = Field(..., min_length=1)
    customer_name: Optional[str] = Field(default=None, alias="customerName", max_length=191)
    customer_email: Optional[str] = Field(default=None, alias="customerEmail", max_length=191)


# ── Status lifecycle ────────────────────────────────────────────────

class StatusUpdateRequest(APIModel):
    status: str = Field(..., description="One of: pending, processing, shipped, delivered, cancelled")


class CancelRequest(APIModel):
    reason: Optional[str] = Field(default=None, max_length=2000)


class BulkStatusUpdateRequest(APIModel):
    ids: List[int] = Field(..., min_length=1, max_length=BULK_STATUS_MAX_IDS)
    status: str


# ── Admin order fields ──────────────────────────────────────────────

class OrderUpdateRequest(APIModel):
    tracking_number: Optional[str] = Field(default=None, alias="trackingNumber", max_length=191)
    admin_note: Optional[str] = Field(default=None, alias="adminNote")


class AssignRequest(APIModel):
    assigned_to: int = Field(..., gt=0, alias="assignedTo")


# ── Catalog ─────────────────────────────────────────────────────────

class ProductCreateRequest(APIModel):
    slug: str = Field(..., min_length=2, max_length=100)
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    price: float = Field(..., gt=0)
    stock_quantity: Optional[int] = Field(default=None, alias="stockQuantity", ge=0)
    active: bool = True
