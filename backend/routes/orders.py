"""
Order endpoints — checkout, admin order management and the status lifecycle.

Every status mutation goes through services.order_service, which consults
domain.order_status before writing. Rejections surface as distinct error
codes: `invalidstatusvalue` (400) for unknown tokens and `illegaltransition`
(409) for moves the lifecycle forbids.
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import Order, User
from deps import Pagination, pagination_params, require_admin, require_user
from domain import order_status
from domain.enums import UserRole
from domain.errors import PermissionDeniedError
from domain.responses import paginated_response, success_response
from models import (
    AssignRequest,
    BulkStatusUpdateRequest,
    CancelRequest,
    OrderCreateRequest,
    OrderUpdateRequest,
    StatusUpdateRequest,
)
from services import order_service
from utils.validators import request_locale

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders", tags=["orders"])


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_order(o: Order, locale: str) -> dict:
    return {
        "id": o.id,
        "user_id": o.user_id,
        "customer_name": o.customer_name,
        "customer_email": o.customer_email,
        "status": o.status,
        "status_label": order_status.label(o.status, locale),
        "is_cancellable": order_status.is_cancellable(o.status),
        "is_final": order_status.is_final(o.status),
        "total_price": o.total_price,
        "tracking_number": o.tracking_number,
        "admin_note": o.admin_note,
        "assigned_to": o.assigned_to,
        "cancel_reason": o.cancel_reason,
        "items": [
            {
                "id": it.id,
                "product_id": it.product_id,
                "name": it.name,
                "quantity": it.quantity,
                "unit_price": it.unit_price,
            }
            for it in o.items
        ],
        "status_changed_at": _iso(o.status_changed_at),
        "created_at": _iso(o.created_at),
        "updated_at": _iso(o.updated_at),
    }


def _ensure_owner_or_admin(order: Order, user: User) -> None:
    if user.role == UserRole.ADMIN.value:
        return
    if order.user_id != user.id:
        raise PermissionDeniedError("You do not have access to this order.")


# ── Static paths (declared before /{order_id}) ──────────────────────

@router.get("/statuses")
async def list_statuses(locale: str = Depends(request_locale)):
    """Canonical statuses with labels and UI flags, in lifecycle order."""
    return success_response(
        data=[
            {
                "status": s.value,
                "label": order_status.label(s, locale),
                "is_cancellable": order_status.is_cancellable(s),
                "is_final": order_status.is_final(s),
            }
            for s in order_status.all_statuses()
        ],
        meta={"locale": locale},
    )


@router.post("")
async def create_order(
    request: OrderCreateRequest,
    user: User = Depends(require_user),
    locale: str = Depends(request_locale),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.create_order(
        db,
        user_id=user.id,
        customer_name=request.customer_name or user.name,
        customer_email=request.customer_email or user.email,
        items=[{"product_id": i.product_id, "quantity": i.quantity} for i in request.items],
    )
    await db.commit()
    order = await order_service.get_order(db, order_id=order.id)
    return success_response(data=serialize_order(order, locale))


@router.get("")
async def list_orders(
    q: Optional[str] = Query(None, max_length=191),
    status: Optional[str] = Query(None),
    assigned_to: Optional[int] = Query(None, gt=0),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    page: Pagination = Depends(pagination_params),
    locale: str = Depends(request_locale),
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    orders, total = await order_service.list_orders(
        db,
        q=q,
        status=status,
        assigned_to=assigned_to,
        date_from=date_from,
        date_to=date_to,
        limit=page["limit"],
        offset=page["offset"],
    )
    return paginated_response(
        items=[serialize_order(o, locale) for o in orders],
        limit=page["limit"],
        offset=page["offset"],
        total=total,
        extra_meta={"locale": locale},
    )


@router.get("/mine")
async def list_my_orders(
    page: Pagination = Depends(pagination_params),
    user: User = Depends(require_user),
    locale: str = Depends(request_locale),
    db: AsyncSession = Depends(get_db),
):
    orders, total = await order_service.list_user_orders(
        db, user_id=user.id, limit=page["limit"], offset=page["offset"]
    )
    return paginated_response(
        items=[serialize_order(o, locale) for o in orders],
        limit=page["limit"],
        offset=page["offset"],
        total=total,
        extra_meta={"locale": locale},
    )


@router.get("/statistics")
async def order_statistics(
    locale: str = Depends(request_locale),
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    stats = await order_service.order_statistics(db)
    for row in stats["by_status"]:
        row["label"] = order_status.label(row["status"], locale)
    return success_response(data=stats, meta={"locale": locale})


@router.get("/status/{status}")
async def list_orders_by_status(
    status: str,
    locale: str = Depends(request_locale),
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    parsed, orders = await order_service.list_orders_by_status(db, status=status)
    return success_response(
        data=[serialize_order(o, locale) for o in orders],
        meta={
            "status": parsed.value,
            "status_label": order_status.label(parsed, locale),
            "count": len(orders),
            "locale": locale,
        },
    )


@router.post("/bulk-status")
async def bulk_update_status(
    request: BulkStatusUpdateRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await order_service.bulk_update_status(db, order_ids=request.ids, requested=request.status)
    await db.commit()
    logger.info(f"Admin {admin.id} bulk-updated {len(result['updated'])} order(s) to {result['status']}")
    return success_response(data=result)


# ── Single order ────────────────────────────────────────────────────

@router.get("/{order_id}")
async def get_order(
    order_id: int,
    user: User = Depends(require_user),
    locale: str = Depends(request_locale),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.get_order(db, order_id=order_id)
    _ensure_owner_or_admin(order, user)
    return success_response(data=serialize_order(order, locale))


@router.patch("/{order_id}")
async def update_order(
    order_id: int,
    request: OrderUpdateRequest,
    locale: str = Depends(request_locale),
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.update_order_details(
        db,
        order_id=order_id,
        tracking_number=request.tracking_number,
        admin_note=request.admin_note,
    )
    await db.commit()
    return success_response(data=serialize_order(order, locale))


@router.patch("/{order_id}/status")
async def update_order_status(
    order_id: int,
    request: StatusUpdateRequest,
    locale: str = Depends(request_locale),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    order, previous = await order_service.update_status(
        db, order_id=order_id, requested=request.status, locale=locale
    )
    await db.commit()
    logger.info(f"Admin {admin.id} moved order {order_id} from {previous} to {order.status}")
    return success_response(
        data=serialize_order(order, locale),
        meta={"previous_status": previous},
    )


@router.patch("/{order_id}/cancel")
async def cancel_order(
    order_id: int,
    request: Optional[CancelRequest] = None,
    user: User = Depends(require_user),
    locale: str = Depends(request_locale),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.get_order(db, order_id=order_id)
    _ensure_owner_or_admin(order, user)

    order = await order_service.cancel_order(
        db,
        order_id=order_id,
        reason=request.reason if request else None,
        locale=locale,
    )
    await db.commit()
    return success_response(data=serialize_order(order, locale))


@router.patch("/{order_id}/assign")
async def assign_order(
    order_id: int,
    request: AssignRequest,
    locale: str = Depends(request_locale),
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.assign_order(db, order_id=order_id, admin_id=request.assigned_to)
    await db.commit()
    return success_response(data=serialize_order(order, locale))
