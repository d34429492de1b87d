"""
Order service — checkout, order queries and every status mutation.

Status changes always go through domain.order_status first and are then
written as a compare-and-swap on the status that was checked:

    UPDATE orders SET status = :new ... WHERE id = :id AND status = :checked

Zero affected rows means another request changed the order in between; the
caller gets ConflictError instead of silently overwriting that change.
"""
import logging
from collections import defaultdict
from datetime import date, datetime, time, timedelta

from sqlalchemy import String, cast, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Order, OrderItem, User
from domain import order_status
from domain.enums import OrderStatus, UserRole
from domain.errors import ConflictError, IllegalTransitionError, NotFoundError, ValidationError
from services import product_service

logger = logging.getLogger(__name__)


# ── Checkout ────────────────────────────────────────────────────────

async def create_order(
    db: AsyncSession,
    *,
    user_id: int,
    customer_name: str | None,
    customer_email: str | None,
    items: list[dict],
) -> Order:
    """
    Create a pending order from cart items.

    items: [{product_id:int, quantity:int}] — repeated products are merged.
    Names and prices are snapshotted onto the order items, and tracked stock
    is reserved in the same transaction.
    """
    if not items:
        raise ValidationError("Cart is empty", field="items")

    quantities: dict[int, int] = {}
    for i in items:
        pid = int(i["product_id"])
        qty = int(i.get("quantity", 1))
        if qty <= 0:
            raise ValidationError("Quantity must be positive", field="items")
        quantities[pid] = quantities.get(pid, 0) + qty

    products = await product_service.load_products(db, list(quantities))

    total = 0.0
    order_items: list[OrderItem] = []
    for pid, qty in quantities.items():
        p = products.get(pid)
        if not p or not p.active:
            raise ValidationError(f"Product {pid} is not available", field="items")
        if p.stock_quantity is not None and qty > p.stock_quantity:
            raise ValidationError(
                f"Insufficient stock for {p.slug}",
                field="items",
                details={"product_id": pid, "requested": qty, "available": p.stock_quantity},
            )
        total += p.price * qty
        order_items.append(
            OrderItem(product_id=pid, name=p.name, quantity=qty, unit_price=p.price)
        )

    await product_service.reserve_stock(db, quantities)

    now = datetime.utcnow()
    order = Order(
        user_id=user_id,
        customer_name=customer_name,
        customer_email=customer_email,
        status=OrderStatus.PENDING.value,
        total_price=round(total, 2),
        status_changed_at=now,
        created_at=now,
        updated_at=now,
        items=order_items,
    )
    db.add(order)
    await db.flush()

    logger.info(f"Order {order.id} created for user {user_id}: {len(order_items)} line(s), total {order.total_price}")
    return order


# ── Queries ─────────────────────────────────────────────────────────

async def get_order(db: AsyncSession, *, order_id: int) -> Order:
    """Load an order with its items, overwriting any stale copy in the session."""
    res = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .execution_options(populate_existing=True)
    )
    order = res.scalar_one_or_none()
    if not order:
        raise NotFoundError("Order", str(order_id))
    return order


def _order_filters(
    *,
    q: str | None,
    status: OrderStatus | None,
    assigned_to: int | None,
    date_from: date | None,
    date_to: date | None,
) -> list:
    filters = []
    if q:
        escaped = q.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = f"%{escaped}%"
        filters.append(
            or_(
                cast(Order.id, String).like(pattern, escape="\\"),
                Order.customer_name.ilike(pattern, escape="\\"),
                Order.customer_email.ilike(pattern, escape="\\"),
            )
        )
    if status is not None:
        filters.append(Order.status == status.value)
    if assigned_to is not None:
        filters.append(Order.assigned_to == assigned_to)
    if date_from is not None:
        filters.append(Order.created_at >= datetime.combine(date_from, time.min))
    if date_to is not None:
        # Inclusive of the whole `date_to` day
        filters.append(Order.created_at < datetime.combine(date_to + timedelta(days=1), time.min))
    return filters


async def list_orders(
    db: AsyncSession,
    *,
    q: str | None = None,
    status: str | None = None,
    assigned_to: int | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Order], int]:
    """
    Admin order listing, newest first.

    Returns:
        (orders on this page, total matching orders)

    Raises:
        InvalidStatusValueError if `status` is given and is not a canonical token
    """
    parsed = order_status.parse_status(status) if status is not None else None
    filters = _order_filters(
        q=q, status=parsed, assigned_to=assigned_to, date_from=date_from, date_to=date_to
    )

    total_res = await db.execute(select(func.count(Order.id)).where(*filters))
    total = total_res.scalar_one()

    res = await db.execute(
        select(Order)
        .where(*filters)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return res.scalars().all(), total


async def list_user_orders(
    db: AsyncSession,
    *,
    user_id: int,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Order], int]:
    total_res = await db.execute(select(func.count(Order.id)).where(Order.user_id == user_id))
    res = await db.execute(
        select(Order)
        .where(Order.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return res.scalars().all(), total_res.scalar_one()


async def list_orders_by_status(db: AsyncSession, *, status: str) -> tuple[OrderStatus, list[Order]]:
    parsed = order_status.parse_status(status)
    res = await db.execute(
        select(Order)
        .where(Order.status == parsed.value)
        .order_by(Order.created_at.desc(), Order.id.desc())
    )
    return parsed, res.scalars().all()


# ── Status mutations ────────────────────────────────────────────────

async def _compare_and_set_status(
    db: AsyncSession,
    *,
    order_id: int,
    expected: str,
    new_status: OrderStatus,
    extra_values: dict | None = None,
) -> bool:
    """Write `new_status` only if the row still holds `expected`. Returns whether it did."""
    now = datetime.utcnow()
    values = {"status": new_status.value, "status_changed_at": now, "updated_at": now}
    if extra_values:
        values.update(extra_values)

    res = await db.execute(
        update(Order)
        .where(Order.id == order_id, Order.status == expected)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


async def _restock_order(db: AsyncSession, order_id: int) -> None:
    """Give back the stock held by an order's items. Call only after winning the swap to cancelled."""
    res = await db.execute(
        select(OrderItem.product_id, OrderItem.quantity).where(OrderItem.order_id == order_id)
    )
    quantities: dict[int, int] = defaultdict(int)
    for product_id, quantity in res.all():
        quantities[product_id] += quantity
    if quantities:
        await product_service.restock(db, dict(quantities))


def _lost_race(order_id: int, expected: str) -> ConflictError:
    logger.warning(f"Order {order_id}: status changed concurrently (expected {expected})")
    return ConflictError(
        f"Order {order_id} was modified by another request; reload and retry",
        details={"order_id": order_id, "expected_status": expected},
    )


async def update_status(
    db: AsyncSession,
    *,
    order_id: int,
    requested: str,
    locale: str | None = None,
) -> tuple[Order, str]:
    """
    General status change (admin).

    Returns:
        (updated order, previous status)

    Raises:
        InvalidStatusValueError, IllegalTransitionError, NotFoundError, ConflictError
    """
    order = await get_order(db, order_id=order_id)
    previous = order.status

    try:
        target = order_status.ensure_transition(previous, requested, locale)
    except IllegalTransitionError:
        logger.warning(f"Order {order_id}: rejected status change {previous} -> {requested}")
        raise

    if not await _compare_and_set_status(db, order_id=order_id, expected=previous, new_status=target):
        raise _lost_race(order_id, previous)

    if target is OrderStatus.CANCELLED:
        await _restock_order(db, order_id)

    logger.info(f"Order {order_id} status updated: {previous} -> {target.value} (user {order.user_id})")
    return await get_order(db, order_id=order_id), previous


async def cancel_order(
    db: AsyncSession,
    *,
    order_id: int,
    reason: str | None = None,
    locale: str | None = None,
) -> Order:
    """
    Cancel a pending or processing order and give its stock back.

    Raises:
        IllegalTransitionError if the order is shipped, delivered or already cancelled
        NotFoundError, ConflictError
    """
    order = await get_order(db, order_id=order_id)
    previous = order.status

    try:
        target = order_status.cancel(previous, locale)
    except IllegalTransitionError:
        logger.warning(f"Order {order_id}: rejected cancellation from {previous}")
        raise

    if not await _compare_and_set_status(
        db,
        order_id=order_id,
        expected=previous,
        new_status=target,
        extra_values={"cancel_reason": reason},
    ):
        raise _lost_race(order_id, previous)

    # Only the request that won the swap gets here, so stock comes back once.
    await _restock_order(db, order_id)

    logger.info(f"Order {order_id} cancelled (was {previous}, user {order.user_id})")
    return await get_order(db, order_id=order_id)


async def bulk_update_status(
    db: AsyncSession,
    *,
    order_ids: list[int],
    requested: str,
) -> dict:
    """
    Apply one status to many orders, each one still subject to the policy.

    Returns:
        {"status", "updated": [ids], "skipped": [{"id", "status", "reason"}], "not_found": [ids]}

    Raises:
        InvalidStatusValueError if `requested` is not a canonical token
    """
    target = order_status.parse_status(requested)

    unique_ids = list(dict.fromkeys(int(i) for i in order_ids))
    res = await db.execute(select(Order.id, Order.status).where(Order.id.in_(unique_ids)))
    current = {row.id: row.status for row in res.all()}

    updated: list[int] = []
    skipped: list[dict] = []
    not_found: list[int] = []

    for oid in unique_ids:
        if oid not in current:
            not_found.append(oid)
            continue
        status = current[oid]
        if not order_status.can_transition(status, target):
            reason = "final" if order_status.is_final(status) else "unrecognized_status"
            skipped.append({"id": oid, "status": status, "reason": reason})
            continue
        if await _compare_and_set_status(db, order_id=oid, expected=status, new_status=target):
            updated.append(oid)
            if target is OrderStatus.CANCELLED:
                await _restock_order(db, oid)
        else:
            skipped.append({"id": oid, "status": status, "reason": "concurrent_update"})

    logger.info(
        f"Bulk status -> {target.value}: {len(updated)} updated, "
        f"{len(skipped)} skipped, {len(not_found)} not found"
    )
    return {
        "status": target.value,
        "updated": updated,
        "skipped": skipped,
        "not_found": not_found,
    }


# ── Admin fields ────────────────────────────────────────────────────

async def update_order_details(
    db: AsyncSession,
    *,
    order_id: int,
    tracking_number: str | None = None,
    admin_note: str | None = None,
) -> Order:
    """Update non-status admin fields. Only provided fields are updated."""
    order = await get_order(db, order_id=order_id)
    if tracking_number is not None:
        order.tracking_number = tracking_number
    if admin_note is not None:
        order.admin_note = admin_note
    order.updated_at = datetime.utcnow()
    await db.flush()
    return order


async def assign_order(db: AsyncSession, *, order_id: int, admin_id: int) -> Order:
    """Assign an order to an admin user."""
    res = await db.execute(select(User).where(User.id == admin_id))
    assignee = res.scalar_one_or_none()
    if not assignee:
        raise NotFoundError("User", str(admin_id))
    if assignee.role != UserRole.ADMIN.value:
        raise ValidationError("Orders can only be assigned to admin users", field="assigned_to")

    order = await get_order(db, order_id=order_id)
    order.assigned_to = admin_id
    order.updated_at = datetime.utcnow()
    await db.flush()
    logger.info(f"Order {order_id} assigned to admin {admin_id}")
    return order


# ── Statistics ──────────────────────────────────────────────────────

async def order_statistics(db: AsyncSession) -> dict:
    """
    Per-status counts and totals, plus overall order count and revenue.

    Revenue counts every order that is not cancelled. Rows holding a
    non-canonical status are included in total_orders but not in by_status.
    """
    res = await db.execute(
        select(
            Order.status,
            func.count(Order.id),
            func.coalesce(func.sum(Order.total_price), 0.0),
        ).group_by(Order.status)
    )
    rows = {status: (count, amount) for status, count, amount in res.all()}

    by_status = []
    for status in order_status.all_statuses():
        count, amount = rows.get(status.value, (0, 0.0))
        by_status.append({"status": status.value, "count": count, "total_amount": round(amount, 2)})

    total_orders = sum(count for count, _ in rows.values())
    total_revenue = sum(
        amount for status, (_, amount) in rows.items() if status != OrderStatus.CANCELLED.value
    )
    return {
        "by_status": by_status,
        "total_orders": total_orders,
        "total_revenue": round(total_revenue, 2),
    }
