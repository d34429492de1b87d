"""
Unit tests for the order service.

Tests checkout, status updates, cancellation with restock, the
compare-and-swap write, bulk updates, listing and statistics.
"""
from datetime import date, datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import update

from db_models import Order
from domain.enums import OrderStatus
from domain.errors import (
    ConflictError,
    IllegalTransitionError,
    InvalidStatusValueError,
    NotFoundError,
    ValidationError,
)
from services import order_service

pytestmark = pytest.mark.integration


# ── Checkout ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_order_is_pending_and_reserves_stock(db_session, customer, product):
    order = await order_service.create_order(
        db_session,
        user_id=customer.id,
        customer_name=customer.name,
        customer_email=customer.email,
        items=[{"product_id": product.id, "quantity": 3}],
    )
    await db_session.commit()

    assert order.status == "pending"
    assert order.total_price == 75.0
    assert order.status_changed_at is not None
    assert [(i.name, i.quantity, i.unit_price) for i in order.items] == [("Linen Shirt", 3, 25.0)]

    await db_session.refresh(product)
    assert product.stock_quantity == 7


@pytest.mark.asyncio
async def test_create_order_merges_repeated_products(db_session, customer, product):
    order = await order_service.create_order(
        db_session,
        user_id=customer.id,
        customer_name=None,
        customer_email=None,
        items=[{"product_id": product.id, "quantity": 2}, {"product_id": product.id, "quantity": 1}],
    )
    await db_session.commit()

    assert len(order.items) == 1
    assert order.items[0].quantity == 3


@pytest.mark.asyncio
async def test_create_order_unlimited_stock_untouched(db_session, customer, unlimited_product):
    await order_service.create_order(
        db_session,
        user_id=customer.id,
        customer_name=None,
        customer_email=None,
        items=[{"product_id": unlimited_product.id, "quantity": 40}],
    )
    await db_session.commit()

    await db_session.refresh(unlimited_product)
    assert unlimited_product.stock_quantity is None


@pytest.mark.asyncio
async def test_create_order_empty_cart(db_session, customer):
    with pytest.raises(ValidationError) as exc_info:
        await order_service.create_order(
            db_session, user_id=customer.id, customer_name=None, customer_email=None, items=[]
        )
    assert "empty" in exc_info.value.message.lower()


@pytest.mark.asyncio
async def test_create_order_insufficient_stock(db_session, customer, product):
    with pytest.raises(ValidationError) as exc_info:
        await order_service.create_order(
            db_session,
            user_id=customer.id,
            customer_name=None,
            customer_email=None,
            items=[{"product_id": product.id, "quantity": 11}],
        )
    assert exc_info.value.details["available"] == 10


@pytest.mark.asyncio
async def test_create_order_inactive_product(db_session, customer, product):
    product.active = False
    await db_session.commit()

    with pytest.raises(ValidationError):
        await order_service.create_order(
            db_session,
            user_id=customer.id,
            customer_name=None,
            customer_email=None,
            items=[{"product_id": product.id, "quantity": 1}],
        )


# ── Status updates ──────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_update_status_pending_to_processing(db_session, customer, product, place_order):
    order = await place_order(customer, product)
    placed_at = order.status_changed_at

    updated, previous = await order_service.update_status(db_session, order_id=order.id, requested="processing")
    await db_session.commit()

    assert previous == "pending"
    assert updated.status == "processing"
    assert updated.status_changed_at >= placed_at


@pytest.mark.asyncio
async def test_update_status_shipped_back_to_pending_allowed(db_session, customer, product, place_order):
    order = await place_order(customer, product, status="shipped")

    updated, _ = await order_service.update_status(db_session, order_id=order.id, requested="pending")
    assert updated.status == "pending"


@pytest.mark.asyncio
@pytest.mark.parametrize("terminal", ["delivered", "cancelled"])
async def test_update_status_terminal_lock(db_session, customer, product, place_order, terminal):
    order = await place_order(customer, product, status=terminal)

    with pytest.raises(IllegalTransitionError):
        await order_service.update_status(db_session, order_id=order.id, requested=terminal)

    fetched = await order_service.get_order(db_session, order_id=order.id)
    assert fetched.status == terminal


@pytest.mark.asyncio
async def test_update_status_invalid_token(db_session, customer, product, place_order):
    order = await place_order(customer, product)

    with pytest.raises(InvalidStatusValueError):
        await order_service.update_status(db_session, order_id=order.id, requested="Processing")


@pytest.mark.asyncio
async def test_update_status_legacy_value_is_locked(db_session, customer, product, place_order):
    order = await place_order(customer, product, status="completed")

    with pytest.raises(IllegalTransitionError) as exc_info:
        await order_service.update_status(db_session, order_id=order.id, requested="pending")
    assert exc_info.value.details["current_label"] == "Unknown"


@pytest.mark.asyncio
async def test_update_status_missing_order(db_session):
    with pytest.raises(NotFoundError):
        await order_service.update_status(db_session, order_id=999, requested="processing")


@pytest.mark.asyncio
async def test_update_status_lost_race_raises_conflict(db_session, customer, product, place_order, monkeypatch):
    order = await place_order(customer, product)
    monkeypatch.setattr(order_service, "_compare_and_set_status", AsyncMock(return_value=False))

    with pytest.raises(ConflictError) as exc_info:
        await order_service.update_status(db_session, order_id=order.id, requested="processing")
    assert exc_info.value.details["expected_status"] == "pending"


@pytest.mark.asyncio
async def test_compare_and_set_only_matches_expected_status(db_session, customer, product, place_order):
    order = await place_order(customer, product)

    # Another writer moves the order first
    await db_session.execute(update(Order).where(Order.id == order.id).values(status="processing"))

    swapped = await order_service._compare_and_set_status(
        db_session, order_id=order.id, expected="pending", new_status=OrderStatus.SHIPPED
    )
    assert swapped is False

    swapped = await order_service._compare_and_set_status(
        db_session, order_id=order.id, expected="processing", new_status=OrderStatus.SHIPPED
    )
    assert swapped is True
    fetched = await order_service.get_order(db_session, order_id=order.id)
    assert fetched.status == "shipped"


# ── Cancellation ────────────────────────────────────────────────────


@pytest.mark.asyncio
@pytest.mark.parametrize("start", ["pending", "processing"])
async def test_cancel_restores_stock(db_session, customer, product, place_order, start):
    order = await place_order(customer, product, quantity=4, status=start)
    await db_session.refresh(product)
    assert product.stock_quantity == 6

    cancelled = await order_service.cancel_order(db_session, order_id=order.id, reason="changed my mind")
    await db_session.commit()

    assert cancelled.status == "cancelled"
    assert cancelled.cancel_reason == "changed my mind"
    await db_session.refresh(product)
    assert product.stock_quantity == 10


@pytest.mark.asyncio
@pytest.mark.parametrize("start", ["shipped", "delivered", "cancelled"])
async def test_cancel_rejected_outside_cancellable(db_session, customer, product, place_order, start):
    order = await place_order(customer, product, quantity=2, status=start)

    with pytest.raises(IllegalTransitionError):
        await order_service.cancel_order(db_session, order_id=order.id)

    await db_session.refresh(product)
    assert product.stock_quantity == 8


@pytest.mark.asyncio
async def test_cancel_twice_restocks_once(db_session, customer, product, place_order):
    order = await place_order(customer, product, quantity=5)

    await order_service.cancel_order(db_session, order_id=order.id)
    await db_session.commit()
    with pytest.raises(IllegalTransitionError):
        await order_service.cancel_order(db_session, order_id=order.id)

    await db_session.refresh(product)
    assert product.stock_quantity == 10


@pytest.mark.asyncio
async def test_cancel_lost_race_does_not_restock(db_session, customer, product, place_order, monkeypatch):
    order = await place_order(customer, product, quantity=5)
    monkeypatch.setattr(order_service, "_compare_and_set_status", AsyncMock(return_value=False))

    with pytest.raises(ConflictError):
        await order_service.cancel_order(db_session, order_id=order.id)

    await db_session.refresh(product)
    assert product.stock_quantity == 5


@pytest.mark.asyncio
@pytest.mark.parametrize("start", ["pending", "processing", "shipped"])
async def test_admin_status_change_to_cancelled_restores_stock(db_session, customer, product, place_order, start):
    order = await place_order(customer, product, quantity=4, status=start)

    updated, previous = await order_service.update_status(db_session, order_id=order.id, requested="cancelled")
    await db_session.commit()

    assert previous == start
    assert updated.status == "cancelled"
    await db_session.refresh(product)
    assert product.stock_quantity == 10


@pytest.mark.asyncio
async def test_admin_status_change_lost_race_does_not_restock(db_session, customer, product, place_order, monkeypatch):
    order = await place_order(customer, product, quantity=4)
    monkeypatch.setattr(order_service, "_compare_and_set_status", AsyncMock(return_value=False))

    with pytest.raises(ConflictError):
        await order_service.update_status(db_session, order_id=order.id, requested="cancelled")

    await db_session.refresh(product)
    assert product.stock_quantity == 6


# ── Bulk ────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_bulk_update_respects_terminal_lock(db_session, customer, product, place_order):
    open_order = await place_order(customer, product)
    shipped = await place_order(customer, product, status="shipped")
    delivered = await place_order(customer, product, status="delivered")

    result = await order_service.bulk_update_status(
        db_session,
        order_ids=[open_order.id, shipped.id, delivered.id, 4242, open_order.id],
        requested="processing",
    )
    await db_session.commit()

    assert result["status"] == "processing"
    assert result["updated"] == [open_order.id, shipped.id]
    assert result["skipped"] == [{"id": delivered.id, "status": "delivered", "reason": "final"}]
    assert result["not_found"] == [4242]

    fetched = await order_service.get_order(db_session, order_id=delivered.id)
    assert fetched.status == "delivered"


@pytest.mark.asyncio
async def test_bulk_cancel_restores_stock_once(db_session, customer, product, unlimited_product, place_order):
    first = await place_order(customer, product, quantity=4)
    second = await place_order(customer, product, quantity=3, status="processing")
    already = await place_order(customer, product, quantity=2, status="cancelled")
    gift = await place_order(customer, unlimited_product, quantity=5)

    result = await order_service.bulk_update_status(
        db_session,
        order_ids=[first.id, second.id, already.id, gift.id],
        requested="cancelled",
    )
    await db_session.commit()

    assert result["updated"] == [first.id, second.id, gift.id]
    assert result["skipped"] == [{"id": already.id, "status": "cancelled", "reason": "final"}]

    # 10 - 4 - 3 - 2 at checkout; only the two orders moved here give stock back
    await db_session.refresh(product)
    assert product.stock_quantity == 8
    await db_session.refresh(unlimited_product)
    assert unlimited_product.stock_quantity is None


@pytest.mark.asyncio
async def test_bulk_non_cancel_status_leaves_stock(db_session, customer, product, place_order):
    order = await place_order(customer, product, quantity=4)

    await order_service.bulk_update_status(db_session, order_ids=[order.id], requested="shipped")
    await db_session.commit()

    await db_session.refresh(product)
    assert product.stock_quantity == 6


@pytest.mark.asyncio
async def test_bulk_update_invalid_token(db_session):
    with pytest.raises(InvalidStatusValueError):
        await order_service.bulk_update_status(db_session, order_ids=[1], requested="done")


# ── Listing & statistics ────────────────────────────────────────────


@pytest.mark.asyncio
async def test_list_orders_filters(db_session, customer, other_customer, product, place_order):
    a = await place_order(customer, product)
    b = await place_order(other_customer, product, status="shipped")

    orders, total = await order_service.list_orders(db_session, status="shipped")
    assert total == 1 and [o.id for o in orders] == [b.id]

    orders, total = await order_service.list_orders(db_session, q="alice")
    assert [o.id for o in orders] == [a.id]

    orders, total = await order_service.list_orders(db_session, limit=1, offset=0)
    assert total == 2 and len(orders) == 1
    assert orders[0].id == b.id  # newest first

    with pytest.raises(InvalidStatusValueError):
        await order_service.list_orders(db_session, status="Shipped")


@pytest.mark.asyncio
@pytest.mark.parametrize("q", ["%", "_", "\\"])
async def test_list_orders_search_wildcards_are_literal(db_session, customer, product, place_order, q):
    await place_order(customer, product)

    orders, total = await order_service.list_orders(db_session, q=q)
    assert total == 0 and orders == []


@pytest.mark.asyncio
async def test_list_orders_search_matches_literal_underscore(db_session, customer, other_customer, product, place_order):
    tagged = await place_order(customer, product)
    await place_order(other_customer, product)
    await db_session.execute(
        update(Order).where(Order.id == tagged.id).values(customer_email="first_last@example.com")
    )

    orders, total = await order_service.list_orders(db_session, q="t_l")
    assert total == 1 and [o.id for o in orders] == [tagged.id]


@pytest.mark.asyncio
async def test_list_orders_date_range(db_session, customer, product, place_order):
    order = await place_order(customer, product)
    old = datetime.utcnow() - timedelta(days=10)
    await db_session.execute(update(Order).where(Order.id == order.id).values(created_at=old))

    today = date.today()
    _, total = await order_service.list_orders(db_session, date_from=today - timedelta(days=1))
    assert total == 0
    _, total = await order_service.list_orders(db_session, date_to=old.date())
    assert total == 1


@pytest.mark.asyncio
async def test_list_orders_by_status(db_session, customer, product, place_order):
    await place_order(customer, product, status="processing")
    await place_order(customer, product)

    parsed, orders = await order_service.list_orders_by_status(db_session, status="processing")
    assert parsed.value == "processing"
    assert len(orders) == 1


@pytest.mark.asyncio
async def test_order_statistics(db_session, customer, product, place_order):
    await place_order(customer, product, quantity=2)                       # 50 pending
    await place_order(customer, product, quantity=1, status="delivered")   # 25 delivered
    await place_order(customer, product, quantity=4, status="cancelled")   # 100 cancelled

    stats = await order_service.order_statistics(db_session)

    by_status = {row["status"]: row for row in stats["by_status"]}
    assert [row["status"] for row in stats["by_status"]] == [
        "pending", "processing", "shipped", "delivered", "cancelled"
    ]
    assert by_status["pending"]["count"] == 1
    assert by_status["cancelled"]["total_amount"] == 100.0
    assert by_status["shipped"]["count"] == 0
    assert stats["total_orders"] == 3
    assert stats["total_revenue"] == 75.0


# ── Admin fields ────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_assign_order_requires_admin_assignee(db_session, customer, admin_user, product, place_order):
    order = await place_order(customer, product)

    assigned = await order_service.assign_order(db_session, order_id=order.id, admin_id=admin_user.id)
    assert assigned.assigned_to == admin_user.id

    with pytest.raises(ValidationError):
        await order_service.assign_order(db_session, order_id=order.id, admin_id=customer.id)
    with pytest.raises(NotFoundError):
        await order_service.assign_order(db_session, order_id=order.id, admin_id=9999)


@pytest.mark.asyncio
async def test_update_order_details_partial(db_session, customer, product, place_order):
    order = await place_order(customer, product)

    updated = await order_service.update_order_details(db_session, order_id=order.id, tracking_number="TRK-1")
    assert updated.tracking_number == "TRK-1"
    assert updated.admin_note is None
