"""
Product service — the catalog slice checkout depends on.

Stock is reserved when an order is created and given back when it is
cancelled; products with stock_quantity = NULL are never limited.
"""
import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Product
from domain.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


async def create_product(
    db: AsyncSession,
    *,
    slug: str,
    name: str,
    description: str | None,
    price: float,
    stock_quantity: int | None,
    active: bool,
) -> Product:
    existing = await db.execute(select(Product.id).where(Product.slug == slug))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError(f"Product slug already in use: {slug}")

    product = Product(
        slug=slug,
        name=name,
        description=description,
        price=price,
        stock_quantity=stock_quantity,
        active=active,
    )
    db.add(product)
    await db.flush()
    return product


async def get_product(db: AsyncSession, *, product_id: int) -> Product:
    res = await db.execute(select(Product).where(Product.id == product_id))
    product = res.scalar_one_or_none()
    if not product:
        raise NotFoundError("Product", str(product_id))
    return product


async def list_active_products(db: AsyncSession, *, limit: int = 50, offset: int = 0) -> list[Product]:
    res = await db.execute(
        select(Product)
        .where(Product.active == True)  # noqa: E712
        .order_by(Product.created_at.desc(), Product.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return res.scalars().all()


async def load_products(db: AsyncSession, product_ids: list[int]) -> dict[int, Product]:
    if not product_ids:
        return {}
    # populate_existing: stock is changed by UPDATE statements the session does not track
    res = await db.execute(
        select(Product)
        .where(Product.id.in_(product_ids))
        .execution_options(populate_existing=True)
    )
    return {p.id: p for p in res.scalars().all()}


async def reserve_stock(db: AsyncSession, quantities: dict[int, int]) -> None:
    """
    Take stock for a new order.

    Each decrement is a single guarded UPDATE (stock >= qty), so two
    checkouts racing for the last unit cannot both succeed.

    Raises:
        ConflictError if a tracked product no longer has enough stock
    """
    now = datetime.utcnow()
    for product_id, qty in quantities.items():
        res = await db.execute(
            update(Product)
            .where(
                Product.id == product_id,
                Product.stock_quantity.is_not(None),
                Product.stock_quantity >= qty,
            )
            .values(stock_quantity=Product.stock_quantity - qty, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount == 1:
            continue
        # Zero rows: either unlimited stock (fine) or a concurrent checkout won.
        tracked = await db.execute(
            select(Product.stock_quantity).where(Product.id == product_id)
        )
        if tracked.scalar_one_or_none() is not None:
            raise ConflictError(
                f"Stock for product {product_id} changed during checkout",
                details={"product_id": product_id, "requested": qty},
            )


async def restock(db: AsyncSession, quantities: dict[int, int]) -> None:
    """Give stock back (order cancellation). Unlimited-stock products are skipped."""
    now = datetime.utcnow()
    for product_id, qty in quantities.items():
        await db.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock_quantity.is_not(None))
            .values(stock_quantity=Product.stock_quantity + qty, updated_at=now)
            .execution_options(synchronize_session=False)
        )
    logger.info(f"Restocked {sum(quantities.values())} unit(s) across {len(quantities)} product(s)")
