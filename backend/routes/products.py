"""
Product endpoints — public catalog listing and admin product creation.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import Product, User
from deps import Pagination, pagination_params, require_admin
from domain.responses import paginated_response, success_response
from models import ProductCreateRequest
from services import product_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/products", tags=["products"])


def _serialize_product(p: Product) -> dict:
    return {
        "id": p.id,
        "slug": p.slug,
        "name": p.name,
        "description": p.description,
        "price": p.price,
        "stock_quantity": p.stock_quantity,
        "active": p.active,
    }


@router.get("")
async def list_products(
    page: Pagination = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
):
    products = await product_service.list_active_products(db, limit=page["limit"], offset=page["offset"])
    # Note: total is the page length; the storefront only pages forward
    return paginated_response(
        items=[_serialize_product(p) for p in products],
        limit=page["limit"],
        offset=page["offset"],
        total=page["offset"] + len(products),
    )


@router.post("")
async def create_product(
    request: ProductCreateRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    p = await product_service.create_product(
        db,
        slug=request.slug,
        name=request.name,
        description=request.description,
        price=request.price,
        stock_quantity=request.stock_quantity,
        active=request.active,
    )
    await db.commit()
    await db.refresh(p)
    logger.info(f"Admin {admin.id} created product {p.slug}")
    return success_response(data=_serialize_product(p))
