import logging
from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from .models import ACTIVE, Product, ProductCreate, TokenClaims

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "id": Product.id,
    "title": Product.title,
    "description": Product.description,
    "status": Product.status,
    "is_discarded": Product.is_discarded,
    "user_id": Product.user_id,
}


def parse_sort(sort: str):
    """Turn ``title``, ``-title``, ``title asc`` or ``title desc`` into an ORDER BY clause.

    Only whitelisted columns are accepted; the raw value never reaches SQL.
    """
    parts = sort.strip().split()
    if not parts or len(parts) > 2:
        raise HTTPException(status_code=400, detail="Invalid sort field")

    name = parts[0]
    descending = False
    if name.startswith("-"):
        name = name[1:]
        descending = True

    if len(parts) == 2:
        direction = parts[1].lower()
        if direction not in ("asc", "desc") or descending:
            raise HTTPException(status_code=400, detail="Invalid sort field")
        descending = direction == "desc"

    column = SORTABLE_FIELDS.get(name)
    if column is None:
        raise HTTPException(status_code=400, detail="Invalid sort field")

    return column.desc() if descending else column.asc()


async def get_product(db: AsyncSession, product_id: int) -> Product:
    result = await db.execute(select(Product).where(Product.id == product_id))
    product = result.scalar()

    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    return product


async def create_product_request(db: AsyncSession, claims: TokenClaims, payload: ProductCreate) -> Product:
    product = Product(
        title=payload.title,
        description=payload.description,
        status=ACTIVE,
        is_discarded=False,
        user_id=claims.user_id,
    )

    db.add(product)
    await db.commit()
    await db.refresh(product)

    logger.info("Product request created", extra={"product_id": product.id, "user_id": claims.user_id})
    return product


async def list_products(
    db: AsyncSession,
    sort: Optional[str] = None,
    filter: Optional[str] = None,
    user_id: Optional[int] = None,
) -> List[Product]:
    query = select(Product)

    if sort and sort.strip():
        query = query.order_by(parse_sort(sort))

    # LIKE follows the store's collation; SQLite matches ASCII case-insensitively.
    if filter:
        query = query.where(Product.title.like(f"%{filter}%"))

    if user_id is not None:
        query = query.where(Product.user_id == user_id)

    result = await db.execute(query)
    return result.scalars().all()


async def set_product_discarded(db: AsyncSession, product_id: int, discarded: bool) -> Product:
    """Admin moderation. "approve" is ``discarded=False``; status is left alone."""
    product = await get_product(db, product_id)

    product.is_discarded = discarded
    await db.commit()

    logger.info(
        "Product %s", "discarded" if discarded else "approved",
        extra={"product_id": product.id},
    )
    return product
