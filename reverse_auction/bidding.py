import logging
from typing import List

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from .models import ACTIVE, Bid, BidCreate, Product, TokenClaims
from .products import get_product

logger = logging.getLogger(__name__)


async def get_bid(db: AsyncSession, bid_id: int, detail: str = "Bid not found") -> Bid:
    result = await db.execute(select(Bid).where(Bid.id == bid_id))
    bid = result.scalar()

    if not bid:
        raise HTTPException(status_code=404, detail=detail)

    return bid


async def create_bid(
    db: AsyncSession,
    claims: TokenClaims,
    product_id: int,
    payload: BidCreate,
) -> Bid:
    product = await get_product(db, product_id)

    # Not atomic with the insert below: a concurrent moderation or status
    # change between the check and the commit is not seen.
    if product.status != ACTIVE:
        raise HTTPException(status_code=400, detail="Product is not open for offers")

    bid = Bid(
        product_id=product.id,
        seller_id=claims.user_id,
        price=payload.price,
        description=payload.description,
        is_accepted=False,
        is_discarded=False,
    )

    db.add(bid)
    await db.commit()
    await db.refresh(bid)

    logger.info(
        "Offer placed",
        extra={"bid_id": bid.id, "product_id": product.id, "user_id": claims.user_id},
    )
    return bid


async def list_bids(db: AsyncSession, product_id: int) -> List[Bid]:
    product = await get_product(db, product_id)

    result = await db.execute(select(Bid).where(Bid.product_id == product.id))
    return result.scalars().all()


async def set_bid_accepted(db: AsyncSession, bid_id: int, claims: TokenClaims, accepted: bool) -> Bid:
    """Accept or reject an offer. Only the requester of the product may do this.

    Accepting does not close the product or touch other offers, so more than
    one offer on the same product can end up accepted.
    """
    bid = await get_bid(db, bid_id, detail="Offer not found")

    result = await db.execute(select(Product).where(Product.id == bid.product_id))
    product = result.scalar()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    if product.user_id != claims.user_id:
        raise HTTPException(status_code=403, detail="Permission denied")

    bid.is_accepted = accepted
    await db.commit()

    logger.info(
        "Offer %s", "accepted" if accepted else "rejected",
        extra={"bid_id": bid.id, "product_id": product.id, "user_id": claims.user_id},
    )
    return bid


async def set_bid_discarded(db: AsyncSession, bid_id: int, discarded: bool) -> Bid:
    # is_accepted is independent; a discarded offer may still be accepted.
    bid = await get_bid(db, bid_id)

    bid.is_discarded = discarded
    await db.commit()

    logger.info("Offer %s", "discarded" if discarded else "approved", extra={"bid_id": bid.id})
    return bid
