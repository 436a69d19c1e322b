import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Path, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from jose.exceptions import JOSEError
from passlib.context import CryptContext
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from .auth import get_claims, issue_token, make_password_context, require_admin
from .bidding import create_bid, list_bids, set_bid_accepted, set_bid_discarded
from .config import Settings, load_settings
from .database import create_schema, get_db, make_engine, make_session_factory
from .models import (
    MAX_ID,
    MIN_ID,
    BidCreate,
    BidOut,
    ProductCreate,
    ProductOut,
    TokenClaims,
    UserCreate,
    UserLogin,
)
from .products import create_product_request, list_products, set_product_discarded
from .users import authenticate, create_admin_user, get_user, register

logger = logging.getLogger(__name__)

router = APIRouter()


def get_pwd(request: Request) -> CryptContext:
    return request.app.state.pwd


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


# =========================
# USERS
# =========================

@router.post("/admin", status_code=201)
async def create_admin(
    user: UserCreate,
    db: AsyncSession = Depends(get_db),
    pwd: CryptContext = Depends(get_pwd),
):
    # No authentication: anyone who can reach the server can create an admin.
    await create_admin_user(db, pwd, user.username, user.password)
    return {"message": "User created successfully"}


@router.post("/signup", status_code=201)
async def signup(
    user: UserCreate,
    db: AsyncSession = Depends(get_db),
    pwd: CryptContext = Depends(get_pwd),
):
    await register(db, pwd, user.username, user.password)
    return {"message": "User created successfully"}


@router.post("/login")
async def login(
    user: UserLogin,
    db: AsyncSession = Depends(get_db),
    pwd: CryptContext = Depends(get_pwd),
    settings: Settings = Depends(get_settings),
):
    db_user = await authenticate(db, pwd, user.username, user.password)

    try:
        token = issue_token(
            db_user.id,
            db_user.is_admin,
            secret=settings.JWT_SECRET,
            expires_hours=settings.TOKEN_EXPIRE_HOURS,
        )
    except JOSEError:
        logger.exception("Token signing failed", extra={"user_id": db_user.id})
        raise HTTPException(status_code=500, detail="Failed to generate token")

    return {"token": token}


@router.get("/profile")
async def profile(
    claims: TokenClaims = Depends(get_claims),
    db: AsyncSession = Depends(get_db),
):
    user = await get_user(db, claims.user_id)
    return {"username": user.username, "userID": user.id}


# =========================
# PRODUCT REQUESTS
# =========================

@router.post("/api/products", status_code=201, response_model=ProductOut)
async def request_product(
    product: ProductCreate,
    claims: TokenClaims = Depends(get_claims),
    db: AsyncSession = Depends(get_db),
):
    return await create_product_request(db, claims, product)


@router.get("/api/products", response_model=List[ProductOut])
async def products_index(
    sort: Optional[str] = None,
    filter: Optional[str] = None,
    user_id: Optional[int] = Query(None, ge=MIN_ID, le=MAX_ID),
    db: AsyncSession = Depends(get_db),
):
    return await list_products(db, sort=sort, filter=filter, user_id=user_id)


@router.post("/api/products/{product_id}/discard", status_code=204)
async def discard_product(
    product_id: int = Path(..., ge=MIN_ID, le=MAX_ID),
    admin: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await set_product_discarded(db, product_id, True)


@router.post("/api/products/{product_id}/approve", status_code=204)
async def approve_product(
    product_id: int = Path(..., ge=MIN_ID, le=MAX_ID),
    admin: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await set_product_discarded(db, product_id, False)


# =========================
# OFFERS
# =========================

@router.post("/api/products/{product_id}/offers", status_code=201, response_model=BidOut)
async def make_offer(
    bid: BidCreate,
    product_id: int = Path(..., ge=MIN_ID, le=MAX_ID),
    claims: TokenClaims = Depends(get_claims),
    db: AsyncSession = Depends(get_db),
):
    return await create_bid(db, claims, product_id, bid)


@router.get("/api/products/{product_id}/offers", response_model=List[BidOut])
async def get_offers(
    product_id: int = Path(..., ge=MIN_ID, le=MAX_ID),
    claims: TokenClaims = Depends(get_claims),
    db: AsyncSession = Depends(get_db),
):
    return await list_bids(db, product_id)


@router.post("/api/offers/{bid_id}/discard", status_code=204)
async def discard_offer(
    bid_id: int = Path(..., ge=MIN_ID, le=MAX_ID),
    admin: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await set_bid_discarded(db, bid_id, True)


@router.post("/api/offers/{bid_id}/approve", status_code=204)
async def approve_offer(
    bid_id: int = Path(..., ge=MIN_ID, le=MAX_ID),
    admin: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await set_bid_discarded(db, bid_id, False)


@router.put("/offers/{bid_id}/accept", status_code=204)
async def accept_offer(
    bid_id: int = Path(..., ge=MIN_ID, le=MAX_ID),
    claims: TokenClaims = Depends(get_claims),
    db: AsyncSession = Depends(get_db),
):
    await set_bid_accepted(db, bid_id, claims, True)


@router.put("/offers/{bid_id}/reject", status_code=204)
async def reject_offer(
    bid_id: int = Path(..., ge=MIN_ID, le=MAX_ID),
    claims: TokenClaims = Depends(get_claims),
    db: AsyncSession = Depends(get_db),
):
    await set_bid_accepted(db, bid_id, claims, False)


@router.get("/health")
async def health():
    return {"status": "ok"}


# =========================
# ERRORS
# =========================

def _describe(errors) -> str:
    parts = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        msg = err.get("msg", "invalid")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts) or "Bad request"


async def http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        {"error": exc.detail},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


async def validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse({"error": _describe(exc.errors())}, status_code=400)


async def store_error(request: Request, exc: SQLAlchemyError):
    logger.exception("Store error on %s %s", request.method, request.url.path)
    return JSONResponse({"error": "Internal server error"}, status_code=500)


# =========================
# APP
# =========================

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("reverse_auction").setLevel(settings.LOG_LEVEL)

    app = FastAPI(title="Reverse Auction API")

    engine = make_engine(settings.DATABASE_URL)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = make_session_factory(engine)
    app.state.pwd = make_password_context(settings.PASSWORD_SCHEMES)

    origins = [o.strip() for o in settings.CORS_ALLOW_ORIGINS.split(",") if o.strip()]
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(StarletteHTTPException, http_error)
    app.add_exception_handler(RequestValidationError, validation_error)
    app.add_exception_handler(SQLAlchemyError, store_error)

    app.include_router(router)

    @app.on_event("startup")
    async def startup():
        await create_schema(engine)
        logger.info("Reverse auction API started", extra={"database": settings.DATABASE_URL})

    @app.on_event("shutdown")
    async def shutdown():
        await engine.dispose()

    return app


def run():
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        "reverse_auction.main:create_app",
        factory=True,
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=False,
    )


if __name__ == "__main__":
    run()
