from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import Boolean, Column, Float, ForeignKey, Integer, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Product status. Nothing moves a product to ACCEPTED yet.
ACTIVE = "ACTIVE"
ACCEPTED = "ACCEPTED"

# Range of a SQLite INTEGER column.
MIN_ID = -(2 ** 63)
MAX_ID = 2 ** 63 - 1


# =========================
# DATABASE MODELS
# =========================

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(String, unique=True, index=True, nullable=False)
    password = Column(String, nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    title = Column(String, nullable=False)
    description = Column(String, default="")
    status = Column(String, default=ACTIVE, nullable=False, index=True)
    is_discarded = Column(Boolean, default=False, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), index=True)


class Bid(Base):
    __tablename__ = "bids"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id"), index=True)
    seller_id = Column(Integer, ForeignKey("users.id"), index=True)
    price = Column(Float, nullable=False)
    description = Column(String, default="")
    is_accepted = Column(Boolean, default=False, nullable=False)
    is_discarded = Column(Boolean, default=False, nullable=False)


# =========================
# PYDANTIC SCHEMAS
# =========================

class UserCreate(BaseModel):
    username: str
    password: str


class UserLogin(BaseModel):
    username: str
    password: str


class TokenClaims(BaseModel):
    user_id: int = Field(ge=MIN_ID, le=MAX_ID)
    is_admin: bool
    expires_at: datetime


class ProductCreate(BaseModel):
    title: str
    description: Optional[str] = ""


class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str]
    status: str
    is_discarded: bool
    user_id: int


class BidCreate(BaseModel):
    price: float
    description: Optional[str] = ""


class BidOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    seller_id: int
    price: float
    description: Optional[str]
    is_accepted: bool
    is_discarded: bool
