from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# --- Auth

class RegisterReq(BaseModel):
    """Registration body. Fields are optional here so that presence is reported as a 400, not a 422."""
    model_config = ConfigDict(extra="ignore", strict=True)

    name: str | None = None
    email: str | None = None
    password: str | None = None

class LoginReq(BaseModel):
    email: str
    password: str

class UserResp(BaseModel):
    """Public view of a user. Has no password field."""
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    id: int
    name: str
    email: str
    role: str
    created_at: datetime | None = None

class RegisterResp(BaseModel):
    message: str
    user: UserResp

class MessageResp(BaseModel):
    message: str

class TokenResp(BaseModel):
    access_token: str
    token_type: str = "bearer"

# --- Products

class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    stock: int = Field(0, ge=0)

class ProductUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    price: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    stock: int | None = Field(None, ge=0)

class ProductOut(BaseModel):
    id: int
    name: str
    description: str | None = None
    price: Decimal
    stock: int
    created_at: datetime | None = None
    class Config: from_attributes = True

# --- Orders

OrderStatus = Literal["pending", "shipped", "delivered", "cancelled"]

class OrderCreate(BaseModel):
    product_id: int
    quantity: int = Field(1, ge=1)

class OrderUpdate(BaseModel):
    status: OrderStatus

class OrderOut(BaseModel):
    id: int
    user_id: int
    product_id: int
    quantity: int
    unit_price: Decimal
    total: Decimal
    status: OrderStatus
    created_at: datetime | None = None
    class Config: from_attributes = True
