from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List
from datetime import datetime


class CamelModel(BaseModel):
    # The browser client speaks camelCase; snake_case is accepted too
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# Users and auth
class UserRegister(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=1)


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class UserOut(CamelModel):
    id: str
    name: str
    email: str
    role: str


class AuthResponse(UserOut):
    token: str


class ProfileOut(UserOut):
    created_at: Optional[datetime] = None


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class ProfileUpdateOut(ProfileOut):
    token: str


class Token(BaseModel):
    access_token: str
    token_type: str


# Products
class OwnerSnapshot(CamelModel):
    id: str
    name: str
    email: str


class ProductOut(CamelModel):
    id: str
    user_id: str
    title: str
    description: str
    price: float
    stock: int
    discount: float
    category: str
    image_url: str
    created_by: OwnerSnapshot
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MessageOut(BaseModel):
    message: str


# Orders
class OrderItemIn(CamelModel):
    product: str
    quantity: int
    name: Optional[str] = None
    price: Optional[float] = None
    image_url: Optional[str] = None


class ShippingAddress(CamelModel):
    full_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


class OrderCreate(CamelModel):
    order_items: List[OrderItemIn] = Field(default_factory=list)
    shipping_address: ShippingAddress = Field(default_factory=ShippingAddress)
    payment_method: str = "CashOnDelivery"
    items_price: Optional[float] = Field(None, ge=0)
    shipping_price: float = Field(0.0, ge=0)
    tax_price: float = Field(0.0, ge=0)
    total_price: Optional[float] = Field(None, ge=0)


class OrderItemOut(CamelModel):
    product: str = Field(validation_alias="product_id")
    name: str
    quantity: int
    price: float
    image_url: Optional[str] = None


class ShippingAddressOut(CamelModel):
    full_name: str
    address: str
    city: str
    postal_code: str
    country: str


class OrderOut(CamelModel):
    id: str
    user_id: str
    order_items: List[OrderItemOut]
    shipping_address: ShippingAddressOut
    payment_method: str
    items_price: float
    shipping_price: float
    tax_price: float
    total_price: float
    is_paid: bool
    paid_at: Optional[datetime] = None
    is_delivered: bool
    delivered_at: Optional[datetime] = None
    is_cancelled: bool
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Cart
class CartItemIn(CamelModel):
    product: str
    quantity: int = Field(gt=0)


class CartItemOut(CamelModel):
    product: str = Field(validation_alias="product_id")
    quantity: int


class CartUpdate(CamelModel):
    items: List[CartItemIn] = Field(default_factory=list)


class CartOut(CamelModel):
    items: List[CartItemOut]
