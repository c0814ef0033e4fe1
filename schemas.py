"""
Database Schemas

Pydantic models that define MongoDB documents for the Food Ordering app.
Order documents keep camelCase field names (customerName, productId, ...),
which is the layout external tooling reads; the models expose snake_case
attributes and serialize by alias.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from config import Config


class ProductCategory(str, Enum):
    OFFERS = "Offers"
    SANDWICHES = "Sandwiches"
    CREPES = "Crepes"
    BOXES = "Boxes"
    EXTRAS = "Extras"
    MEALS = "Meals"


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class Product(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    id: Optional[str] = Field(None, description="Storage-assigned identifier")
    name: str = Field(..., description="Dish name")
    description: Optional[str] = Field(None, description="Short description")
    price: float = Field(..., ge=0, description="Unit price in LE")
    category: ProductCategory = Field(..., description="Menu section")
    image: Optional[str] = Field(None, description="Dish image URL")
    available: bool = Field(True, description="Shown in the catalog")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Location(BaseModel):
    lat: float = Field(..., ge=-90, le=90, description="WGS84 latitude")
    lng: float = Field(..., ge=-180, le=180, description="WGS84 longitude")
    address: str = Field(..., description="Resolved delivery address")


class OrderItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(..., alias="productId")
    name: Optional[str] = None
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0, description="Unit price at order time")


class Order(BaseModel):
    """Persisted order document (the "orders" collection)"""
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, validate_default=True)

    customer_name: str = Field(..., alias="customerName")
    customer_phone: str = Field(..., alias="customerPhone")
    customer_address: str = Field(..., alias="customerAddress")
    location: Optional[Location] = None
    items: List[OrderItem]
    total: float = Field(..., ge=0, description="Items subtotal plus delivery fee")
    payment_method: str = Field(Config.PAYMENT_METHOD, alias="paymentMethod")
    status: OrderStatus = OrderStatus.PENDING


class OrderCreate(BaseModel):
    """POST /orders body; required-field checks are done by the route to answer 400"""
    model_config = ConfigDict(populate_by_name=True)

    customer_name: Optional[str] = Field(None, alias="customerName")
    customer_phone: Optional[str] = Field(None, alias="customerPhone")
    customer_address: Optional[str] = Field(None, alias="customerAddress")
    location: Optional[Location] = None
    items: List[dict] = Field(default_factory=list, description="Line items in any of the client shapes")
    total: Optional[float] = Field(None, description="Client-side total, recomputed by the server")


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
