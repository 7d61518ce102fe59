from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from routers.users.schemas import VendorProfileResponse, SupplierProfileResponse


class OrderItemCreate(BaseModel):
    product_id: str
    quantity: int = Field(..., gt=0)
    price_per_unit: Optional[float] = Field(None, gt=0, description="Price the vendor saw; must match the current price")


class OrderCreate(BaseModel):
    vendor_id: str
    supplier_id: str
    items: List[OrderItemCreate] = Field(..., min_length=1)
    delivery_address: str = Field(..., min_length=1)
    is_emergency: bool = False
    notes: Optional[str] = None
    delivery_latitude: Optional[float] = None
    delivery_longitude: Optional[float] = None
    voice_notes: Optional[List[str]] = None


class OrderStatusUpdate(BaseModel):
    status: str


class OrderItemResponse(BaseModel):
    product_id: str
    product_name: str
    unit: str
    quantity: int
    price_per_unit: float
    line_total: float


class OrderResponse(BaseModel):
    id: str
    vendor_profile_id: str
    supplier_profile_id: str
    order_number: str
    items: List[OrderItemResponse]
    total_amount: float
    status: str
    is_emergency: bool = False
    delivery_address: str
    delivery_latitude: Optional[float] = None
    delivery_longitude: Optional[float] = None
    estimated_delivery_time: Optional[datetime] = None
    actual_delivery_time: Optional[datetime] = None
    voice_notes: Optional[List[str]] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class OrderWithDetailsResponse(OrderResponse):
    vendor: VendorProfileResponse
    supplier: SupplierProfileResponse
    is_overdue: bool = False


class OrderListResponse(BaseModel):
    orders: List[OrderWithDetailsResponse]
    total: int
