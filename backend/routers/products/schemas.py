from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from routers.users.schemas import SupplierProfileResponse


class ProductCreate(BaseModel):
    supplier_id: str
    name: str = Field(..., min_length=1, max_length=200)
    category: str = Field(..., min_length=1, max_length=100)
    unit: str = Field(..., min_length=1, max_length=50)
    price_per_unit: float = Field(..., gt=0)
    minimum_order_quantity: int = Field(1, ge=1)
    stock_quantity: int = Field(0, ge=0)
    is_available: bool = True
    quality_grade: Optional[str] = Field(None, max_length=20)
    expiry_date: Optional[datetime] = None


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    price_per_unit: Optional[float] = Field(None, gt=0)
    minimum_order_quantity: Optional[int] = Field(None, ge=1)
    stock_quantity: Optional[int] = Field(None, ge=0)
    is_available: Optional[bool] = None
    quality_grade: Optional[str] = Field(None, max_length=20)
    expiry_date: Optional[datetime] = None


class ProductResponse(BaseModel):
    id: str
    supplier_profile_id: str
    name: str
    category: str
    unit: str
    price_per_unit: float
    minimum_order_quantity: int = 1
    stock_quantity: int = 0
    is_available: bool = True
    quality_grade: Optional[str] = None
    expiry_date: Optional[datetime] = None
    image_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ProductWithSupplierResponse(ProductResponse):
    supplier: Optional[SupplierProfileResponse] = None
    distance_km: Optional[float] = None


class ProductListResponse(BaseModel):
    products: List[ProductWithSupplierResponse]
    total: int


class ProductImageUpload(BaseModel):
    """Response schema for product image upload"""
    image_url: str
    message: str
