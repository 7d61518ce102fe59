from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime


class UserProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    address: Optional[str] = None


class UserProfileResponse(BaseModel):
    id: str
    phone: str
    email: Optional[str] = None
    name: str
    role: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None
    is_verified: bool = False
    rating: float = 0.0
    total_reviews: int = 0
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class VendorProfileResponse(BaseModel):
    id: str
    user_profile_id: str
    stall_name: str
    food_type: Optional[str] = None
    daily_budget: Optional[float] = None
    created_at: datetime
    updated_at: datetime
    user: Optional[UserProfileResponse] = None

    class Config:
        from_attributes = True


class SupplierProfileResponse(BaseModel):
    id: str
    user_profile_id: str
    business_name: str
    business_type: Optional[str] = None
    delivery_radius_km: int = 5
    min_order_amount: float = 0.0
    avg_delivery_time_minutes: int = 30
    is_online: bool = False
    created_at: datetime
    updated_at: datetime
    user: Optional[UserProfileResponse] = None

    class Config:
        from_attributes = True


class UserWithProfileResponse(BaseModel):
    """User together with the role-specific profile"""
    user: UserProfileResponse
    vendor_profile: Optional[VendorProfileResponse] = None
    supplier_profile: Optional[SupplierProfileResponse] = None
