from pydantic import BaseModel, EmailStr, Field, model_validator
from typing import Optional, Literal


# Request schemas
class UserRegister(BaseModel):
    phone: str = Field(..., min_length=6, max_length=20)
    name: str = Field(..., min_length=1, max_length=200)
    role: Literal["vendor", "supplier"]
    email: Optional[EmailStr] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    address: Optional[str] = None

    # Supplier profile
    business_name: Optional[str] = None
    business_type: Optional[str] = None
    delivery_radius_km: int = Field(5, ge=0)
    min_order_amount: float = Field(0.0, ge=0)
    avg_delivery_time_minutes: int = Field(30, gt=0)

    # Vendor profile
    stall_name: Optional[str] = None
    food_type: Optional[str] = None
    daily_budget: Optional[float] = Field(None, ge=0)

    @model_validator(mode="after")
    def check_profile_fields(self):
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be supplied together")
        if self.role == "supplier" and not self.business_name:
            raise ValueError("business_name is required for suppliers")
        if self.role == "vendor" and not self.stall_name:
            raise ValueError("stall_name is required for vendors")
        return self


class UserLogin(BaseModel):
    phone: str = Field(..., min_length=6, max_length=20)
