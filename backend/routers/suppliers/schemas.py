from pydantic import BaseModel
from typing import Optional, List
from routers.users.schemas import SupplierProfileResponse


class NearbySupplierResponse(SupplierProfileResponse):
    distance_km: Optional[float] = None


class NearbySupplierListResponse(BaseModel):
    suppliers: List[NearbySupplierResponse]
    total: int
    radius_km: float


class SupplierStatusUpdate(BaseModel):
    is_online: bool


class SupplierStatsResponse(BaseModel):
    supplier_id: str
    total_orders: int = 0
    active_orders: int = 0
    total_revenue: float = 0.0
    average_rating: float = 0.0
    total_reviews: int = 0
