from pydantic import BaseModel
from typing import List


class TopSupplier(BaseModel):
    supplier_id: str
    business_name: str
    order_count: int


class VendorStatsResponse(BaseModel):
    vendor_id: str
    total_orders: int = 0
    active_orders: int = 0
    total_spent: float = 0.0
    top_suppliers: List[TopSupplier] = []
