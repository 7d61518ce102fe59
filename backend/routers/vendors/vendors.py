from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_
from config import get_db
from models import VendorProfile, SupplierProfile, Order
from services.order_lifecycle import OrderStatus, ACTIVE_STATUSES
from utils.exceptions import VendorNotFound
from utils.response_helpers import parse_uuid
from .schemas import VendorStatsResponse, TopSupplier
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/vendors", tags=["Vendors"])

TOP_SUPPLIER_LIMIT = 3


@router.get("/{vendor_id}/stats", response_model=VendorStatsResponse)
async def get_vendor_stats(
    vendor_id: str,
    db: AsyncSession = Depends(get_db)
):
    """Order count, spend over non-cancelled orders and most-used suppliers"""
    try:
        vendor_uuid = parse_uuid(vendor_id)
        vendor = await db.get(VendorProfile, vendor_uuid) if vendor_uuid else None
        if not vendor:
            raise VendorNotFound()

        not_cancelled = and_(
            Order.vendor_profile_id == vendor.id,
            Order.status != OrderStatus.CANCELLED.value
        )

        result = await db.execute(
            select(
                func.count(Order.id),
                func.coalesce(func.sum(Order.total_amount), 0.0)
            ).where(not_cancelled)
        )
        total_orders, total_spent = result.first()

        result = await db.execute(
            select(func.count(Order.id)).where(
                and_(
                    Order.vendor_profile_id == vendor.id,
                    Order.status.in_([s.value for s in ACTIVE_STATUSES])
                )
            )
        )
        active_orders = result.scalar_one()

        order_count = func.count(Order.id).label("order_count")
        result = await db.execute(
            select(SupplierProfile.id, SupplierProfile.business_name, order_count)
            .join(Order, Order.supplier_profile_id == SupplierProfile.id)
            .where(not_cancelled)
            .group_by(SupplierProfile.id, SupplierProfile.business_name)
            .order_by(order_count.desc(), SupplierProfile.business_name.asc())
            .limit(TOP_SUPPLIER_LIMIT)
        )
        top_suppliers = [
            TopSupplier(supplier_id=str(supplier_id), business_name=business_name, order_count=count)
            for supplier_id, business_name, count in result.all()
        ]

        return VendorStatsResponse(
            vendor_id=str(vendor.id),
            total_orders=int(total_orders or 0),
            active_orders=int(active_orders or 0),
            total_spent=round(float(total_spent or 0.0), 2),
            top_suppliers=top_suppliers
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting vendor stats: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get vendor stats"
        )
