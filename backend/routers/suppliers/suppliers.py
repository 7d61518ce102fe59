from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_
from config import get_db, DEFAULT_SEARCH_RADIUS_KM
from models import SupplierProfile, Order, Review, utcnow
from services.geo import GeoProximityResolver, SqlAlchemyProximityRepository
from services.order_lifecycle import OrderStatus, ACTIVE_STATUSES
from utils.exceptions import SupplierNotFound
from utils.response_helpers import parse_uuid, safe_model_validate, supplier_profile_to_dict
from routers.users.schemas import SupplierProfileResponse
from .schemas import NearbySupplierResponse, NearbySupplierListResponse, SupplierStatusUpdate, SupplierStatsResponse
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/suppliers", tags=["Suppliers"])


async def get_supplier_or_404(supplier_id: str, db: AsyncSession) -> SupplierProfile:
    supplier_uuid = parse_uuid(supplier_id)
    supplier = await db.get(SupplierProfile, supplier_uuid) if supplier_uuid else None
    if not supplier:
        raise SupplierNotFound()
    return supplier


@router.get("/nearby", response_model=NearbySupplierListResponse)
async def get_nearby_suppliers(
    lat: float = Query(...),
    lon: float = Query(...),
    radius: float = Query(DEFAULT_SEARCH_RADIUS_KM),
    db: AsyncSession = Depends(get_db)
):
    """Online suppliers within radius km, closest first"""
    try:
        resolver = GeoProximityResolver(SqlAlchemyProximityRepository(db))
        nearby = await resolver.find_nearby_suppliers(lat, lon, radius)

        suppliers = []
        for entry in nearby:
            supplier_dict = supplier_profile_to_dict(entry.supplier, entry.user)
            supplier_dict['distance_km'] = entry.distance_km
            suppliers.append(safe_model_validate(NearbySupplierResponse, supplier_dict))

        return NearbySupplierListResponse(suppliers=suppliers, total=len(suppliers), radius_km=radius)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error finding nearby suppliers: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to find nearby suppliers"
        )


@router.patch("/{supplier_id}/status", response_model=SupplierProfileResponse)
async def update_supplier_status(
    supplier_id: str,
    status_update: SupplierStatusUpdate,
    db: AsyncSession = Depends(get_db)
):
    """Go online or offline"""
    try:
        supplier = await get_supplier_or_404(supplier_id, db)
        supplier.is_online = status_update.is_online
        supplier.updated_at = utcnow()

        await db.commit()
        await db.refresh(supplier)
        logger.info(f"Supplier {supplier.id} is now {'online' if supplier.is_online else 'offline'}")

        return safe_model_validate(SupplierProfileResponse, supplier_profile_to_dict(supplier))

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating supplier status: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update supplier status"
        )


@router.get("/{supplier_id}/stats", response_model=SupplierStatsResponse)
async def get_supplier_stats(
    supplier_id: str,
    db: AsyncSession = Depends(get_db)
):
    """Order counts, revenue over non-cancelled orders and rating from order reviews"""
    try:
        supplier = await get_supplier_or_404(supplier_id, db)

        result = await db.execute(
            select(
                func.count(Order.id),
                func.coalesce(func.sum(Order.total_amount), 0.0)
            ).where(
                and_(
                    Order.supplier_profile_id == supplier.id,
                    Order.status != OrderStatus.CANCELLED.value
                )
            )
        )
        total_orders, total_revenue = result.first()

        result = await db.execute(
            select(func.count(Order.id)).where(
                and_(
                    Order.supplier_profile_id == supplier.id,
                    Order.status.in_([s.value for s in ACTIVE_STATUSES])
                )
            )
        )
        active_orders = result.scalar_one()

        result = await db.execute(
            select(func.avg(Review.rating), func.count(Review.id))
            .join(Order, Review.order_id == Order.id)
            .where(
                and_(
                    Order.supplier_profile_id == supplier.id,
                    Review.reviewed_user_id == supplier.user_profile_id
                )
            )
        )
        avg_rating, total_reviews = result.first()

        return SupplierStatsResponse(
            supplier_id=str(supplier.id),
            total_orders=int(total_orders or 0),
            active_orders=int(active_orders or 0),
            total_revenue=round(float(total_revenue or 0.0), 2),
            average_rating=round(float(avg_rating or 0.0), 2),
            total_reviews=int(total_reviews or 0)
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting supplier stats: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get supplier stats"
        )
