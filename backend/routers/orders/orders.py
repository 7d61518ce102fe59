from fastapi import APIRouter, Depends, HTTPException, status, BackgroundTasks
from sqlalchemy.ext.asyncio import AsyncSession
from config import get_db
from services.order_lifecycle import OrderLifecycleManager, OrderWithDetails, OrderStatus
from utils.response_helpers import safe_model_validate, vendor_profile_to_dict, supplier_profile_to_dict
from utils.notifications import (
    send_email, send_sms, record_notification,
    get_order_placed_email, get_order_placed_sms,
    get_order_status_email, get_order_status_sms
)
from .schemas import OrderCreate, OrderStatusUpdate, OrderWithDetailsResponse, OrderListResponse
from typing import List
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["Orders"])

DELIVERY_STATUSES = {OrderStatus.OUT_FOR_DELIVERY.value, OrderStatus.DELIVERED.value}


def order_details_to_dict(details: OrderWithDetails) -> dict:
    order = details.order
    return {
        'id': str(order.id),
        'vendor_profile_id': str(order.vendor_profile_id),
        'supplier_profile_id': str(order.supplier_profile_id),
        'order_number': order.order_number,
        'items': order.items,
        'total_amount': order.total_amount,
        'status': order.status,
        'is_emergency': order.is_emergency,
        'delivery_address': order.delivery_address,
        'delivery_latitude': order.delivery_latitude,
        'delivery_longitude': order.delivery_longitude,
        'estimated_delivery_time': order.estimated_delivery_time,
        'actual_delivery_time': order.actual_delivery_time,
        'voice_notes': order.voice_notes,
        'notes': order.notes,
        'created_at': order.created_at,
        'updated_at': order.updated_at,
        'vendor': vendor_profile_to_dict(details.vendor, details.vendor_user),
        'supplier': supplier_profile_to_dict(details.supplier, details.supplier_user),
        'is_overdue': details.is_overdue
    }


def to_list_response(orders: List[OrderWithDetails]) -> OrderListResponse:
    return OrderListResponse(
        orders=[safe_model_validate(OrderWithDetailsResponse, order_details_to_dict(o)) for o in orders],
        total=len(orders)
    )


async def notify_order_placed(details: OrderWithDetails, db: AsyncSession, background_tasks: BackgroundTasks):
    """In-app notification plus SMS/email to the supplier for a new order"""
    order = details.order
    order_data = {
        "order_number": order.order_number,
        "items": order.items,
        "total_amount": order.total_amount,
        "is_emergency": order.is_emergency,
        "delivery_address": order.delivery_address,
        "stall_name": details.vendor.stall_name
    }
    supplier_user = details.supplier_user
    phone, email = supplier_user.phone, supplier_user.email

    try:
        if order.is_emergency:
            title, notification_type = "Emergency order received", "emergency"
        else:
            title, notification_type = "New order received", "order"
        record_notification(
            db,
            supplier_user.id,
            title,
            f"{details.vendor.stall_name} placed order {order.order_number} worth ₹{order.total_amount}",
            notification_type,
            {"order_id": str(order.id), "order_number": order.order_number}
        )
        await db.commit()
    except Exception as e:
        logger.error(f"Failed to record notification for order {order_data['order_number']}: {str(e)}")
        await db.rollback()

    if phone:
        background_tasks.add_task(send_sms, phone, get_order_placed_sms(order_data))
    if email:
        subject, body = get_order_placed_email(order_data)
        background_tasks.add_task(send_email, email, subject, body)


async def notify_status_changed(details: OrderWithDetails, db: AsyncSession, background_tasks: BackgroundTasks):
    """In-app notification plus SMS/email to the vendor after a status change"""
    order = details.order
    order_data = {
        "order_number": order.order_number,
        "status": order.status,
        "business_name": details.supplier.business_name
    }
    vendor_user = details.vendor_user
    phone, email = vendor_user.phone, vendor_user.email

    try:
        record_notification(
            db,
            vendor_user.id,
            f"Order {order.order_number} updated",
            get_order_status_sms(order_data),
            "delivery" if order.status in DELIVERY_STATUSES else "order",
            {"order_id": str(order.id), "order_number": order.order_number, "status": order.status}
        )
        await db.commit()
    except Exception as e:
        logger.error(f"Failed to record notification for order {order_data['order_number']}: {str(e)}")
        await db.rollback()

    if phone:
        background_tasks.add_task(send_sms, phone, get_order_status_sms(order_data))
    if email:
        subject, body = get_order_status_email(order_data)
        background_tasks.add_task(send_email, email, subject, body)


@router.post("", response_model=OrderWithDetailsResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    order_data: OrderCreate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db)
):
    """
    Place an order with one supplier. The total is computed from current
    product prices and stock is reserved in the same transaction.
    """
    try:
        manager = OrderLifecycleManager(db)
        order = await manager.create_order(
            vendor_id=order_data.vendor_id,
            supplier_id=order_data.supplier_id,
            items=[item.model_dump() for item in order_data.items],
            delivery_address=order_data.delivery_address,
            is_emergency=order_data.is_emergency,
            notes=order_data.notes,
            delivery_latitude=order_data.delivery_latitude,
            delivery_longitude=order_data.delivery_longitude,
            voice_notes=order_data.voice_notes
        )
        details = await manager.get_order(order.id)
        response = safe_model_validate(OrderWithDetailsResponse, order_details_to_dict(details))
        await notify_order_placed(details, db, background_tasks)

        return response

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating order: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create order"
        )


@router.get("/emergency", response_model=OrderListResponse)
async def get_emergency_orders(
    db: AsyncSession = Depends(get_db)
):
    """Open emergency orders, oldest first"""
    try:
        return to_list_response(await OrderLifecycleManager(db).get_emergency_orders())

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting emergency orders: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get emergency orders"
        )


@router.get("/vendor/{vendor_id}", response_model=OrderListResponse)
async def get_vendor_orders(
    vendor_id: str,
    db: AsyncSession = Depends(get_db)
):
    try:
        return to_list_response(await OrderLifecycleManager(db).list_vendor_orders(vendor_id))

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting orders for vendor {vendor_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get vendor orders"
        )


@router.get("/supplier/{supplier_id}", response_model=OrderListResponse)
async def get_supplier_orders(
    supplier_id: str,
    db: AsyncSession = Depends(get_db)
):
    try:
        return to_list_response(await OrderLifecycleManager(db).list_supplier_orders(supplier_id))

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting orders for supplier {supplier_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get supplier orders"
        )


@router.get("/{order_id}", response_model=OrderWithDetailsResponse)
async def get_order(
    order_id: str,
    db: AsyncSession = Depends(get_db)
):
    try:
        details = await OrderLifecycleManager(db).get_order(order_id)
        return safe_model_validate(OrderWithDetailsResponse, order_details_to_dict(details))

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting order {order_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get order"
        )


@router.patch("/{order_id}/status", response_model=OrderWithDetailsResponse)
async def update_order_status(
    order_id: str,
    status_update: OrderStatusUpdate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db)
):
    """Move an order to its next status; invalid moves are rejected with 409"""
    try:
        manager = OrderLifecycleManager(db)
        order = await manager.update_order_status(order_id, status_update.status)
        details = await manager.get_order(order.id)
        response = safe_model_validate(OrderWithDetailsResponse, order_details_to_dict(details))
        await notify_status_changed(details, db, background_tasks)

        return response

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating status of order {order_id}: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update order status"
        )
