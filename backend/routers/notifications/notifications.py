from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from config import get_db
from models import UserProfile, Notification
from utils.exceptions import NotificationNotFound, UserNotFound
from utils.response_helpers import parse_uuid, safe_model_validate, safe_model_validate_list
from .schemas import NotificationResponse, NotificationListResponse
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("/{user_id}", response_model=NotificationListResponse)
async def get_notifications(
    user_id: str,
    unread_only: bool = Query(False),
    db: AsyncSession = Depends(get_db)
):
    """A user's in-app notifications, newest first"""
    try:
        user_uuid = parse_uuid(user_id)
        user = await db.get(UserProfile, user_uuid) if user_uuid else None
        if not user:
            raise UserNotFound()

        query = select(Notification).where(Notification.user_profile_id == user.id)
        if unread_only:
            query = query.where(Notification.is_read == False)
        result = await db.execute(query.order_by(Notification.created_at.desc(), Notification.id.desc()))
        notifications = result.scalars().all()

        return NotificationListResponse(
            notifications=safe_model_validate_list(NotificationResponse, notifications),
            total=len(notifications),
            unread=sum(1 for n in notifications if not n.is_read)
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting notifications for {user_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get notifications"
        )


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: str,
    db: AsyncSession = Depends(get_db)
):
    try:
        notification_uuid = parse_uuid(notification_id)
        notification = await db.get(Notification, notification_uuid) if notification_uuid else None
        if not notification:
            raise NotificationNotFound()

        notification.is_read = True
        await db.commit()
        await db.refresh(notification)

        return safe_model_validate(NotificationResponse, notification)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error marking notification {notification_id} read: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update notification"
        )
