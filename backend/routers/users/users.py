from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from config import get_db
from models import UserProfile, utcnow
from utils.exceptions import UserNotFound
from utils.response_helpers import parse_uuid, safe_model_validate, user_with_profiles_to_dict, reject_null_columns
from .schemas import UserProfileUpdate, UserWithProfileResponse
from .helpers import user_helpers
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get("/{user_id}", response_model=UserWithProfileResponse)
async def get_user(
    user_id: str,
    db: AsyncSession = Depends(get_db)
):
    """Get a user with their vendor or supplier profile"""
    try:
        user_uuid = parse_uuid(user_id)
        user = await user_helpers.get_user_with_profiles(user_uuid, db) if user_uuid else None
        if not user:
            raise UserNotFound()

        return safe_model_validate(UserWithProfileResponse, user_with_profiles_to_dict(user))

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting user {user_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get user"
        )


@router.patch("/{user_id}", response_model=UserWithProfileResponse)
async def update_user(
    user_id: str,
    user_update: UserProfileUpdate,
    db: AsyncSession = Depends(get_db)
):
    """Update name, email, address or location of a user"""
    try:
        user_uuid = parse_uuid(user_id)
        user = await user_helpers.get_user_with_profiles(user_uuid, db) if user_uuid else None
        if not user:
            raise UserNotFound()

        update_data = user_update.model_dump(exclude_unset=True)
        reject_null_columns(UserProfile, update_data)
        for field, value in update_data.items():
            setattr(user, field, value)
        user.updated_at = utcnow()

        await db.commit()
        user = await user_helpers.get_user_with_profiles(user_uuid, db)
        logger.info(f"Updated user {user_id}: {', '.join(update_data) or 'no changes'}")

        return safe_model_validate(UserWithProfileResponse, user_with_profiles_to_dict(user))

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating user {user_id}: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update user"
        )
