from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select
from config import get_db
from models import UserProfile, VendorProfile, SupplierProfile
from routers.users.helpers import user_helpers
from routers.users.schemas import UserWithProfileResponse
from utils.exceptions import Conflict, UserNotFound
from utils.response_helpers import safe_model_validate, user_with_profiles_to_dict
from .schemas import UserRegister, UserLogin
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


@router.post("/register", response_model=UserWithProfileResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    db: AsyncSession = Depends(get_db)
):
    """
    Create a user together with their vendor or supplier profile
    """
    try:
        existing_user = await db.execute(
            select(UserProfile.id).where(UserProfile.phone == user_data.phone)
        )
        if existing_user.scalar_one_or_none():
            raise Conflict("Phone number already registered")

        new_user_profile = UserProfile(
            phone=user_data.phone,
            name=user_data.name,
            email=user_data.email,
            role=user_data.role,
            latitude=user_data.latitude,
            longitude=user_data.longitude,
            address=user_data.address
        )
        db.add(new_user_profile)
        await db.flush()

        if user_data.role == "supplier":
            db.add(SupplierProfile(
                user_profile_id=new_user_profile.id,
                business_name=user_data.business_name,
                business_type=user_data.business_type,
                delivery_radius_km=user_data.delivery_radius_km,
                min_order_amount=user_data.min_order_amount,
                avg_delivery_time_minutes=user_data.avg_delivery_time_minutes
            ))
        else:
            db.add(VendorProfile(
                user_profile_id=new_user_profile.id,
                stall_name=user_data.stall_name,
                food_type=user_data.food_type,
                daily_budget=user_data.daily_budget
            ))

        await db.commit()
        logger.info(f"Registered {user_data.role} {new_user_profile.id}")

        user = await user_helpers.get_user_with_profiles(new_user_profile.id, db)
        return safe_model_validate(UserWithProfileResponse, user_with_profiles_to_dict(user))

    except HTTPException:
        raise
    except IntegrityError as e:
        await db.rollback()
        logger.error(f"Registration conflict for phone {user_data.phone}: {str(e)}")
        raise Conflict("Phone number already registered")
    except Exception as e:
        logger.error(f"Registration failed: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to register user"
        )


@router.post("/login", response_model=UserWithProfileResponse)
async def login(
    login_data: UserLogin,
    db: AsyncSession = Depends(get_db)
):
    """Look a user up by phone number"""
    try:
        result = await db.execute(
            select(UserProfile.id).where(UserProfile.phone == login_data.phone)
        )
        user_id = result.scalar_one_or_none()
        if not user_id:
            raise UserNotFound("No account found for this phone number")

        user = await user_helpers.get_user_with_profiles(user_id, db)
        return safe_model_validate(UserWithProfileResponse, user_with_profiles_to_dict(user))

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Login failed: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to log in"
        )
