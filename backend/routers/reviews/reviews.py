from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select, and_
from sqlalchemy.orm import selectinload
from config import get_db
from models import UserProfile, VendorProfile, SupplierProfile, Order, Review
from services.order_lifecycle import OrderStatus
from utils.exceptions import DuplicateReview, OrderNotFound, UserNotFound, ValidationError
from utils.response_helpers import parse_uuid, safe_model_validate
from routers.users.helpers import user_helpers
from .schemas import ReviewCreate, ReviewResponse, ReviewWithUserResponse, ReviewListResponse
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reviews", tags=["Reviews"])


@router.post("", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
async def create_review(
    review_data: ReviewCreate,
    db: AsyncSession = Depends(get_db)
):
    """
    Rate the other party of a delivered order. Each party may review an order once.
    """
    try:
        order_uuid = parse_uuid(review_data.order_id)
        reviewer_uuid = parse_uuid(review_data.reviewer_user_id)
        reviewed_uuid = parse_uuid(review_data.reviewed_user_id)
        if reviewer_uuid is None or reviewed_uuid is None:
            raise UserNotFound()

        order = None
        if order_uuid:
            result = await db.execute(
                select(Order)
                .options(
                    selectinload(Order.vendor_profile).selectinload(VendorProfile.user_profile),
                    selectinload(Order.supplier_profile).selectinload(SupplierProfile.user_profile)
                )
                .where(Order.id == order_uuid)
            )
            order = result.scalar_one_or_none()
        if not order:
            raise OrderNotFound()

        if order.status != OrderStatus.DELIVERED.value:
            raise ValidationError("Only delivered orders can be reviewed", field="order_id")

        vendor_user_id = order.vendor_profile.user_profile_id
        supplier_user_id = order.supplier_profile.user_profile_id
        parties = {vendor_user_id: supplier_user_id, supplier_user_id: vendor_user_id}
        if reviewer_uuid not in parties:
            raise ValidationError("Reviewer is not a party to this order", field="reviewer_user_id")
        if parties[reviewer_uuid] != reviewed_uuid:
            raise ValidationError("Reviewed user must be the other party to this order", field="reviewed_user_id")

        # Check if review already exists
        result = await db.execute(
            select(Review.id).where(
                and_(
                    Review.order_id == order.id,
                    Review.reviewer_user_id == reviewer_uuid
                )
            )
        )
        if result.scalar_one_or_none():
            raise DuplicateReview()

        review = Review(
            order_id=order.id,
            reviewer_user_id=reviewer_uuid,
            reviewed_user_id=reviewed_uuid,
            **review_data.model_dump(exclude={"order_id", "reviewer_user_id", "reviewed_user_id"})
        )
        db.add(review)
        await db.flush()

        await user_helpers.update_user_rating(reviewed_uuid, db)
        await db.commit()
        await db.refresh(review)
        logger.info(f"User {reviewer_uuid} reviewed {reviewed_uuid} for order {order.order_number}: {review.rating}/5")

        return safe_model_validate(ReviewResponse, review)

    except HTTPException:
        raise
    except IntegrityError as e:
        await db.rollback()
        logger.warning(f"Duplicate review for order {review_data.order_id}: {str(e)}")
        raise DuplicateReview()
    except Exception as e:
        logger.error(f"Error creating review: {str(e)}")
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create review"
        )


@router.get("/user/{user_id}", response_model=ReviewListResponse)
async def get_user_reviews(
    user_id: str,
    db: AsyncSession = Depends(get_db)
):
    """Reviews received by a user, newest first"""
    try:
        user_uuid = parse_uuid(user_id)
        user = await db.get(UserProfile, user_uuid) if user_uuid else None
        if not user:
            raise UserNotFound()

        result = await db.execute(
            select(Review, UserProfile)
            .join(UserProfile, Review.reviewer_user_id == UserProfile.id)
            .where(Review.reviewed_user_id == user.id)
            .order_by(Review.created_at.desc(), Review.id.desc())
        )

        reviews = []
        for review, reviewer_profile in result.all():
            review_dict = {column.key: getattr(review, column.key) for column in Review.__table__.columns}
            review_dict.update({
                "reviewer_name": reviewer_profile.name,
                "reviewer_role": reviewer_profile.role
            })
            reviews.append(safe_model_validate(ReviewWithUserResponse, review_dict))

        return ReviewListResponse(reviews=reviews, total=len(reviews))

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting user reviews: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get user reviews"
        )
