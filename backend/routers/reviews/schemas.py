from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class ReviewCreate(BaseModel):
    order_id: str
    reviewer_user_id: str
    reviewed_user_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None
    quality_rating: Optional[int] = Field(None, ge=1, le=5)
    delivery_rating: Optional[int] = Field(None, ge=1, le=5)


class ReviewResponse(BaseModel):
    id: str
    order_id: str
    reviewer_user_id: str
    reviewed_user_id: str
    rating: int
    comment: Optional[str] = None
    quality_rating: Optional[int] = None
    delivery_rating: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ReviewWithUserResponse(ReviewResponse):
    reviewer_name: Optional[str] = None
    reviewer_role: Optional[str] = None


class ReviewListResponse(BaseModel):
    reviews: List[ReviewWithUserResponse]
    total: int
