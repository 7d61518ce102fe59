from fastapi import HTTPException, status, UploadFile
from config import get_supabase_storage, SUPABASE_STORAGE_BUCKET
from models import UserProfile, Review
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
from utils.exceptions import StorageError, ValidationError
import uuid
import os
import logging

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = ["image/jpeg", "image/png", "image/gif", "image/webp"]
MAX_IMAGE_BYTES = 5 * 1024 * 1024


class UserHelpers:
    """Helper functions for user, rating and media operations"""

    def __init__(self):
        self._storage = None

    @property
    def storage(self):
        if self._storage is None:
            self._storage = get_supabase_storage()
        return self._storage

    async def upload_image(self, folder: str, owner_id: str, file: UploadFile) -> str:
        """
        Upload an image to Supabase Storage under <folder>/<owner_id>/ and return the public URL
        """
        logger.info(f"Starting upload to {folder} for {owner_id}")

        if file.content_type not in ALLOWED_IMAGE_TYPES:
            raise ValidationError(f"File type {file.content_type} not allowed", field="file")

        file_content = await file.read()
        if len(file_content) > MAX_IMAGE_BYTES:
            raise ValidationError("File size must be less than 5MB", field="file")

        file_extension = os.path.splitext(file.filename)[1] if file.filename else '.jpg'
        unique_filename = f"{folder}/{owner_id}/{uuid.uuid4()}{file_extension}"

        try:
            bucket = self.storage.from_(SUPABASE_STORAGE_BUCKET)
            response = bucket.upload(
                path=unique_filename,
                file=file_content,
                file_options={"content-type": file.content_type}
            )

            if hasattr(response, 'error') and response.error:
                logger.error(f"Upload error: {response.error}")
                raise StorageError("Failed to upload image")

            public_url = bucket.get_public_url(unique_filename)
            logger.info(f"Uploaded {unique_filename}")
            return public_url

        except HTTPException:
            raise
        except Exception as upload_error:
            logger.error(f"Upload error: {str(upload_error)}")
            raise StorageError("Failed to upload image")

    def delete_image(self, image_url: str) -> bool:
        """
        Delete a previously uploaded image; failures are logged, not raised
        """
        marker = f"/storage/v1/object/public/{SUPABASE_STORAGE_BUCKET}/"
        if marker not in image_url:
            return False
        file_path = image_url.split(marker, 1)[1].split("?", 1)[0]
        try:
            self.storage.from_(SUPABASE_STORAGE_BUCKET).remove([file_path])
            return True
        except Exception as e:
            logger.warning(f"Failed to delete image {file_path}: {str(e)}")
            return False

    async def get_user_with_profiles(self, user_profile_id, db: AsyncSession):
        result = await db.execute(
            select(UserProfile)
            .options(
                selectinload(UserProfile.vendor_profile),
                selectinload(UserProfile.supplier_profile)
            )
            .where(UserProfile.id == user_profile_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def update_user_rating(self, user_profile_id, db: AsyncSession):
        """
        Recompute a user's average rating and total reviews count; the caller commits
        """
        result = await db.execute(
            select(func.avg(Review.rating), func.count(Review.id))
            .where(Review.reviewed_user_id == user_profile_id)
        )
        avg_rating, total_reviews = result.first()

        user_profile = await db.get(UserProfile, user_profile_id)
        if user_profile:
            user_profile.rating = round(float(avg_rating or 0.0), 2)
            user_profile.total_reviews = int(total_reviews or 0)


user_helpers = UserHelpers()
