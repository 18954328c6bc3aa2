from fastapi import status, UploadFile
from supabase import Client
from config import get_supabase_admin_client, SUPABASE_STORAGE_BUCKET
from utils.errors import AppError
import uuid
import os
import logging

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = ["image/jpeg", "image/png", "image/gif", "image/webp"]
MAX_IMAGE_SIZE = 5 * 1024 * 1024


class ImageStorage:
    """Uploads product, profile and dispatch images to Supabase Storage"""

    def __init__(self, bucket_name: str = SUPABASE_STORAGE_BUCKET):
        self.bucket_name = bucket_name
        self._admin_client = None

    @property
    def admin_client(self) -> Client:
        if self._admin_client is None:
            self._admin_client = get_supabase_admin_client()
        return self._admin_client

    async def upload_image(self, folder: str, owner_id: str, file: UploadFile) -> str:
        """
        Upload an image under {folder}/{owner_id}/ and return the public URL
        """
        logger.info(f"Starting {folder} upload for {owner_id}")

        if file.content_type not in ALLOWED_IMAGE_TYPES:
            raise AppError(f"File type {file.content_type} not allowed", status.HTTP_400_BAD_REQUEST)

        file_content = await file.read()
        if len(file_content) > MAX_IMAGE_SIZE:
            raise AppError("File size must be less than 5MB", status.HTTP_400_BAD_REQUEST)

        await file.seek(0)

        file_extension = os.path.splitext(file.filename)[1] if file.filename else '.jpg'
        unique_filename = f"{folder}/{owner_id}/{uuid.uuid4()}{file_extension}"

        try:
            bucket = self.admin_client.storage.from_(self.bucket_name)
            bucket.upload(
                path=unique_filename,
                file=file_content,
                file_options={"content-type": file.content_type}
            )
            public_url = bucket.get_public_url(unique_filename)
        except Exception as upload_error:
            logger.error(f"Upload error: {str(upload_error)}")
            raise AppError(f"Upload failed: {str(upload_error)}", status.HTTP_500_INTERNAL_SERVER_ERROR)

        logger.info(f"Uploaded {unique_filename}")
        return public_url

    async def delete_image(self, image_url: str) -> bool:
        """
        Delete a previously uploaded image. Failures are logged, never raised.
        """
        if not image_url or "/storage/v1/object/public/" not in image_url:
            return False

        try:
            parts = image_url.split("/storage/v1/object/public/")[1]
            path_parts = parts.split("/", 1)
            if len(path_parts) < 2:
                return False

            file_path = path_parts[1].split("?")[0]
            self.admin_client.storage.from_(self.bucket_name).remove([file_path])
            return True

        except Exception as e:
            logger.warning(f"Error deleting image {image_url}: {str(e)}")
            return False


image_storage = ImageStorage()
