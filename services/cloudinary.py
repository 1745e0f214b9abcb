import logging
import uuid
from typing import Optional, Tuple

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

from core.config import settings

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = ("image/jpeg", "image/png", "image/webp", "image/gif")


class CloudinaryService:
    def __init__(self):
        cloudinary.config(
            cloud_name=settings.CLOUDINARY_CLOUD_NAME,
            api_key=settings.CLOUDINARY_API_KEY,
            api_secret=settings.CLOUDINARY_API_SECRET,
            secure=True
        )

    def upload(self, file_data: bytes, path: str) -> Tuple[bool, Optional[str], Optional[str]]:
        """
        Upload an image under ``path`` and return its public URL.

        Only the URL is ever persisted by the application.

        Returns:
            Tuple of (success: bool, url: Optional[str], error: Optional[str])
        """
        try:
            result = cloudinary.uploader.upload(
                file_data,
                public_id=uuid.uuid4().hex,
                folder=path,
                resource_type="image",
                quality="auto",
                fetch_format="auto"
            )
            return True, result.get("secure_url"), None

        except CloudinaryError as e:
            logger.warning("Cloudinary upload to %s failed: %s", path, e)
            return False, None, str(e)
        except Exception as e:
            logger.exception("Unexpected error uploading to %s", path)
            return False, None, f"Unexpected error: {str(e)}"


# Global instance
cloudinary_service = CloudinaryService()
