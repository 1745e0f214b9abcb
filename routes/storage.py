from fastapi import APIRouter, Depends, File, UploadFile

from core.config import settings
from core.errors import AppError, ValidationFailed
from schemas.storage import UploadResponse
from security.auth import AuthUser, get_current_user
from services.cloudinary import ALLOWED_CONTENT_TYPES, cloudinary_service

router = APIRouter(prefix="/storage", tags=["storage"])


@router.post("/upload", response_model=UploadResponse)
def upload_image(file: UploadFile = File(...), user: AuthUser = Depends(get_current_user)):
    """Upload a payment proof (shoppers) or a product image (admins) and return its URL."""
    if file.content_type not in ALLOWED_CONTENT_TYPES:
        raise ValidationFailed("file", "Only JPEG, PNG, WebP and GIF images are allowed")
    # Never buffer more than one byte past the limit
    data = file.file.read(settings.MAX_UPLOAD_BYTES + 1)
    if not data:
        raise ValidationFailed("file", "File is empty")
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise ValidationFailed("file", f"File exceeds {settings.MAX_UPLOAD_BYTES} bytes")

    path = "products" if user.is_admin else f"payment-proofs/{user.id}"
    ok, url, _ = cloudinary_service.upload(data, path)
    if not ok:
        raise AppError("Failed to upload image", status_code=502)
    return {"success": True, "url": url, "message": "Image uploaded successfully"}
