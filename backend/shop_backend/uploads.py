import os
import time
from urllib.parse import urljoin

from flask import current_app, request
from werkzeug.utils import secure_filename

from shop_backend.errors import StoreError, ValidationError

ALLOWED_IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}


def allowed_image_extension(filename: str) -> bool:
    extension = os.path.splitext(filename)[1].lower().lstrip(".")
    if not extension:
        return False
    return extension in ALLOWED_IMAGE_EXTENSIONS


def save_product_image(image_file, field_name: str = "product") -> str:
    """Store an uploaded image and return its generated file name."""
    if not image_file or not getattr(image_file, "filename", ""):
        raise ValidationError.for_field(field_name, "No file uploaded")

    original_filename = secure_filename(image_file.filename)
    if not original_filename:
        raise ValidationError.for_field(field_name, "Please choose a valid file name.")

    if not allowed_image_extension(original_filename):
        raise ValidationError.for_field(
            field_name,
            "Unsupported image format. Upload PNG, JPG, JPEG, GIF, or WEBP files.",
        )

    extension = os.path.splitext(original_filename)[1].lower()
    unique_filename = f"{field_name}_{int(time.time() * 1000)}{extension}"
    destination = os.path.join(current_app.config["UPLOAD_FOLDER"], unique_filename)

    try:
        image_file.save(destination)
    except OSError as exc:
        raise StoreError(
            "We could not store the uploaded image. Please try again.", str(exc)
        ) from exc

    return unique_filename


def build_image_url(filename: str) -> str:
    return urljoin(request.host_url, f"images/{filename}")
