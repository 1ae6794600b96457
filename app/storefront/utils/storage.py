import os
import random
import time
import logging
from typing import Optional

from fastapi import UploadFile

from storefront.config import settings
from storefront.errors import InvalidRequestError, UploadTooLargeError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def ensure_upload_dir():
    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    return settings.UPLOAD_DIR

def is_allowed_image(upload: UploadFile) -> bool:
    ext = os.path.splitext(upload.filename or "")[1].lower().lstrip(".")
    mimetype = (upload.content_type or "").lower()
    subtype = mimetype.split("/")[-1]
    return ext in settings.ALLOWED_IMAGE_TYPES and mimetype.startswith("image/") and subtype in settings.ALLOWED_IMAGE_TYPES

def generate_filename(upload: UploadFile, field_name: str = "productImage") -> str:
    ext = os.path.splitext(upload.filename or "")[1].lower()
    unique_suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    return f"{field_name}-{unique_suffix}{ext}"

def save_image(upload: Optional[UploadFile], field_name: str = "productImage") -> Optional[str]:
    """
    Сохраняет загруженное изображение на диск и возвращает его публичный путь
    вида /uploads/<имя>. Если файл не передан, возвращает None.
    """
    if upload is None or not upload.filename:
        return None

    if not is_allowed_image(upload):
        raise InvalidRequestError(
            f"Only images ({', '.join(settings.ALLOWED_IMAGE_TYPES)}) are allowed!"
        )

    filename = generate_filename(upload, field_name)
    path = os.path.join(ensure_upload_dir(), filename)

    written = 0
    with open(path, "wb") as out:
        while True:
            chunk = upload.file.read(CHUNK_SIZE)
            if not chunk:
                break
            written += len(chunk)
            if written > settings.MAX_UPLOAD_SIZE:
                break
            out.write(chunk)

    if written > settings.MAX_UPLOAD_SIZE:
        os.remove(path)
        logger.warning(f"Rejected upload {upload.filename}: larger than {settings.MAX_UPLOAD_SIZE} bytes")
        raise UploadTooLargeError(settings.MAX_UPLOAD_SIZE)

    image_url = f"{settings.UPLOAD_URL_PREFIX}/{filename}"
    logger.info(f"Stored upload {upload.filename} as {image_url} ({written} bytes)")
    return image_url

def image_path(image_url: str) -> str:
    return os.path.join(settings.UPLOAD_DIR, os.path.basename(image_url))

def remove_image(image_url: Optional[str]) -> bool:
    """Best-effort deletion of a stored image; the placeholder is never removed."""
    if not image_url or image_url == settings.PLACEHOLDER_IMAGE:
        return False
    path = image_path(image_url)
    try:
        os.remove(path)
        logger.info(f"Deleted image file {path}")
        return True
    except OSError as e:
        logger.error(f"Error deleting image file {path}: {str(e)}")
        return False
