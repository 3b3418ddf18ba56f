"""
Image handling for the `posts` and `avatars` buckets: decode client
payloads, compress with Pillow, upload, and purge by public URL.
"""

import base64
import binascii
import io
import logging
import uuid as _uuid
from typing import Optional

from PIL import Image, ImageOps
from supabase import Client

from config import get_settings

logger = logging.getLogger("globe")

AVATAR_PX = 512


class ImagePayloadError(ValueError):
    pass


def decode_image_payload(payload: str) -> tuple[bytes, str]:
    """`data:<mime>;base64,<data>` or bare base64 → (bytes, mime)."""
    mime = "image/jpeg"
    raw = payload
    if payload.startswith("data:"):
        try:
            header, raw = payload.split(",", 1)
            mime = header.split(":")[1].split(";")[0]
        except (ValueError, IndexError) as exc:
            raise ImagePayloadError("Invalid image data URI") from exc
    if not mime.startswith("image/"):
        raise ImagePayloadError("Only image uploads are supported")
    try:
        return base64.b64decode(raw, validate=True), mime
    except (binascii.Error, ValueError) as exc:
        raise ImagePayloadError("Invalid base64 image data") from exc


def compress_image(data: bytes, mime: str, max_px: Optional[int] = None, quality: Optional[int] = None) -> tuple[bytes, str]:
    """Resize to fit `max_px` and re-encode as JPEG; unreadable input is returned unchanged."""
    settings = get_settings()
    max_px = max_px or settings.image_max_px
    quality = quality or settings.image_quality
    try:
        img = Image.open(io.BytesIO(data))
        img = ImageOps.exif_transpose(img)
        img.thumbnail((max_px, max_px), Image.LANCZOS)
        if img.mode != "RGB":
            img = img.convert("RGB")
        buf = io.BytesIO()
        img.save(buf, format="JPEG", quality=quality, optimize=True)
        return buf.getvalue(), "image/jpeg"
    except OSError:
        return data, mime


def square_avatar(data: bytes, mime: str) -> tuple[bytes, str]:
    """Centre-crop to a square avatar."""
    try:
        img = ImageOps.exif_transpose(Image.open(io.BytesIO(data)))
        img = ImageOps.fit(img.convert("RGB"), (AVATAR_PX, AVATAR_PX), Image.LANCZOS)
        buf = io.BytesIO()
        img.save(buf, format="JPEG", quality=get_settings().image_quality, optimize=True)
        return buf.getvalue(), "image/jpeg"
    except OSError:
        return data, mime


def upload_post_image(db: Client, data: bytes, mime: str, user_id: str) -> str:
    """Compress then upload to the posts bucket; returns the public URL."""
    bucket = get_settings().posts_bucket
    data, mime = compress_image(data, mime)
    path = f"{user_id}/post_{_uuid.uuid4()}.jpg"
    db.storage.from_(bucket).upload(path, data, file_options={"content-type": mime})
    return db.storage.from_(bucket).get_public_url(path)


def upload_avatar(db: Client, data: bytes, mime: str, user_id: str) -> str:
    bucket = get_settings().avatars_bucket
    data, mime = square_avatar(data, mime)
    path = f"{user_id}/avatar.jpg"
    db.storage.from_(bucket).upload(
        path, data, file_options={"content-type": mime, "upsert": "true"}
    )
    return db.storage.from_(bucket).get_public_url(path)


def storage_path(public_url: str, bucket: str) -> Optional[str]:
    marker = "/object/public/" + bucket + "/"
    idx = public_url.find(marker)
    if idx == -1:
        return None  # external URL
    return public_url[idx + len(marker):].split("?", 1)[0]


def delete_public_file(db: Client, public_url: str, bucket: str) -> bool:
    """Best-effort removal of a stored object given its public URL."""
    path = storage_path(public_url, bucket)
    if path is None:
        return False
    try:
        db.storage.from_(bucket).remove([path])
        return True
    except Exception as exc:
        logger.warning("Storage delete failed for %s/%s: %s", bucket, path, exc)
        return False


def purge_user_folder(db: Client, bucket: str, user_id: str) -> int:
    """Remove every object under `<user_id>/` in a bucket. Returns the number removed."""
    try:
        entries = db.storage.from_(bucket).list(user_id)
        paths = [f"{user_id}/{e['name']}" for e in entries or [] if e.get("name")]
        if paths:
            db.storage.from_(bucket).remove(paths)
        return len(paths)
    except Exception as exc:
        logger.warning("Storage purge failed for %s/%s: %s", bucket, user_id, exc)
        return 0
