"""
Image validation and fingerprinting.

Rejects uploads before any model call is made. Fingerprints are SHA-256 hex
digests of the raw image bytes and key the training corpus.
"""

import hashlib
from typing import Optional, Sequence

from huntr.core.config import settings
from huntr.services.base import ValidationError

SERVICE_NAME = "ImageValidation"


def fingerprint(data: bytes) -> str:
    """SHA-256 hex digest of the image bytes."""
    return hashlib.sha256(data).hexdigest()


def hash_ip(ip_address: Optional[str]) -> Optional[str]:
    """Anonymised client address for training provenance."""
    if not ip_address:
        return None
    return hashlib.sha256(ip_address.encode("utf-8")).hexdigest()


def validate_image(
    data: Optional[bytes],
    mime_type: Optional[str],
    max_bytes: Optional[int] = None,
    allowed_types: Optional[Sequence[str]] = None,
) -> None:
    """
    Check one uploaded image.

    Raises:
        ValidationError: empty image, over the size limit, or unsupported type
    """
    max_bytes = max_bytes if max_bytes is not None else settings.max_image_bytes
    allowed_types = allowed_types if allowed_types is not None else settings.allowed_image_types

    if not data:
        raise ValidationError(SERVICE_NAME, "Image validation failed: No image file provided")

    if len(data) > max_bytes:
        raise ValidationError(
            SERVICE_NAME,
            f"Image validation failed: Image exceeds {max_bytes // (1024 * 1024)}MB limit",
            details={"size": len(data), "max_bytes": max_bytes},
        )

    if (mime_type or "").lower() not in allowed_types:
        raise ValidationError(
            SERVICE_NAME,
            "Image validation failed: Only JPEG, PNG, and WebP images are allowed",
            details={"mime_type": mime_type},
        )


def validate_batch_size(count: int, max_images: Optional[int] = None) -> None:
    """Raises ValidationError unless 1 <= count <= max_images."""
    max_images = max_images if max_images is not None else settings.max_batch_images
    if count < 1:
        raise ValidationError(SERVICE_NAME, "No image files provided")
    if count > max_images:
        raise ValidationError(
            SERVICE_NAME,
            f"Maximum {max_images} images allowed",
            details={"count": count},
        )


def validate_rating(rating: Optional[int]) -> None:
    if rating is not None and not 1 <= rating <= 5:
        raise ValidationError(SERVICE_NAME, "Rating must be between 1 and 5", details={"rating": rating})
