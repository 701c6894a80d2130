"""Validation helpers for profile image references sent by clients."""

from typing import Optional
from urllib.parse import urlparse

from fastapi import HTTPException

MAX_REFERENCE_LENGTH = 2048
ALLOWED_URL_SCHEMES = {"http", "https"}


def normalize_image_reference(reference: Optional[str]) -> Optional[str]:
    """Return a cleaned image reference, or None when the client sent an empty one.

    A reference is either an http(s) URL with a host or a relative storage
    path (e.g. `profile_images/<uid>/profile.jpg`). Absolute paths and `..`
    segments are rejected so a storage path cannot leave the media directory.
    """
    if reference is None:
        return None
    cleaned = reference.strip()
    if not cleaned:
        return None
    if len(cleaned) > MAX_REFERENCE_LENGTH:
        raise HTTPException(status_code=400, detail="Image reference is too long.")

    if "://" in cleaned:
        parsed = urlparse(cleaned)
        if parsed.scheme.lower() not in ALLOWED_URL_SCHEMES or not parsed.netloc:
            raise HTTPException(status_code=400, detail=f"Unsupported image URL: {cleaned}")
        return cleaned

    if cleaned.startswith(("/", "\\")) or ".." in cleaned.replace("\\", "/").split("/"):
        raise HTTPException(status_code=400, detail="Storage path must be relative to the media directory.")
    return cleaned
