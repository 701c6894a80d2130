"""Resolve image references to decoded Pillow images for the profile image cache.

A reference is either an `http(s)` URL, fetched with httpx, or a storage path
relative to the media directory, read with aiofiles. The decoded image is downscaled
to fit within `max_edge` x `max_edge` while preserving aspect ratio.

Public class: `ImageLoader`

Example:
    loader = ImageLoader(media_dir="media", max_edge=256)
    handle = await loader.load("profile_images/u1/profile.jpg")
"""
from __future__ import annotations

import asyncio
import io
from pathlib import Path
from typing import Optional

import aiofiles
import httpx
from PIL import Image

DEFAULT_MAX_EDGE = 256
DEFAULT_FETCH_TIMEOUT = 10.0


def is_remote_reference(reference: str) -> bool:
    return reference.lower().startswith(("http://", "https://"))


class ImageLoader:
    """Load and decode images by reference.

    Args:
        media_dir: Root directory for storage-path references; defaults to
            `./media` under the working directory.
        max_edge: Maximum width and height of the returned image.
        timeout: Seconds allowed for fetching a remote reference.
        client: Optional `httpx.AsyncClient` for dependency injection.
    """

    def __init__(
        self,
        media_dir: Optional[Path | str] = None,
        max_edge: int = DEFAULT_MAX_EDGE,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.media_dir = Path(media_dir if media_dir is not None else Path.cwd() / "media").expanduser().resolve()
        self.max_edge = max_edge
        self.timeout = timeout
        self.client = client

    async def load(self, reference: str) -> Image.Image:
        """Return a decoded, downscaled image for `reference`.

        Raises:
            FileNotFoundError: If a storage path does not exist.
            httpx.HTTPError: If a remote reference cannot be fetched.
            ValueError: If the bytes are not a supported image or the path
                escapes the media directory.
        """
        if is_remote_reference(reference):
            raw = await self._fetch(reference)
        else:
            raw = await self._read(reference)
        # decoding is blocking -> run in thread
        return await asyncio.to_thread(self._decode, raw)

    async def _fetch(self, url: str) -> bytes:
        if self.client is not None:
            response = await self.client.get(url, timeout=self.timeout)
            response.raise_for_status()
            return response.content
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.content

    async def _read(self, storage_path: str) -> bytes:
        path = (self.media_dir / storage_path).resolve()
        if self.media_dir not in path.parents:
            raise ValueError(f"Storage path escapes media directory: {storage_path!r}")
        async with aiofiles.open(path, "rb") as f:
            return await f.read()

    def _decode(self, raw: bytes) -> Image.Image:
        try:
            src = Image.open(io.BytesIO(raw))
            src.load()
        except Exception as exc:
            raise ValueError("Image bytes are not a supported image format") from exc

        if src.mode not in ("RGBA", "RGB"):
            src = src.convert("RGBA")
        src.thumbnail((self.max_edge, self.max_edge), Image.LANCZOS)
        return src
