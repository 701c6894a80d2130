import io

import httpx
import pytest
from PIL import Image

from services.image_loader import ImageLoader, is_remote_reference


@pytest.mark.asyncio
async def test_loads_storage_path_and_downscales(media_dir):
    loader = ImageLoader(media_dir=media_dir, max_edge=100)

    image = await loader.load("profile_images/u1/profile.png")

    assert image.size == (100, 50)


@pytest.mark.asyncio
async def test_missing_storage_path_raises(media_dir):
    with pytest.raises(FileNotFoundError):
        await ImageLoader(media_dir=media_dir).load("profile_images/u1/missing.png")


@pytest.mark.asyncio
async def test_storage_path_cannot_escape_media_dir(media_dir):
    with pytest.raises(ValueError):
        await ImageLoader(media_dir=media_dir).load("../secrets.png")


@pytest.mark.asyncio
async def test_non_image_bytes_raise_value_error(media_dir):
    (media_dir / "notes.txt").write_text("not an image")

    with pytest.raises(ValueError):
        await ImageLoader(media_dir=media_dir).load("notes.txt")


@pytest.mark.asyncio
async def test_fetches_remote_reference_with_injected_client(media_dir):
    buf = io.BytesIO()
    Image.new("RGB", (40, 80), (0, 0, 255)).save(buf, format="PNG")
    payload = buf.getvalue()

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/avatar.png"
        return httpx.Response(200, content=payload)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        loader = ImageLoader(media_dir=media_dir, max_edge=20, client=client)
        image = await loader.load("https://cdn.example.com/avatar.png")

    assert image.size == (10, 20)


@pytest.mark.asyncio
async def test_remote_error_status_raises(media_dir):
    transport = httpx.MockTransport(lambda request: httpx.Response(404))
    async with httpx.AsyncClient(transport=transport) as client:
        loader = ImageLoader(media_dir=media_dir, client=client)
        with pytest.raises(httpx.HTTPStatusError):
            await loader.load("https://cdn.example.com/missing.png")


def test_is_remote_reference():
    assert is_remote_reference("HTTPS://cdn.example.com/a.png")
    assert not is_remote_reference("profile_images/u1/profile.jpg")
