import pytest
from fastapi import HTTPException

from utils.media_validation import normalize_image_reference


@pytest.mark.parametrize("value", [None, "", "   "])
def test_empty_references_mean_removal(value):
    assert normalize_image_reference(value) is None


@pytest.mark.parametrize(
    "value",
    ["https://cdn.example.com/u1.jpg", "profile_images/u1/profile.jpg", "  avatars/a.png  "],
)
def test_valid_references_are_kept(value):
    assert normalize_image_reference(value) == value.strip()


@pytest.mark.parametrize(
    "value",
    ["ftp://example.com/a.png", "https://", "/etc/passwd", "a/../../b.png", "x" * 3000],
)
def test_invalid_references_are_rejected(value):
    with pytest.raises(HTTPException) as info:
        normalize_image_reference(value)
    assert info.value.status_code == 400
