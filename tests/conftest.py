"""Shared fixtures: a fresh SQLite document store per test and small image helpers."""

import io
from pathlib import Path

import pytest
from PIL import Image

from dal.post_dal import PostDAL
from dal.profile_dal import ProfileDAL
from dal.record_store import RecordStore
from utils.database_init import AsyncDatabaseInitializer


@pytest.fixture
def db_initializer(tmp_path: Path) -> AsyncDatabaseInitializer:
    return AsyncDatabaseInitializer(tmp_path / "db", reset=True)


@pytest.fixture
def store(db_initializer: AsyncDatabaseInitializer) -> RecordStore:
    return RecordStore(db_initializer)


@pytest.fixture
def profiles(store: RecordStore) -> ProfileDAL:
    return ProfileDAL(store)


@pytest.fixture
def posts(store: RecordStore) -> PostDAL:
    return PostDAL(store)


@pytest.fixture
def media_dir(tmp_path: Path) -> Path:
    """Media root holding one 600x300 PNG at `profile_images/u1/profile.png`."""
    root = tmp_path / "media"
    target = root / "profile_images" / "u1"
    target.mkdir(parents=True)
    buf = io.BytesIO()
    Image.new("RGB", (600, 300), (200, 30, 30)).save(buf, format="PNG")
    (target / "profile.png").write_bytes(buf.getvalue())
    return root
