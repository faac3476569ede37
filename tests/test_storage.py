"""Tests for the image store."""

import re

import pytest

from storage import ImageUpload, InvalidImageError, StorageError, random_image_path

def test_random_image_path_shape():
    path = random_image_path("shoes", "My Photo.PNG")
    assert re.fullmatch(r"shoes/[0-9a-f]{12}_\d{13}\.png", path)
    assert random_image_path("shoes", "a.png") != random_image_path("shoes", "a.png")

def test_random_image_path_rejects_non_images():
    with pytest.raises(InvalidImageError):
        random_image_path("shoes", "script.sh")

@pytest.mark.asyncio
async def test_upload_writes_file_and_returns_public_url(image_store, tmp_path):
    url = await image_store.upload_image("shoes/a_1.png", b"\x89PNG data")

    assert url == "http://cdn.test/storage/images/shoes/a_1.png"
    assert (tmp_path / "images" / "shoes" / "a_1.png").read_bytes() == b"\x89PNG data"

@pytest.mark.asyncio
async def test_upload_never_overwrites(image_store):
    await image_store.upload_image("shoes/a_1.png", b"first")

    with pytest.raises(StorageError, match="already exists"):
        await image_store.upload_image("shoes/a_1.png", b"second")

@pytest.mark.asyncio
async def test_upload_rejects_empty_and_oversized(image_store):
    with pytest.raises(InvalidImageError):
        await image_store.upload_image("shoes/empty.png", b"")
    with pytest.raises(InvalidImageError):
        await image_store.upload_image("shoes/big.png", b"x" * 2048)

@pytest.mark.asyncio
async def test_paths_cannot_escape_bucket(image_store):
    with pytest.raises(StorageError, match="Invalid object path"):
        await image_store.upload_image("../outside.png", b"data")

@pytest.mark.asyncio
async def test_upload_and_delete(image_store, tmp_path):
    url = await image_store.upload("avatars", ImageUpload(filename="me.jpg", data=b"jpeg"))
    path = url.split("/images/", 1)[1]
    assert path.startswith("avatars/")
    assert (tmp_path / "images" / path).exists()

    await image_store.delete(path)
    assert not (tmp_path / "images" / path).exists()
    # Deleting a missing object is not an error
    await image_store.delete(path)

@pytest.mark.asyncio
async def test_discard_by_public_url(image_store, tmp_path):
    url = await image_store.upload("posts", ImageUpload(filename="drop.png", data=b"png"))

    await image_store.discard(url)
    await image_store.discard(None)

    assert list((tmp_path / "images" / "posts").iterdir()) == []
