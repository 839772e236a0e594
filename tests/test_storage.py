import pytest

from minesight.services.storage import (
    LocalObjectStorage,
    StorageError,
    build_storage_key,
    sanitize_filename,
)


def test_sanitize_strips_disallowed_characters():
    assert sanitize_filename("No Helmet (cam 2)!.mp4") == "NoHelmetcam2.mp4"
    assert sanitize_filename("Broken_cylinder-at_01.11_min.mp4") == "Broken_cylinder-at_01.11_min.mp4"
    assert sanitize_filename("../../etc/passwd") == "....etcpasswd"


def test_sanitize_empty_results():
    assert sanitize_filename("") == ""
    assert sanitize_filename(None) == ""
    assert sanitize_filename("###") == ""


def test_sanitize_truncates():
    assert len(sanitize_filename("a" * 300 + ".mp4")) == 255
    assert sanitize_filename("abcdef", max_length=3) == "abc"


def test_storage_key_format():
    assert build_storage_key("clip.mp4", epoch_millis=1760000000000) == "1760000000000_clip.mp4"
    assert build_storage_key("clip.mp4").endswith("_clip.mp4")


async def test_put_and_get(tmp_path):
    storage = LocalObjectStorage(root=str(tmp_path), public_base_url="http://example.test/")

    path = await storage.put("videos", "1_clip.mp4", b"video-bytes", "video/mp4")

    assert path == str(tmp_path / "videos" / "1_clip.mp4")
    assert await storage.get("videos", "1_clip.mp4") == b"video-bytes"
    assert storage.public_url("videos", "1_clip.mp4") == "http://example.test/storage/videos/1_clip.mp4"


async def test_put_never_overwrites(tmp_path):
    storage = LocalObjectStorage(root=str(tmp_path))
    await storage.put("videos", "1_clip.mp4", b"first")

    with pytest.raises(StorageError):
        await storage.put("videos", "1_clip.mp4", b"second")
    assert await storage.get("videos", "1_clip.mp4") == b"first"


@pytest.mark.parametrize("key", ["", "..", "a/b.mp4", "a\\b.mp4"])
async def test_invalid_keys_rejected(tmp_path, key):
    storage = LocalObjectStorage(root=str(tmp_path))
    with pytest.raises(StorageError):
        await storage.put("videos", key, b"x")


async def test_get_missing_object(tmp_path):
    storage = LocalObjectStorage(root=str(tmp_path))
    with pytest.raises(StorageError):
        await storage.get("videos", "missing.mp4")
