import cv2
import numpy as np
import pytest

from minesight.ai.frame_sampler import (
    FrameExtractionError,
    sample_frames,
    sample_timestamps,
)


@pytest.fixture
def video_file(tmp_path):
    """Two seconds of 320x240 MJPG video at 10 FPS."""
    path = str(tmp_path / "clip.avi")
    writer = cv2.VideoWriter(path, cv2.VideoWriter_fourcc(*"MJPG"), 10.0, (320, 240))
    if not writer.isOpened():
        pytest.skip("OpenCV build cannot write MJPG video")
    for i in range(20):
        frame = np.full((240, 320, 3), i * 10, dtype=np.uint8)
        writer.write(frame)
    writer.release()
    return path


def test_sample_timestamps_are_evenly_spaced():
    assert sample_timestamps(8.0, 3) == [2.0, 4.0, 6.0]
    stamps = sample_timestamps(10.0, 6)
    assert len(stamps) == 6
    assert all(0 < t < 10.0 for t in stamps)
    assert stamps == sorted(stamps)


def test_sample_frames_scales_and_encodes(video_file):
    frames = sample_frames(video_file, count=3, width=640, quality=75)

    assert len(frames) == 3
    assert [f.timestamp_seconds for f in frames] == pytest.approx([0.5, 1.0, 1.5])
    for frame in frames:
        assert frame.media_type == "image/jpeg"
        assert frame.image[:2] == b"\xff\xd8"
        decoded = cv2.imdecode(np.frombuffer(frame.image, dtype=np.uint8), cv2.IMREAD_COLOR)
        assert decoded.shape[1] == 640
        assert decoded.shape[0] == 480


def test_sample_count_minimum(video_file):
    with pytest.raises(ValueError):
        sample_frames(video_file, count=2)


def test_undecodable_file(tmp_path):
    path = tmp_path / "garbage.mp4"
    path.write_bytes(b"this is not a video" * 100)

    with pytest.raises(FrameExtractionError):
        sample_frames(str(path), count=3)


def test_missing_file(tmp_path):
    with pytest.raises(FrameExtractionError):
        sample_frames(str(tmp_path / "missing.mp4"), count=3)
