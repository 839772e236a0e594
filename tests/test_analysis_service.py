import pytest
from sqlalchemy import select

from minesight.ai.classifier import ScriptedFrameClassifier
from minesight.config import settings
from minesight.database import async_session_maker
from minesight.models import TrainingAsset, UploadedVideo
from minesight.ai.pipeline import AnalysisRequest, ViolationPipeline
from minesight.ai.rate_limiter import NoopLimiter
from minesight.services.analysis_service import (
    active_model_paths,
    build_detector,
    AnalysisService,
    InvalidUploadError,
    VideoUpload,
    load_training_context,
    parse_client_frames,
    validate_upload,
)
from minesight.services.storage import LocalObjectStorage

from tests.conftest import FakeRecorder


def upload(**kwargs):
    defaults = dict(video_name="clip.mp4", content_type="video/mp4", data=b"\x00" * 64)
    defaults.update(kwargs)
    return VideoUpload(**defaults)


# ---- validation ----

def test_valid_upload_returns_sanitized_name():
    assert validate_upload(upload(video_name="shift 2 (north).mp4")) == "shift2north.mp4"


@pytest.mark.parametrize("content_type", ["video/mp4", "video/avi", "video/quicktime", "video/x-msvideo", "video/mov"])
def test_allowed_mime_types(content_type):
    validate_upload(upload(content_type=content_type))


def test_empty_payload_rejected():
    with pytest.raises(InvalidUploadError, match="Invalid file upload"):
        validate_upload(upload(data=b""))
    with pytest.raises(InvalidUploadError, match="Invalid file upload"):
        validate_upload(upload(data=None))


def test_oversize_rejected(monkeypatch):
    monkeypatch.setattr(settings, "MAX_VIDEO_SIZE", 32)
    with pytest.raises(InvalidUploadError, match="File size exceeds"):
        validate_upload(upload(data=b"\x00" * 33))


def test_size_limit_is_inclusive(monkeypatch):
    monkeypatch.setattr(settings, "MAX_VIDEO_SIZE", 64)
    validate_upload(upload(data=b"\x00" * 64))


def test_default_size_limit():
    assert settings.MAX_VIDEO_SIZE == 250 * 1024 * 1024


@pytest.mark.parametrize("content_type", ["video/webm", "image/jpeg", None])
def test_wrong_mime_type_rejected(content_type):
    with pytest.raises(InvalidUploadError, match="Invalid file type"):
        validate_upload(upload(content_type=content_type))


@pytest.mark.parametrize("video_name", ["", None, "???", "   "])
def test_unusable_filename_rejected(video_name):
    with pytest.raises(InvalidUploadError, match="Invalid filename"):
        validate_upload(upload(video_name=video_name))


# ---- client frames ----

def test_client_frames_use_meta_timestamps():
    frames = parse_client_frames([b"a", b"b", b"c"], "[1.5, 3, 4.25]")
    assert [f.timestamp_seconds for f in frames] == [1.5, 3.0, 4.25]
    assert [f.image for f in frames] == [b"a", b"b", b"c"]


def test_client_frames_fallback_timestamps():
    frames = parse_client_frames([b"a", b"b", b"c"], '[1.0, "soon"]')
    assert [f.timestamp_seconds for f in frames] == [1.0, 4.0, 6.0]


@pytest.mark.parametrize("meta", ["[NaN]", "[Infinity]", "[-Infinity]", "[1e12]", "[-3]", "[1" + "0" * 400 + "]", "[true]"])
def test_client_frames_out_of_range_timestamps(meta):
    frames = parse_client_frames([b"a"], meta)
    assert [f.timestamp_seconds for f in frames] == [2.0]


def test_client_frames_timestamp_ceiling(monkeypatch):
    monkeypatch.setattr(settings, "MAX_FRAME_TIMESTAMP", 60.0)
    frames = parse_client_frames([b"a", b"b"], "[60, 60.5]")
    assert [f.timestamp_seconds for f in frames] == [60.0, 4.0]


@pytest.mark.parametrize("meta", ["[NaN]", "[Infinity]", "[1e12]"])
async def test_hostile_frame_meta_does_not_break_the_run(meta):
    recorder = FakeRecorder()
    classifier = ScriptedFrameClassifier(default=lambda unit: {
        "has_violation": True, "violation_type": "Broken cylinder", "confidence": 0.9, "severity": "warning",
    })
    pipeline = ViolationPipeline(recorder=recorder, classifier=classifier, limiter=NoopLimiter(), strategy="prompt")

    result = await pipeline.run(AnalysisRequest(
        video_name="shift_footage.mp4",
        video_path="1_shift_footage.mp4",
        client_frames=parse_client_frames([b"img"], meta),
    ))

    assert [v.frame_number for v in result.violations] == [60]
    assert result.state.value == "done"


@pytest.mark.parametrize("meta", [None, "", "not json", '{"t": 1}'])
def test_client_frames_bad_meta(meta):
    frames = parse_client_frames([b"a", b"b"], meta)
    assert [f.timestamp_seconds for f in frames] == [2.0, 4.0]


# ---- training context ----

async def test_training_context_from_datasets(database):
    async with async_session_maker() as db:
        db.add_all([
            TrainingAsset(name="cylinder_damage_v1", file_path="dataset_a", type="dataset", file_size=10, uploaded_by="op-1"),
            TrainingAsset(name="lh_machine_pairs", file_path="dataset_b", type="dataset", file_size=10, uploaded_by="op-1"),
            TrainingAsset(name="drill_handling_weights", file_path="model_c", type="model", file_size=10, uploaded_by="op-1"),
            TrainingAsset(name="oil_spray", file_path="dataset_d", type="dataset", file_size=10, uploaded_by="op-2"),
        ])
        await db.commit()

        context = await load_training_context(db, "op-1")
        assert context.dataset_count == 2
        assert context.categories == ["Broken cylinder", "LH machines collision risk"]
        assert context.narrowed

        assert (await load_training_context(db, "nobody")).dataset_count == 0
        assert not (await load_training_context(db, None)).narrowed


# ---- end to end through the service ----

async def test_analyze_stores_video_and_records(database, tmp_path):
    recorder = FakeRecorder()
    service = AnalysisService(
        storage=LocalObjectStorage(root=str(tmp_path), public_base_url="http://example.test"),
        recorder=recorder,
        classifier_factory=lambda context: ScriptedFrameClassifier(),
        detector_factory=lambda model_paths: None,
    )

    async with async_session_maker() as db:
        result = await service.analyze(db, upload(video_name="Broken_cylinder_at_00_00_02.mp4", uploaded_by="op-1"))

        video = (await db.execute(select(UploadedVideo))).scalar_one()

    assert video.storage_key.endswith("_Broken_cylinder_at_00_00_02.mp4")
    assert video.public_url == f"http://example.test/storage/videos/{video.storage_key}"
    assert (tmp_path / "videos" / video.storage_key).read_bytes() == b"\x00" * 64

    assert [v.frame_number for v in result.violations] == [59, 60, 61]
    assert all(v.video_path == video.storage_key for v in recorder.recorded)


async def test_analyze_rejects_before_storing(database, tmp_path):
    service = AnalysisService(
        storage=LocalObjectStorage(root=str(tmp_path)),
        recorder=FakeRecorder(),
        classifier_factory=lambda context: None,
        detector_factory=lambda model_paths: None,
    )

    async with async_session_maker() as db:
        with pytest.raises(InvalidUploadError):
            await service.analyze(db, upload(content_type="application/zip"))
        videos = (await db.execute(select(UploadedVideo))).scalars().all()

    assert videos == []
    assert not (tmp_path / "videos").exists()


# ---- detector selection ----

@pytest.fixture
def fresh_detector_cache():
    build_detector.cache_clear()
    yield
    build_detector.cache_clear()


def test_no_detector_for_prompt_strategy(monkeypatch, fresh_detector_cache):
    monkeypatch.setattr(settings, "DETECTION_STRATEGY", "prompt")
    assert build_detector(("weights.pt",)) is None


def test_no_detector_without_weights(monkeypatch, fresh_detector_cache):
    monkeypatch.setattr(settings, "DETECTION_STRATEGY", "geometric")
    monkeypatch.setattr(settings, "YOLO_MODEL_PATHS", [])
    assert build_detector(()) is None


def test_detector_uses_active_model_weights(monkeypatch, fresh_detector_cache):
    ultralytics = pytest.importorskip("ultralytics")
    loaded = []

    class StubYOLO:
        names = {0: "person"}

        def __init__(self, path):
            loaded.append(path)

    monkeypatch.setattr(ultralytics, "YOLO", StubYOLO)
    monkeypatch.setattr(settings, "DETECTION_STRATEGY", "hybrid")
    monkeypatch.setattr(settings, "YOLO_MODEL_PATHS", [])

    detector = build_detector(("storage/models/1_model_best.pt",))

    assert detector.model_paths == ["storage/models/1_model_best.pt"]
    assert loaded == ["storage/models/1_model_best.pt"]


def test_configured_weights_win_over_active_model(monkeypatch, fresh_detector_cache):
    ultralytics = pytest.importorskip("ultralytics")

    class StubYOLO:
        names = {}

        def __init__(self, path):
            pass

    monkeypatch.setattr(ultralytics, "YOLO", StubYOLO)
    monkeypatch.setattr(settings, "DETECTION_STRATEGY", "geometric")
    monkeypatch.setattr(settings, "YOLO_MODEL_PATHS", ["configured.pt"])

    assert build_detector(("uploaded.pt",)).model_paths == ["configured.pt"]


async def test_active_model_paths(database, tmp_path):
    storage = LocalObjectStorage(root=str(tmp_path))
    async with async_session_maker() as db:
        db.add_all([
            TrainingAsset(name="best.pt", file_path="1_model_best.pt", type="model", file_size=10, is_active=True),
            TrainingAsset(name="old.pt", file_path="2_model_old.pt", type="model", file_size=10, is_active=False),
            TrainingAsset(name="set.zip", file_path="3_dataset_set.zip", type="dataset", file_size=10, is_active=True),
        ])
        await db.commit()

        paths = await active_model_paths(db, storage)

    assert paths == (str(tmp_path / "models" / "1_model_best.pt"),)


async def test_analyze_hands_active_model_to_detector(database, tmp_path):
    storage = LocalObjectStorage(root=str(tmp_path))
    requested = []

    def detector_factory(model_paths):
        requested.append(model_paths)
        return None

    async with async_session_maker() as db:
        db.add(TrainingAsset(name="best.pt", file_path="1_model_best.pt", type="model", file_size=10, is_active=True))
        await db.commit()

        service = AnalysisService(
            storage=storage,
            recorder=FakeRecorder(),
            classifier_factory=lambda context: None,
            detector_factory=detector_factory,
        )
        await service.analyze(db, upload())

    assert requested == [(str(tmp_path / "models" / "1_model_best.pt"),)]
