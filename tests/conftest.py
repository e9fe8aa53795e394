"""Shared test fixtures."""

from datetime import UTC, datetime
from io import BytesIO

import duckdb
import numpy as np
import pytest
from PIL import Image

from gallery_ingest.errors import InputError
from gallery_ingest.models import (
    AgeRange,
    AnalysisResult,
    BoundingBox,
    Emotion,
    FaceAttributes,
    ImageAsset,
    ImageMetadataRecord,
    RecordProvenance,
)
from gallery_ingest.store.object_store import LocalObjectStore
from gallery_ingest.store.schema import ensure_schema

LOCATOR_SECRET = "test-secret"
BASE_URL = "https://objects.example.com/images"


@pytest.fixture
def db_conn():
    """In-memory DuckDB connection with schema initialized."""
    conn = duckdb.connect(":memory:")
    ensure_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def store(tmp_path, db_conn) -> LocalObjectStore:
    """Object store in a temporary directory, indexed into ``db_conn``."""
    return LocalObjectStore(
        tmp_path / "store",
        base_url=BASE_URL,
        secret=LOCATOR_SECRET,
        index_conn=db_conn,
        clock=lambda: 1_700_000_000.0,
    )


def make_image_bytes(
    fmt: str = "JPEG",
    size: tuple[int, int] = (64, 48),
    color: tuple = (200, 30, 30),
    mode: str = "RGB",
    noise: bool = False,
) -> bytes:
    """Encode a solid-color (or random noise) image."""
    if noise:
        rng = np.random.default_rng(7)
        channels = len(mode)
        pixels = rng.integers(0, 256, (size[1], size[0], channels), dtype=np.uint8)
        img = Image.fromarray(pixels)
    else:
        img = Image.new(mode, size, color)
    buf = BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def make_face(top: float = 0.1, left: float = 0.2, gender: str = "Female") -> FaceAttributes:
    """Helper to create FaceAttributes."""
    return FaceAttributes(
        bounding_box=BoundingBox(top=top, left=left, width=0.3, height=0.4),
        age_range=AgeRange(low=25, high=35),
        emotions=[Emotion(type="HAPPY", confidence=95), Emotion(type="CALM", confidence=3)],
        gender=gender,
    )


def make_record(record_id: str, labels: list[str] | None = None) -> ImageMetadataRecord:
    """Helper to create an ImageMetadataRecord with unique fields."""
    return ImageMetadataRecord(
        id=record_id,
        image_url=f"{BASE_URL}/{record_id}.jpg?expires=1&signature=x",
        image_key=f"{record_id}.jpg",
        labels=labels if labels is not None else ["Office", "People"],
        faces=[make_face()],
        metadata=RecordProvenance(
            uploaded_at=datetime(2024, 1, 1, tzinfo=UTC),
            original_name=f"{record_id}.jpg",
            size=50000,
        ),
    )


class StubSource:
    """SourceProvider over a fixed list of assets."""

    def __init__(self, assets: list[ImageAsset] | None = None) -> None:
        self.assets = assets or []
        self.fetch_calls = 0

    def resolve_folder(self, folder_ref: str) -> str:
        if not folder_ref or folder_ref.startswith("bad"):
            raise InputError("Invalid Google Drive folder URL")
        return folder_ref

    def list_and_fetch(self, folder_ref: str):
        self.resolve_folder(folder_ref)
        self.fetch_calls += 1
        yield from self.assets


class StubAnalyzer:
    """ImageAnalyzer returning canned labels and faces.

    ``fail_on`` holds 1-based call numbers for which ``analyze`` raises.
    """

    def __init__(
        self,
        labels: list[str] | None = None,
        faces: list[FaceAttributes] | None = None,
        fail_on: set[int] | None = None,
    ) -> None:
        self.labels = labels if labels is not None else ["Office", "People"]
        self.faces = faces if faces is not None else [make_face()]
        self.fail_on = fail_on or set()
        self.init_calls = 0
        self.calls: list[str] = []
        self.analyzed_before_init = False

    def initialize(self) -> None:
        self.init_calls += 1

    def analyze(self, data: bytes, assigned_id: str) -> AnalysisResult:
        if self.init_calls == 0:
            self.analyzed_before_init = True
        self.calls.append(assigned_id)
        if len(self.calls) in self.fail_on:
            raise RuntimeError("analysis service unreachable")
        return AnalysisResult(labels=list(self.labels), faces=list(self.faces))


class FlakyStore:
    """Wraps a store and fails ``put`` for assets whose name is in ``fail_names``."""

    def __init__(self, inner: LocalObjectStore, fail_names: set[str]) -> None:
        self.inner = inner
        self.fail_names = fail_names
        self.put_calls = 0

    def put(self, data, name, mime_type, analysis, record_id=None):
        self.put_calls += 1
        if name in self.fail_names:
            raise OSError("disk full")
        return self.inner.put(data, name, mime_type, analysis, record_id=record_id)

    def list_all(self):
        return self.inner.list_all()

    def refresh_locator(self, record):
        return self.inner.refresh_locator(record)
