"""Data models for ingested images and their derived metadata."""

from dataclasses import dataclass, field
from datetime import datetime

import numpy as np


@dataclass
class ImageAsset:
    """One image in flight through the pipeline."""

    name: str
    data: bytes
    mime_type: str
    declared_size: int = 0


@dataclass(frozen=True)
class CompressionOutcome:
    """Result of a compression attempt."""

    data: bytes
    original_size: int
    compressed_size: int
    was_compressed: bool
    mime_type: str

    @classmethod
    def unchanged(cls, data: bytes, mime_type: str) -> "CompressionOutcome":
        return cls(
            data=data,
            original_size=len(data),
            compressed_size=len(data),
            was_compressed=False,
            mime_type=mime_type,
        )

    @property
    def compression_ratio(self) -> float:
        if self.compressed_size == 0:
            return 1.0
        return self.original_size / self.compressed_size


@dataclass(frozen=True)
class BoundingBox:
    """Face box as fractions of the image dimensions."""

    top: float
    left: float
    width: float
    height: float


@dataclass(frozen=True)
class AgeRange:
    low: int
    high: int


@dataclass(frozen=True)
class Emotion:
    type: str
    confidence: int


@dataclass
class FaceAttributes:
    """A single detected face and its estimated attributes.

    The InsightFace detector estimates age and gender but not emotions, so
    records it produces carry an empty ``emotions`` list.
    """

    bounding_box: BoundingBox
    age_range: AgeRange
    emotions: list[Emotion]  # descending confidence, may be empty
    gender: str
    confidence: float | None = None

    def to_dict(self) -> dict:
        data = {
            "boundingBox": {
                "top": self.bounding_box.top,
                "left": self.bounding_box.left,
                "width": self.bounding_box.width,
                "height": self.bounding_box.height,
            },
            "ageRange": {"low": self.age_range.low, "high": self.age_range.high},
            "emotions": [{"type": e.type, "confidence": e.confidence} for e in self.emotions],
            "gender": self.gender,
        }
        if self.confidence is not None:
            data["confidence"] = self.confidence
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "FaceAttributes":
        box = data.get("boundingBox") or {}
        age = data.get("ageRange") or {}
        return cls(
            bounding_box=BoundingBox(
                top=float(box.get("top", 0.0)),
                left=float(box.get("left", 0.0)),
                width=float(box.get("width", 0.0)),
                height=float(box.get("height", 0.0)),
            ),
            age_range=AgeRange(low=int(age.get("low", 0)), high=int(age.get("high", 100))),
            emotions=[
                Emotion(type=e.get("type", "UNKNOWN"), confidence=int(e.get("confidence", 0)))
                for e in data.get("emotions") or []
            ],
            gender=data.get("gender", "Unknown"),
            confidence=data.get("confidence"),
        )


@dataclass
class AnalysisResult:
    """Labels and faces produced by the analyzer for one image.

    ``face_ids`` is the identity-index correlation output. It is ``None`` when
    no index is configured or indexing failed. ``degraded`` marks a result in
    which at least one analysis stage failed and was replaced by an empty one.
    """

    labels: list[str] = field(default_factory=list)
    faces: list[FaceAttributes] = field(default_factory=list)
    face_ids: list[str] | None = None
    degraded: bool = False

    @classmethod
    def empty(cls, degraded: bool = True) -> "AnalysisResult":
        return cls(labels=[], faces=[], face_ids=None, degraded=degraded)


@dataclass(frozen=True)
class RecordProvenance:
    uploaded_at: datetime
    original_name: str
    size: int


@dataclass
class ImageMetadataRecord:
    """Persistent metadata for one stored image."""

    id: str
    image_url: str
    image_key: str
    labels: list[str]
    faces: list[FaceAttributes]
    metadata: RecordProvenance

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "imageUrl": self.image_url,
            "imageKey": self.image_key,
            "labels": list(self.labels),
            "faces": [face.to_dict() for face in self.faces],
            "metadata": {
                "uploadedAt": self.metadata.uploaded_at.isoformat(),
                "originalName": self.metadata.original_name,
                "size": self.metadata.size,
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ImageMetadataRecord":
        meta = data.get("metadata") or {}
        return cls(
            id=data["id"],
            image_url=data["imageUrl"],
            image_key=data.get("imageKey") or data["id"],
            labels=list(data.get("labels") or []),
            faces=[FaceAttributes.from_dict(f) for f in data.get("faces") or []],
            metadata=RecordProvenance(
                uploaded_at=datetime.fromisoformat(meta["uploadedAt"]),
                original_name=meta.get("originalName", ""),
                size=int(meta.get("size", 0)),
            ),
        )


@dataclass(frozen=True)
class ItemOutcome:
    """Per-item trace of a pipeline run, including silent degradations."""

    name: str
    record_id: str
    original_size: int
    compressed_size: int
    was_compressed: bool
    analysis_degraded: bool


@dataclass
class BatchResult:
    """Aggregate result of one pipeline run."""

    records: list[ImageMetadataRecord] = field(default_factory=list)
    items: list[ItemOutcome] = field(default_factory=list)
    cancelled: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def processed_count(self) -> int:
        return len(self.records)


@dataclass
class IndexedImage:
    """A row of the retrieval index."""

    id: str
    image_key: str
    image_url: str
    original_name: str
    mime_type: str | None
    size_bytes: int
    labels: list[str]
    face_count: int
    uploaded_at: datetime | None


@dataclass
class DetectedFace:
    """A face as returned by a face detector, before it is persisted."""

    attributes: FaceAttributes
    det_score: float
    embedding: np.ndarray | None  # L2-normalized, shape (512,)


@dataclass
class IndexedFace:
    """A face stored in the identity index."""

    face_id: str
    image_id: str
    model_name: str
    det_score: float
    embedding: np.ndarray
