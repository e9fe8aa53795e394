"""Collaborator interfaces consumed by the ingestion pipeline."""

from collections.abc import Iterator
from typing import Protocol

import numpy as np

from gallery_ingest.models import (
    AnalysisResult,
    CompressionOutcome,
    ImageAsset,
    ImageMetadataRecord,
)


class SourceProvider(Protocol):
    def resolve_folder(self, folder_ref: str) -> str:
        """Parse a folder reference without I/O. Raises InputError."""
        ...

    def list_and_fetch(self, folder_ref: str) -> Iterator[ImageAsset]:
        """Yield every image under the folder exactly once."""
        ...


class Compressor(Protocol):
    def compress(self, data: bytes, mime_type: str) -> CompressionOutcome: ...


class ImageAnalyzer(Protocol):
    def initialize(self) -> None: ...

    def analyze(self, data: bytes, assigned_id: str) -> AnalysisResult: ...


class MetadataStore(Protocol):
    def put(
        self,
        data: bytes,
        name: str,
        mime_type: str,
        analysis: AnalysisResult,
        record_id: str | None = None,
    ) -> ImageMetadataRecord: ...

    def list_all(self) -> list[ImageMetadataRecord]: ...

    def refresh_locator(self, record: ImageMetadataRecord) -> ImageMetadataRecord: ...


class LabelDetector(Protocol):
    def detect_labels(self, image: np.ndarray) -> list[str]:
        """Return labels for a BGR image, most confident first."""
        ...


class FaceDetector(Protocol):
    model_name: str

    def detect(self, image: np.ndarray) -> list:
        """Return ``DetectedFace`` objects for a BGR image in detection order."""
        ...
