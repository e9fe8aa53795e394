"""Combine label detection, face detection and identity indexing."""

import logging
import threading

from gallery_ingest.analysis.attributes import decode_image
from gallery_ingest.analysis.face_index import FaceIndex
from gallery_ingest.config import FACE_INDEX_MAX_FACES
from gallery_ingest.models import AnalysisResult, DetectedFace
from gallery_ingest.protocols import FaceDetector, LabelDetector

logger = logging.getLogger(__name__)


class VisionAnalyzer:
    """ImageAnalyzer built from independent detectors.

    Each stage fails on its own: a label failure leaves faces intact and the
    other way round. Calls into each detector are serialized because model
    wrappers keep per-call state. Indexing faces into the identity index is a
    side output only; when it fails ``face_ids`` is ``None`` and nothing else
    changes.
    """

    def __init__(
        self,
        label_detector: LabelDetector | None,
        face_detector: FaceDetector | None,
        face_index: FaceIndex | None = None,
        max_indexed_faces: int = FACE_INDEX_MAX_FACES,
    ) -> None:
        self.label_detector = label_detector
        self.face_detector = face_detector
        self.face_index = face_index
        self.max_indexed_faces = max_indexed_faces
        self._init_lock = threading.Lock()
        self._label_lock = threading.Lock()
        self._face_lock = threading.Lock()
        self._initialized = False
        self._index_ready = False

    def initialize(self) -> None:
        """Prepare the identity index once. Failure disables indexing only."""
        with self._init_lock:
            if self._initialized:
                return
            self._initialized = True
            if self.face_index is None:
                return
            try:
                self.face_index.initialize()
                self._index_ready = True
                logger.info("Face index ready (%s)", self.face_index.model_name)
            except Exception:
                logger.exception("Failed to initialize face index, continuing without it")

    def analyze(self, data: bytes, assigned_id: str) -> AnalysisResult:
        """Analyze one image. Never raises."""
        try:
            image = decode_image(data)
        except Exception as exc:
            logger.warning("Cannot decode image %s for analysis: %s", assigned_id, exc)
            return AnalysisResult.empty()

        degraded = False

        labels: list[str] = []
        if self.label_detector is not None:
            try:
                with self._label_lock:
                    labels = self.label_detector.detect_labels(image)
            except Exception:
                logger.warning("Label detection failed for %s", assigned_id, exc_info=True)
                degraded = True

        detected: list[DetectedFace] = []
        if self.face_detector is not None:
            try:
                with self._face_lock:
                    detected = self.face_detector.detect(image)
            except Exception:
                logger.warning("Face detection failed for %s", assigned_id, exc_info=True)
                degraded = True

        logger.info(
            "Analyzed %s: %d label(s), %d face(s)", assigned_id, len(labels), len(detected)
        )
        return AnalysisResult(
            labels=labels,
            faces=[face.attributes for face in detected],
            face_ids=self._index_faces(assigned_id, detected),
            degraded=degraded,
        )

    def _index_faces(self, assigned_id: str, detected: list[DetectedFace]) -> list[str] | None:
        if self.face_index is None or not detected:
            return None
        if not self._initialized:
            self.initialize()
        if not self._index_ready:
            return None
        try:
            return self.face_index.index_faces(assigned_id, detected[: self.max_indexed_faces])
        except Exception as exc:
            logger.warning("Face indexing failed for %s: %s", assigned_id, exc)
            return None
