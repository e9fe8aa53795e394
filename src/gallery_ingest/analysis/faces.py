"""InsightFace wrapper for face detection and attribute estimation."""

import numpy as np
from insightface.app import FaceAnalysis

from gallery_ingest.analysis.attributes import age_to_range, bbox_to_fractions, gender_label
from gallery_ingest.config import AGE_RANGE_MARGIN, INSIGHTFACE_MODEL_NAME
from gallery_ingest.models import DetectedFace, FaceAttributes


class InsightFaceDetector:
    """Detect faces, estimate age and gender, and extract ArcFace embeddings."""

    def __init__(
        self,
        model_name: str = "buffalo_l",
        device: str = "cuda",
        age_margin: int = AGE_RANGE_MARGIN,
    ) -> None:
        providers = (
            ["CUDAExecutionProvider", "CPUExecutionProvider"]
            if device == "cuda"
            else ["CPUExecutionProvider"]
        )
        self.app = FaceAnalysis(name=model_name, providers=providers)
        self.app.prepare(ctx_id=0 if device == "cuda" else -1, det_size=(640, 640))
        self.model_name = INSIGHTFACE_MODEL_NAME
        self.age_margin = age_margin

    def detect(self, image: np.ndarray) -> list[DetectedFace]:
        """Detect faces in a BGR image.

        Returns:
            One DetectedFace per face, in the detector's order. Emotions are
            left empty because the model does not estimate them.
        """
        height, width = image.shape[:2]
        detections: list[DetectedFace] = []

        for face in self.app.get(image):
            bbox = face.bbox.astype(float)
            attributes = FaceAttributes(
                bounding_box=bbox_to_fractions((bbox[0], bbox[1], bbox[2], bbox[3]), width, height),
                age_range=age_to_range(float(face.age), self.age_margin),
                emotions=[],
                gender=gender_label(face.gender),
                confidence=round(float(face.det_score) * 100, 2),
            )
            embedding = (
                face.normed_embedding.astype(np.float32)
                if face.normed_embedding is not None
                else None
            )
            detections.append(
                DetectedFace(
                    attributes=attributes,
                    det_score=float(face.det_score),
                    embedding=embedding,
                )
            )

        return detections
