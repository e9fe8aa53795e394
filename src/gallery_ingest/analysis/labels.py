"""YOLO11 wrapper for semantic image labels."""

from pathlib import Path

import numpy as np
from ultralytics import YOLO

from gallery_ingest.analysis.attributes import rank_labels
from gallery_ingest.config import LABEL_MAX, LABEL_MIN_CONFIDENCE, YOLO_MODEL_NAME, YOLO_MODEL_PATH


class YOLOLabeler:
    """Label images with the COCO classes YOLO11 detects in them."""

    def __init__(
        self,
        model_path: str | Path | None = None,
        imgsz: int = 1280,
        min_confidence: float = LABEL_MIN_CONFIDENCE,
        max_labels: int = LABEL_MAX,
        device: str | None = None,
    ) -> None:
        path = str(model_path or YOLO_MODEL_PATH)
        self.model = YOLO(path)
        self.imgsz = imgsz
        self.min_confidence = min_confidence
        self.max_labels = max_labels
        self.device = device
        self.model_name = YOLO_MODEL_NAME

    def detect_labels(self, image: np.ndarray) -> list[str]:
        """Return labels for a BGR image, most confident first."""
        results = self.model(
            image,
            imgsz=self.imgsz,
            conf=self.min_confidence,
            device=self.device,
            verbose=False,
        )
        scored = [
            (self.model.names[int(box.cls)], float(box.conf))
            for r in results
            for box in r.boxes
        ]
        return rank_labels(scored, self.min_confidence, self.max_labels)
