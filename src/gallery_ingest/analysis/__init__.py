"""Image analysis: semantic labels, face attributes and the face identity index.

The model wrappers (``labels``, ``faces``) import ultralytics and insightface;
import them directly where they are needed.
"""

from gallery_ingest.analysis.analyzer import VisionAnalyzer
from gallery_ingest.analysis.face_index import FaceIndex

__all__ = ["FaceIndex", "VisionAnalyzer"]
