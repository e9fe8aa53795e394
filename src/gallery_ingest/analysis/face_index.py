"""Face identity index in DuckDB, keyed by pipeline-assigned record ids."""

import threading
import uuid

import duckdb
import numpy as np

from gallery_ingest.config import FACE_EMBEDDING_DIM, INSIGHTFACE_MODEL_NAME
from gallery_ingest.models import DetectedFace, IndexedFace
from gallery_ingest.store.schema import ensure_face_index_schema


def insert_faces(
    conn: duckdb.DuckDBPyConnection,
    image_id: str,
    model_name: str,
    faces: list[DetectedFace],
) -> list[str]:
    """Insert faces that carry an embedding and return their new face ids."""
    face_ids: list[str] = []
    for face in faces:
        if face.embedding is None:
            continue
        face_id = str(uuid.uuid4())
        conn.execute(
            """
            INSERT INTO face_index (face_id, image_id, model_name, det_score, embedding)
            VALUES (?, ?, ?, ?, ?)
            """,
            [
                face_id,
                image_id,
                model_name,
                float(face.det_score),
                face.embedding.astype(np.float32).tolist(),
            ],
        )
        face_ids.append(face_id)
    return face_ids


def get_faces_for_image(
    conn: duckdb.DuckDBPyConnection,
    image_id: str,
    model_name: str,
) -> list[IndexedFace]:
    """Return all indexed faces for a record id."""
    rows = conn.execute(
        """
        SELECT face_id, image_id, model_name, det_score, embedding
        FROM face_index
        WHERE image_id = ? AND model_name = ?
        ORDER BY det_score DESC
        """,
        [image_id, model_name],
    ).fetchall()
    return [_row_to_indexed_face(row) for row in rows]


def search_faces_by_embedding(
    conn: duckdb.DuckDBPyConnection,
    query_embedding: np.ndarray,
    model_name: str,
    limit: int = 20,
    embedding_dim: int = FACE_EMBEDDING_DIM,
) -> list[tuple[IndexedFace, float]]:
    """Search indexed faces by cosine similarity to a query embedding."""
    query_vec = query_embedding.flatten().astype(np.float32).tolist()
    rows = conn.execute(
        f"""
        SELECT face_id, image_id, model_name, det_score, embedding,
               list_cosine_similarity(embedding, ?::FLOAT[{embedding_dim}]) AS score
        FROM face_index
        WHERE model_name = ?
        ORDER BY score DESC
        LIMIT ?
        """,
        [query_vec, model_name, limit],
    ).fetchall()
    return [(_row_to_indexed_face(row[:5]), row[5]) for row in rows]


def get_face_index_stats(
    conn: duckdb.DuckDBPyConnection,
    model_name: str,
) -> tuple[int, int]:
    """Return (images_with_faces, indexed_faces) for the model."""
    row = conn.execute(
        "SELECT COUNT(DISTINCT image_id), COUNT(*) FROM face_index WHERE model_name = ?",
        [model_name],
    ).fetchone()
    if row is None:
        return 0, 0
    return row[0], row[1]


def _row_to_indexed_face(row: tuple) -> IndexedFace:
    """Convert a database row to an IndexedFace object."""
    return IndexedFace(
        face_id=row[0],
        image_id=row[1],
        model_name=row[2],
        det_score=row[3],
        embedding=np.array(row[4], dtype=np.float32),
    )


class FaceIndex:
    """Thread-safe handle on the identity index for one face model."""

    def __init__(
        self,
        conn: duckdb.DuckDBPyConnection,
        model_name: str = INSIGHTFACE_MODEL_NAME,
        embedding_dim: int = FACE_EMBEDDING_DIM,
    ) -> None:
        self.conn = conn
        self.model_name = model_name
        self.embedding_dim = embedding_dim
        self._lock = threading.Lock()

    def initialize(self) -> None:
        """Create the index table if needed. Idempotent."""
        with self._lock:
            ensure_face_index_schema(self.conn, self.embedding_dim)

    def index_faces(self, image_id: str, faces: list[DetectedFace]) -> list[str]:
        with self._lock:
            return insert_faces(self.conn, image_id, self.model_name, faces)

    def faces_for_image(self, image_id: str) -> list[IndexedFace]:
        with self._lock:
            return get_faces_for_image(self.conn, image_id, self.model_name)

    def search(self, query_embedding: np.ndarray, limit: int = 20) -> list[tuple[IndexedFace, float]]:
        with self._lock:
            return search_faces_by_embedding(
                self.conn, query_embedding, self.model_name, limit, self.embedding_dim
            )

    def stats(self) -> tuple[int, int]:
        with self._lock:
            return get_face_index_stats(self.conn, self.model_name)
