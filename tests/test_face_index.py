"""Tests for the face identity index."""

import numpy as np
from conftest import make_face

from gallery_ingest.analysis.face_index import (
    FaceIndex,
    get_face_index_stats,
    get_faces_for_image,
    insert_faces,
    search_faces_by_embedding,
)
from gallery_ingest.models import DetectedFace

MODEL = "test-model"


def _faces(count: int, seed: int = 42) -> list[DetectedFace]:
    rng = np.random.default_rng(seed)
    embeddings = rng.standard_normal((count, 512)).astype(np.float32)
    embeddings = embeddings / np.linalg.norm(embeddings, axis=1, keepdims=True)
    return [
        DetectedFace(attributes=make_face(), det_score=0.5 + 0.1 * i, embedding=embeddings[i])
        for i in range(count)
    ]


def test_insert_and_search_faces(db_conn):
    faces = _faces(3)
    ids = insert_faces(db_conn, "img-1", MODEL, faces)
    assert len(ids) == 3
    assert len(set(ids)) == 3

    # Searching with a stored embedding returns that face first
    results = search_faces_by_embedding(db_conn, faces[1].embedding, MODEL, limit=3)
    assert len(results) == 3
    top_face, top_score = results[0]
    assert top_face.face_id == ids[1]
    assert top_score > 0.99


def test_faces_without_embedding_are_skipped(db_conn):
    faces = _faces(2)
    faces[0] = DetectedFace(attributes=make_face(), det_score=0.9, embedding=None)
    ids = insert_faces(db_conn, "img-1", MODEL, faces)
    assert len(ids) == 1


def test_get_faces_for_image_sorted_by_score(db_conn):
    insert_faces(db_conn, "img-1", MODEL, _faces(3))
    insert_faces(db_conn, "img-2", MODEL, _faces(1, seed=1))

    faces = get_faces_for_image(db_conn, "img-1", MODEL)
    assert len(faces) == 3
    scores = [f.det_score for f in faces]
    assert scores == sorted(scores, reverse=True)
    assert faces[0].embedding.shape == (512,)


def test_stats_are_scoped_to_model(db_conn):
    insert_faces(db_conn, "img-1", MODEL, _faces(2))
    insert_faces(db_conn, "img-2", MODEL, _faces(1, seed=1))
    insert_faces(db_conn, "img-3", "other-model", _faces(4, seed=2))

    assert get_face_index_stats(db_conn, MODEL) == (2, 3)
    assert get_face_index_stats(db_conn, "unused") == (0, 0)


def test_face_index_handle(db_conn):
    index = FaceIndex(db_conn, model_name=MODEL)
    index.initialize()
    index.initialize()

    faces = _faces(2)
    ids = index.index_faces("img-1", faces)
    top_face, _ = index.search(faces[0].embedding, limit=1)[0]
    assert top_face.face_id == ids[0]
    assert index.stats() == (1, 2)
