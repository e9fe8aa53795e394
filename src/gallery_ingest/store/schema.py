"""DuckDB schema for the retrieval index and the face identity index."""

import duckdb

from gallery_ingest.config import FACE_EMBEDDING_DIM


def ensure_schema(conn: duckdb.DuckDBPyConnection) -> None:
    """Create index tables if they do not exist."""
    conn.execute("""
        CREATE TABLE IF NOT EXISTS images (
            id             VARCHAR PRIMARY KEY,
            image_key      VARCHAR NOT NULL,
            image_url      VARCHAR NOT NULL,
            original_name  VARCHAR NOT NULL,
            mime_type      VARCHAR,
            size_bytes     BIGINT NOT NULL,
            labels         VARCHAR[],
            face_count     INTEGER NOT NULL DEFAULT 0,
            uploaded_at    TIMESTAMP,
            indexed_at     TIMESTAMP DEFAULT current_timestamp
        )
    """)

    ensure_face_index_schema(conn)


def ensure_face_index_schema(
    conn: duckdb.DuckDBPyConnection, embedding_dim: int = FACE_EMBEDDING_DIM
) -> None:
    """Create the face identity index table.

    ``image_id`` is the record id assigned by the pipeline, which may be
    indexed here before the record itself is written, so there is no foreign
    key to ``images``.
    """
    conn.execute(f"""
        CREATE TABLE IF NOT EXISTS face_index (
            face_id     VARCHAR PRIMARY KEY,
            image_id    VARCHAR NOT NULL,
            model_name  VARCHAR NOT NULL,
            det_score   FLOAT NOT NULL,
            embedding   FLOAT[{embedding_dim}],
            created_at  TIMESTAMP DEFAULT current_timestamp
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_face_index_image_id ON face_index(image_id)")
