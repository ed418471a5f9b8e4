"""
Column types shared by the ORM models.

PostgreSQL gets JSONB and pgvector; other dialects (the SQLite test
database) fall back to plain JSON.
"""
import uuid

from pgvector.sqlalchemy import Vector
from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB

JSONType = JSON().with_variant(JSONB(), "postgresql")

# Dimension is not fixed at the column level; providers may drift and
# mismatched vectors are skipped at search time.
VectorType = JSON().with_variant(Vector(), "postgresql")


def new_id() -> str:
    return str(uuid.uuid4())
