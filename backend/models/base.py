from __future__ import annotations

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base


Base = declarative_base()

# JSONB on Postgres (indexable, supports @>), plain JSON text elsewhere.
JSONType = JSON().with_variant(JSONB(), "postgresql")
