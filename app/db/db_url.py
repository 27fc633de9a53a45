"""Database URL resolution utilities."""
import os
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


def resolve_db_url(db_url: str) -> str:
    """
    Resolve relative SQLite URLs (sqlite:///./civicwatch.db) against the project root.
    In-memory SQLite and server URLs are returned unchanged.
    """
    if not db_url.startswith("sqlite") or ":///./" not in db_url:
        return db_url

    prefix, relative_path = db_url.split(":///./", 1)
    absolute_path = (PROJECT_ROOT / relative_path).resolve()
    return f"{prefix}:///{absolute_path.as_posix()}"


def get_default_db_url() -> str:
    """DATABASE_URL env var, else sqlite:///./dev.db (used by Alembic and scripts)."""
    return resolve_db_url(os.environ.get("DATABASE_URL") or "sqlite:///./dev.db")
