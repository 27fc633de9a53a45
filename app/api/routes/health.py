"""Health check endpoints."""
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.db.crud.tenders import count_tenders
from app.db.session import Database, get_database
from app.models.import_run import ImportRun

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
def health_check(database: Database = Depends(get_database)) -> dict[str, Any]:
    """
    Health check with database connectivity, tender count, and last import info.
    Returns 503 if database is unreachable.
    """
    if not database.check_connection():
        raise HTTPException(
            status_code=503,
            detail={"status": "degraded", "db": "error"},
        )

    info: dict[str, Any] = {"status": "ok", "db": "ok"}

    db = database.session()
    try:
        info["tenders"] = count_tenders(db)
        last = db.scalars(select(ImportRun).order_by(ImportRun.started_at.desc()).limit(1)).first()
        if last:
            info["last_import"] = {
                "source": last.source,
                "at": str(last.started_at),
                "created": last.created_count,
                "updated": last.updated_count,
                "errors": last.error_count,
            }
    except SQLAlchemyError as e:
        # Tables may not exist before the first migration
        logger.warning("Health details unavailable: %s", e)
    finally:
        db.close()

    return info
