"""All SQLAlchemy models.

Import models from here:
    from app.models import Tender, ImportRun
"""
from app.models.base import Base
from app.models.import_run import ImportRun
from app.models.tender import Tender

__all__ = [
    "Base",
    "ImportRun",
    "Tender",
]
