"""API schemas."""
from app.api.schemas.tender import TenderRowIn, TenderRowsIn

__all__ = ["TenderRowIn", "TenderRowsIn"]
