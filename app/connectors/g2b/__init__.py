"""G2B (조달청 나라장터) open-data connector."""
from app.connectors.g2b.official_client import G2BClient, G2BPage, operation_for

__all__ = ["G2BClient", "G2BPage", "operation_for"]
