"""Build the G2B client from settings (used as a FastAPI dependency)."""
import logging
from typing import Optional

from app.connectors.g2b.official_client import G2BClient
from app.core.config import Settings, settings as default_settings
from app.core.errors import ConfigError

logger = logging.getLogger(__name__)


def build_client(settings: Optional[Settings] = None) -> G2BClient:
    """
    G2B client for one ingestion call.
    Raises ConfigError when DATA_GO_KR_SERVICE_KEY is not set.
    """
    cfg = settings or default_settings
    service_key = (cfg.data_go_kr_service_key or "").strip()
    if not service_key:
        raise ConfigError("Missing env: DATA_GO_KR_SERVICE_KEY")
    return G2BClient(
        service_key=service_key,
        base_url=cfg.g2b_base_url,
        timeout_seconds=cfg.g2b_timeout_seconds,
    )


def get_g2b_client() -> G2BClient:
    """FastAPI dependency; tests override it with a fake client."""
    return build_client()
