"""Environment loading for CLI scripts."""
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


def load_env_if_present(env_file: Optional[str] = None) -> bool:
    """
    Load .env (default: project root) without overriding variables already set.
    Returns True when a file was loaded. Never logs values.
    """
    env_path = Path(env_file) if env_file else PROJECT_ROOT / ".env"
    if not env_path.exists():
        return False
    loaded = load_dotenv(env_path, override=False)
    if loaded:
        logger.debug("Loaded environment variables from %s", env_path)
    return loaded
