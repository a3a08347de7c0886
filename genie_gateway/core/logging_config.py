"""
Logging setup shared by the API process and the campaign worker.
"""
import logging
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: str = "INFO") -> None:
    """Install the root handler once; later calls only adjust the level."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=numeric_level, format=LOG_FORMAT)
    logging.getLogger().setLevel(numeric_level)
    # httpx logs every request URL at INFO, which includes Hunter api_key query params
    logging.getLogger("httpx").setLevel(logging.WARNING)


def mask_secret(value: Optional[str], visible: int = 8) -> str:
    """Show only the first characters of a secret."""
    if not value:
        return "<empty>"
    return f"{value[:visible]}..."


def short_id(value: Optional[str]) -> str:
    """Tenant/user ids are logged truncated."""
    if not value:
        return "none"
    return f"{value[:8]}..."
