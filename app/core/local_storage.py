# app/core/local_storage.py
import logging
from pathlib import Path

from app.core.config import settings

logger = logging.getLogger(__name__)


def save_bytes(relative_path: str, body: bytes, base_dir: str | None = None) -> str:
    """Write bytes under the local archive directory and return the file path."""
    base = Path(base_dir or settings.AUDIT_ARCHIVE_LOCAL_PATH)
    target = base / relative_path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(body)
    logger.info(f"Saved {len(body)} bytes to {target}")
    return str(target)
