"""
Cache Directory Manager

Owns the per-request temporary directory that ingested file parts are
streamed into, and guarantees it can be torn down any number of times.
"""

import logging
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = ".uxio-cache-"


class CacheDirectory:
    """
    Temporary storage area for one request.

    The directory name combines a fixed prefix with a uuid4 token, so
    concurrent requests never share a directory.
    """

    def __init__(
        self,
        root: Optional[Union[str, Path]] = None,
        prefix: str = DEFAULT_PREFIX,
    ):
        """
        Args:
            root: Parent directory (default: platform temp root)
            prefix: Directory name prefix, also used by the stale cache sweeper
        """
        self.root = Path(root) if root else Path(tempfile.gettempdir())
        self.token = uuid.uuid4().hex
        self.path = self.root / f"{prefix}{self.token}"

    def create(self) -> Path:
        """Create the directory eagerly, before any part is read."""
        self.path.mkdir(parents=True, exist_ok=False)
        logger.info(f"Created cache directory: {self.path}")
        return self.path

    def file_path(self, field_name: str, original_name: str, index: int = 0) -> Path:
        """
        Deterministic cache location for a part.

        Only the basename of the client filename is used so the result always
        stays inside the cache directory. ``index`` distinguishes repeated
        (field, filename) pairs within one request.
        """
        safe_field = Path(field_name).name or "field"
        safe_name = Path(original_name.replace("\\", "/")).name or "upload"
        if index:
            return self.path / f"{safe_field}-{index}-{safe_name}"
        return self.path / f"{safe_field}-{safe_name}"

    def teardown(self) -> None:
        """
        Recursively remove the cache directory.

        Safe to call zero, one or many times. Failures are logged, never raised.
        """
        if not self.path.exists():
            return

        try:
            shutil.rmtree(self.path)
            logger.info(f"Cleaned up cache directory: {self.path}")
        except OSError as e:
            logger.error(f"Failed to clean up cache directory {self.path}: {e}")
